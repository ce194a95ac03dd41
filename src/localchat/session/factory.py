from ..config import ChatSettings, load_settings
from ..conversation import ConversationStore
from ..engine import InferenceEngine, create_inference_engine
from ..lifecycle import EngineLifecycleManager
from ..log import configure_logging
from ..streaming import StreamAggregator
from .controller import SessionController


def create_session(
    settings: ChatSettings | None = None,
    engine: InferenceEngine | None = None,
    setup_logging: bool = True,
) -> SessionController:
    """Assemble a session controller and its collaborators.

    Args:
        settings: Session settings (default: read from the environment)
        engine: Inference engine to use instead of the configured backend
        setup_logging: Install the Rich log handler at ``settings.log_level``

    Returns:
        SessionController with an ``Unloaded`` engine; call ``start()``
        from a running event loop to load the default model

    Raises:
        ValueError: If the configured engine backend is not supported
        TypeError: If required backend configuration is missing
    """
    settings = settings or load_settings()
    if setup_logging:
        configure_logging(settings.log_level)

    if engine is None:
        engine = create_inference_engine(settings.engine_backend, **settings.engine_config())

    store = ConversationStore()
    aggregator = StreamAggregator(
        store,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        flush_threshold=settings.stream_flush_threshold,
    )
    return SessionController(
        manager=EngineLifecycleManager(engine),
        store=store,
        aggregator=aggregator,
        catalog=settings.catalog,
        default_model=settings.default_model,
    )
