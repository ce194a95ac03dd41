from typing import Any

from .backends import EchoEngine, OpenAICompatibleEngine
from .base import InferenceEngine


def create_inference_engine(backend: str, **config: Any) -> InferenceEngine:
    """Create an inference engine instance.

    This factory function hides the instantiation logic for different backends.

    Args:
        backend: Backend type ('openai', 'echo')
        **config: Backend-specific configuration
            For OpenAI-compatible servers:
                - base_url: str (required)
                - api_key: str (default: 'not-needed')
                - timeout: float | None
            For Echo:
                - load_steps: int (default: 4)
                - step_delay: float (default: 0.0)
                - token_delay: float (default: 0.0)
                - known_models: list[str] | None

    Returns:
        Initialized inference engine instance

    Raises:
        ValueError: If backend type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> engine = create_inference_engine(
        ...     "openai",
        ...     base_url="http://localhost:8080/v1"
        ... )

        >>> engine = create_inference_engine("echo", step_delay=0.1)
    """
    backend_lower = backend.lower()

    if backend_lower in ("openai", "openai-compatible"):
        if "base_url" not in config:
            raise TypeError("OpenAI-compatible engine requires 'base_url' in config")
        return OpenAICompatibleEngine(**config)

    if backend_lower == "echo":
        return EchoEngine(**config)

    raise ValueError(
        f"Unsupported engine backend: {backend}. "
        f"Supported backends: 'openai', 'echo'"
    )
