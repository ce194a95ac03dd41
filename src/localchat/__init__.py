"""
localchat: a conversational client for local language-model inference engines.

Manages the lifecycle of a loadable engine (load, switch, progress, retry)
and streams its replies into a single active conversation that a UI can
render incrementally.
"""

__version__ = "0.1.0"

from .config import ChatSettings, ModelCatalogEntry, build_catalog, load_settings
from .conversation import ConversationStore, Message, MessageRole
from .engine import (
    ChatMessage,
    EngineHandle,
    InferenceEngine,
    LoadProgress,
    StreamingResponse,
    create_inference_engine,
)
from .errors import EngineConstructionError, LocalChatError, StreamError
from .lifecycle import EngineLifecycleManager, EngineState, Failed, Loading, Ready, Unloaded
from .log import configure_logging
from .session import SessionController, SessionPhase, SessionSnapshot, create_session
from .streaming import StreamAggregator, StreamOutcome, StreamStatus

__all__ = [
    "ChatMessage",
    "ChatSettings",
    "ConversationStore",
    "EngineConstructionError",
    "EngineHandle",
    "EngineLifecycleManager",
    "EngineState",
    "Failed",
    "InferenceEngine",
    "Loading",
    "LoadProgress",
    "LocalChatError",
    "Message",
    "MessageRole",
    "ModelCatalogEntry",
    "Ready",
    "SessionController",
    "SessionPhase",
    "SessionSnapshot",
    "StreamAggregator",
    "StreamError",
    "StreamOutcome",
    "StreamStatus",
    "StreamingResponse",
    "Unloaded",
    "build_catalog",
    "configure_logging",
    "create_inference_engine",
    "create_session",
    "load_settings",
]
