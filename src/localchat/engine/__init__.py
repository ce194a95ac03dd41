from .backends import EchoEngine, EchoHandle, OpenAICompatibleEngine, OpenAICompatibleHandle
from .base import EngineHandle, InferenceEngine, ProgressCallback
from .factory import create_inference_engine
from .models import ChatMessage, LoadProgress, StreamingResponse

__all__ = [
    "EngineHandle",
    "InferenceEngine",
    "ProgressCallback",
    "create_inference_engine",
    "ChatMessage",
    "LoadProgress",
    "StreamingResponse",
    "EchoEngine",
    "EchoHandle",
    "OpenAICompatibleEngine",
    "OpenAICompatibleHandle",
]
