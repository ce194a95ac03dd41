from .echo import EchoEngine, EchoHandle
from .openai import OpenAICompatibleEngine, OpenAICompatibleHandle

__all__ = ["EchoEngine", "EchoHandle", "OpenAICompatibleEngine", "OpenAICompatibleHandle"]
