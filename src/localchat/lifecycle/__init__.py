"""Engine lifecycle module for localchat.

Tracks which model is loaded and whether it can generate.
"""

from .manager import EngineLifecycleManager
from .models import EngineState, EngineStatus, Failed, Loading, Ready, Unloaded

__all__ = [
    "EngineLifecycleManager",
    "EngineState",
    "EngineStatus",
    "Failed",
    "Loading",
    "Ready",
    "Unloaded",
]
