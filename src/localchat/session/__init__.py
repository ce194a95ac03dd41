"""Session module for localchat.

Module structure (each module hides a design decision):
- view.py: How raw state is presented to the UI (status text, hints)
- controller.py: How a send is sequenced and guarded
- factory.py: How the collaborators are wired from settings
"""

from .controller import SessionController
from .factory import create_session
from .view import SessionPhase, SessionSnapshot, input_hint, status_label

__all__ = [
    "SessionController",
    "SessionPhase",
    "SessionSnapshot",
    "create_session",
    "input_hint",
    "status_label",
]
