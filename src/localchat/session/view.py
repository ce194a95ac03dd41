"""Read-only view of a chat session for the UI.

Hides how raw state maps to what the UI shows: status indicator text,
the hint below the input box and whether sending is possible.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..config import ModelCatalogEntry
from ..conversation import Message
from ..lifecycle import EngineState, Failed, Loading, Ready

NOT_LOADED_HINT = "Model not loaded. Please wait or check for errors."
READY_HINT = "Press Enter to send, Shift + Enter for new line"


class SessionPhase(str, Enum):
    """Whether a send is in flight."""

    IDLE = "idle"
    SENDING = "sending"


def status_label(state: EngineState) -> str:
    """Short engine status for the header indicator."""
    if isinstance(state, Loading):
        return f"Loading {state.progress_percent}%"
    if isinstance(state, Failed):
        return "Error"
    if isinstance(state, Ready):
        return "Ready"
    return "Offline"


def input_hint(state: EngineState) -> str:
    """Hint shown under the message input."""
    if isinstance(state, Loading):
        return f"Loading {state.model_id}... {state.progress_percent}%"
    if not isinstance(state, Ready):
        return NOT_LOADED_HINT
    return READY_HINT


class SessionSnapshot(BaseModel):
    """Everything the UI needs to render one frame."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    messages: tuple[Message, ...] = Field(description="Conversation in creation order")
    engine_state: EngineState = Field(description="Current engine lifecycle state")
    catalog: tuple[ModelCatalogEntry, ...] = Field(default=(), description="Selectable models")
    phase: SessionPhase = Field(default=SessionPhase.IDLE)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def selected_model(self) -> str | None:
        return getattr(self.engine_state, "model_id", None)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        return status_label(self.engine_state)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def input_hint(self) -> str:
        return input_hint(self.engine_state)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_send(self) -> bool:
        return isinstance(self.engine_state, Ready) and self.phase is SessionPhase.IDLE

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_typing(self) -> bool:
        return self.phase is SessionPhase.SENDING

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_description(self) -> str | None:
        if isinstance(self.engine_state, Failed):
            return self.engine_state.error_description
        return None
