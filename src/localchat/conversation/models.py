"""Data models for the active conversation.

Messages are created on user submission or when a stream starts and are
never deleted; only assistant content changes while a stream targets it.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..engine import ChatMessage

GENERIC_GREETING = "Hello! I'm your AI assistant. How can I help you today?"
MODEL_GREETING = "Hello! I'm your AI assistant powered by {model_id}. How can I help you today?"
STREAM_FAILURE_TEXT = "Sorry, I encountered an error while generating a response. Please try again."


def new_message_id() -> str:
    """Fresh message id, unique across every conversation of the process."""
    return uuid4().hex


def greeting_text(model_id: str | None = None) -> str:
    """Greeting shown after a reset, naming the loaded model when there is one."""
    if model_id:
        return MODEL_GREETING.format(model_id=model_id)
    return GENERIC_GREETING


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One message of the conversation.

    ``id`` is fixed at creation. ``content`` is replaced through
    ``ConversationStore.update_content`` while a stream is filling it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id, description="Unique message identifier")
    role: MessageRole = Field(description="Author of the message")
    content: str = Field(default="", description="Message text")
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", message_id: str | None = None) -> "Message":
        if message_id is None:
            return cls(role=MessageRole.ASSISTANT, content=content)
        return cls(id=message_id, role=MessageRole.ASSISTANT, content=content)

    def with_content(self, content: str) -> "Message":
        """Copy of this message with new content and the same identity."""
        return self.model_copy(update={"content": content})

    def to_chat_message(self) -> ChatMessage:
        """Convert to the engine's ``{role, content}`` form."""
        return ChatMessage(role=self.role.value, content=self.content)
