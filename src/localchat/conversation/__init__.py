"""Conversation module for localchat.

Holds the ordered messages of the single active conversation.
"""

from .models import (
    GENERIC_GREETING,
    STREAM_FAILURE_TEXT,
    Message,
    MessageRole,
    greeting_text,
    new_message_id,
)
from .store import ConversationStore

__all__ = [
    "ConversationStore",
    "GENERIC_GREETING",
    "Message",
    "MessageRole",
    "STREAM_FAILURE_TEXT",
    "greeting_text",
    "new_message_id",
]
