"""In-memory store for the active conversation.

Session-only: the conversation lives until the next reset and is lost when
the process exits.
"""

import logging
from collections.abc import Callable

from ..engine import ChatMessage
from ..observers import Listeners, Unsubscribe
from .models import Message, greeting_text

logger = logging.getLogger(__name__)


class ConversationStore:
    """Ordered messages of the single active conversation.

    The store is the only writer of the message sequence. It always holds
    at least the greeting, and messages stay in the order they were
    appended.
    """

    def __init__(self, greeting: str | None = None):
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}
        self._listeners: Listeners[tuple[Message, ...]] = Listeners()
        self.reset(greeting if greeting is not None else greeting_text())

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the conversation in creation order."""
        return tuple(self._messages)

    def contains(self, message_id: str) -> bool:
        return message_id in self._index

    def get(self, message_id: str) -> Message | None:
        position = self._index.get(message_id)
        if position is None:
            return None
        return self._messages[position]

    def subscribe(self, listener: Callable[[tuple[Message, ...]], None]) -> Unsubscribe:
        """Call ``listener`` with a fresh snapshot after every change."""
        return self._listeners.add(listener)

    def append(self, message: Message) -> None:
        """Add a message to the end of the conversation.

        Raises:
            ValueError: If a message with the same id is already present
        """
        if message.id in self._index:
            raise ValueError(f"Duplicate message id: {message.id}")
        self._index[message.id] = len(self._messages)
        self._messages.append(message)
        self._notify()

    def update_content(self, message_id: str, content: str) -> bool:
        """Replace the content of a message.

        Returns:
            True if the message was updated, False if the id is no longer
            part of the conversation (the write is stale and dropped)
        """
        position = self._index.get(message_id)
        if position is None:
            logger.debug("Dropping stale write for message %s", message_id)
            return False
        current = self._messages[position]
        if current.content != content:
            self._messages[position] = current.with_content(content)
            self._notify()
        return True

    def reset(self, greeting: str) -> Message:
        """Replace the whole conversation with a single greeting.

        Returns:
            The new greeting message
        """
        message = Message.assistant(greeting)
        self._messages = [message]
        self._index = {message.id: 0}
        logger.debug("Conversation reset")
        self._notify()
        return message

    def history(self) -> list[ChatMessage]:
        """Whole conversation in the engine's ``{role, content}`` form."""
        return [message.to_chat_message() for message in self._messages]

    def _notify(self) -> None:
        self._listeners.notify(tuple(self._messages))
