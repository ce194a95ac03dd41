import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..conversation import STREAM_FAILURE_TEXT, ConversationStore, Message
from ..engine import ChatMessage, EngineHandle, StreamingResponse
from ..errors import StreamError, describe_error

logger = logging.getLogger(__name__)


class StreamStatus(str, Enum):
    """How a streamed generation ended."""

    COMPLETED = "completed"  # Engine signalled the end of the stream
    CANCELLED = "cancelled"  # Target message left the conversation
    FAILED = "failed"        # Engine raised while streaming


class StreamOutcome(BaseModel):
    """Result of one ``StreamAggregator.run`` call."""

    status: StreamStatus = Field(description="How the stream ended")
    message_id: str = Field(description="Id of the assistant message the stream targeted")
    content: str = Field(default="", description="Concatenation of the increments received")
    increments: int = Field(default=0, description="Number of increments received")
    usage: dict[str, Any] | None = Field(default=None, description="Token usage reported by the engine")
    error: str | None = Field(default=None, description="Failure description when status is FAILED")


class StreamAggregator:
    """Turns a streamed generation into a growing assistant message.

    Every increment is appended to an accumulator and the accumulator is
    written to the target message, so the message always holds the full
    text received so far. With ``flush_threshold`` > 0 writes are batched
    until that many characters are pending; the last write always carries
    the complete text.
    """

    def __init__(
        self,
        store: ConversationStore,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        flush_threshold: int = 0,
    ):
        if flush_threshold < 0:
            raise ValueError("flush_threshold must be >= 0")
        self._store = store
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._flush_threshold = flush_threshold

    @property
    def store(self) -> ConversationStore:
        return self._store

    async def run(
        self,
        handle: EngineHandle,
        history: list[ChatMessage],
        target_message_id: str,
    ) -> StreamOutcome:
        """Stream a reply to ``history`` into a new assistant message.

        Args:
            handle: Engine handle captured when the send was accepted
            history: Conversation snapshot to send, oldest first
            target_message_id: Fresh id for the assistant message

        Returns:
            StreamOutcome describing how the stream ended. Engine failures
            are reported here, never raised.
        """
        self._store.append(Message.assistant(message_id=target_message_id))

        accumulated = ""
        increments = 0
        pending = 0
        stream: StreamingResponse | None = None
        try:
            stream = await handle.generate(
                history,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            async for increment in stream:
                accumulated += increment
                increments += 1
                pending += len(increment)
                if pending < self._flush_threshold:
                    continue
                pending = 0
                if not self._store.update_content(target_message_id, accumulated):
                    return self._cancelled(target_message_id, accumulated, increments)

            if pending and not self._store.update_content(target_message_id, accumulated):
                return self._cancelled(target_message_id, accumulated, increments)

        except Exception as e:
            error = StreamError(target_message_id, e)
            logger.error("%s", error)
            if self._store.contains(target_message_id):
                if pending:
                    self._store.update_content(target_message_id, accumulated)
                self._store.append(Message.assistant(STREAM_FAILURE_TEXT))
            else:
                logger.debug("Conversation moved on; not reporting failure of %s", target_message_id)
            return StreamOutcome(
                status=StreamStatus.FAILED,
                message_id=target_message_id,
                content=accumulated,
                increments=increments,
                error=describe_error(e),
            )
        finally:
            if stream is not None:
                await stream.aclose()

        logger.debug(
            "Stream for %s completed: %d increments, %d chars",
            target_message_id, increments, len(accumulated),
        )
        return StreamOutcome(
            status=StreamStatus.COMPLETED,
            message_id=target_message_id,
            content=accumulated,
            increments=increments,
            usage=stream.usage if stream is not None else None,
        )

    def _cancelled(self, message_id: str, content: str, increments: int) -> StreamOutcome:
        logger.info("Message %s left the conversation; stopping its stream", message_id)
        return StreamOutcome(
            status=StreamStatus.CANCELLED,
            message_id=message_id,
            content=content,
            increments=increments,
        )
