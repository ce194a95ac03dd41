from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StreamingResponse:
    """Wrapper for a streamed generation that captures usage info.

    Acts as an async iterator of text increments. Empty increments are never
    yielded, and the end of iteration is the terminal marker of the stream.
    Token usage becomes available once the engine reports it, which is
    normally with the last chunk.

    Usage:
        stream = await handle.generate(messages)
        async for increment in stream:
            print(increment, end="")
        print(stream.usage)  # {"prompt_tokens": 100, "completion_tokens": 50, ...}

    A consumer that stops early should call ``aclose()`` so the engine can
    release the underlying request instead of generating into the void.
    """

    def __init__(self, async_iter: AsyncIterator[str]):
        """Initialize with an async iterator of text increments.

        Args:
            async_iter: Async iterator yielding text increments
        """
        self._iter = async_iter
        self._usage: dict[str, Any] | None = None
        self._closed = False

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage or None

    @property
    def closed(self) -> bool:
        """Whether the stream was closed before or after exhaustion."""
        return self._closed

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by the engine at end of stream)."""
        self._usage = usage

    def __aiter__(self) -> "StreamingResponse":
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> str:
        """Get the next non-empty increment from the underlying iterator."""
        if self._closed:
            raise StopAsyncIteration
        while True:
            try:
                increment = await self._iter.__anext__()
            except StopAsyncIteration:
                self._closed = True
                raise
            if increment:
                return increment

    async def aclose(self) -> None:
        """Stop the stream and release the upstream request."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._iter, "aclose", None)
        if aclose is not None:
            await aclose()


class ChatMessage(BaseModel):
    """A single turn of conversation history as sent to the engine."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


class LoadProgress(BaseModel):
    """Progress report emitted while an engine is being constructed."""

    model_config = ConfigDict(frozen=True)

    fraction: float = Field(ge=0.0, le=1.0, description="Completed fraction of the load")
    text: str = Field(default="", description="Human readable progress detail")

    @property
    def percent(self) -> int:
        """Fraction as a whole percentage in 0..100."""
        return max(0, min(100, round(self.fraction * 100)))
