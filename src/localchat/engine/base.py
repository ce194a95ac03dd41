from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from .models import ChatMessage, LoadProgress, StreamingResponse

ProgressCallback = Callable[[LoadProgress], None]


class EngineHandle(ABC):
    """A loaded, ready-to-generate engine instance.

    Handles are produced by ``InferenceEngine.construct`` and owned by the
    lifecycle manager. Other components borrow a handle for the duration of
    one generation and must not keep it past a model switch.

    Supports async context manager protocol for proper resource cleanup:
        async with await engine.construct(model_id, on_progress) as handle:
            stream = await handle.generate(messages)
    """

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the model this handle was constructed for."""

    @abstractmethod
    async def generate(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Request a streamed chat completion.

        Args:
            messages: Full conversation history, oldest first
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens to generate
            **kwargs: Engine-specific parameters

        Returns:
            StreamingResponse yielding text increments. It is finite and
            cannot be restarted; issue a new request to regenerate.

        Raises:
            Exception: Engine-specific errors while starting the request.
                Errors after the first increment surface from iteration.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the engine instance."""

    async def __aenter__(self) -> "EngineHandle":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the handle on exit.

        An HTTP transport torn down after its event loop (httpx issue 914)
        raises ``RuntimeError("Event loop is closed")``; that one is ignored,
        any other error from ``close`` propagates.
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise


class InferenceEngine(ABC):
    """Abstract base class for local inference engines.

    This module hides the design decision of which inference runtime serves
    the models. Implementations must handle runtime-specific details like:
    - Locating and loading model weights
    - Reporting load progress
    - Request/response format conversion
    """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    @abstractmethod
    async def construct(
        self,
        model_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> EngineHandle:
        """Load a model and return a handle to it.

        Args:
            model_id: Catalog identifier of the model to load
            on_progress: Called zero or more times with load progress
                before this coroutine resolves

        Returns:
            EngineHandle ready to generate

        Raises:
            Exception: Any failure to load; nothing is retried here
        """
