"""Offline echo engine.

Needs no server and no weights: loading walks through a fixed number of
progress stages and generation streams the last user message back word by
word. Handy for demos and for exercising the session without a model.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from ..base import EngineHandle, InferenceEngine, ProgressCallback
from ..models import ChatMessage, LoadProgress, StreamingResponse


class EchoHandle(EngineHandle):
    """Handle returned by ``EchoEngine``."""

    def __init__(self, model_id: str, token_delay: float = 0.0):
        self._model_id = model_id
        self._token_delay = token_delay
        self._closed = False

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def closed(self) -> bool:
        return self._closed

    @staticmethod
    def compose_reply(messages: list[ChatMessage]) -> str:
        """Reply text for a history: echoes the most recent user turn."""
        for message in reversed(messages):
            if message.role == "user":
                return f"You said: {message.content}"
        return "Nothing to echo yet."

    async def generate(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        if self._closed:
            raise RuntimeError(f"Engine handle for {self._model_id} is closed")

        words = self.compose_reply(messages).split(" ")
        if max_tokens is not None:
            words = words[:max_tokens]

        usage: dict[str, Any] = {}
        response = StreamingResponse(self._stream_words(words, messages, usage))
        response.set_usage(usage)
        return response

    async def _stream_words(
        self,
        words: list[str],
        messages: list[ChatMessage],
        usage: dict[str, Any],
    ) -> AsyncIterator[str]:
        for index, word in enumerate(words):
            await asyncio.sleep(self._token_delay)
            yield word if index == 0 else f" {word}"

        prompt_tokens = sum(len(m.content.split()) for m in messages)
        usage.update({
            "prompt_tokens": prompt_tokens,
            "completion_tokens": len(words),
            "total_tokens": prompt_tokens + len(words),
        })

    async def close(self) -> None:
        self._closed = True


class EchoEngine(InferenceEngine):
    """Inference engine that needs nothing but the event loop."""

    def __init__(
        self,
        load_steps: int = 4,
        step_delay: float = 0.0,
        token_delay: float = 0.0,
        known_models: list[str] | None = None,
    ):
        """Initialize the echo engine.

        Args:
            load_steps: Number of progress reports emitted after the initial 0%
            step_delay: Seconds to wait between progress reports
            token_delay: Seconds to wait before each streamed word
            known_models: If given, loading any other model id fails
        """
        if load_steps < 1:
            raise ValueError("load_steps must be >= 1")
        self._load_steps = load_steps
        self._step_delay = step_delay
        self._token_delay = token_delay
        self._known_models = set(known_models) if known_models is not None else None

    @property
    def backend_type(self) -> str:
        return "echo"

    async def construct(
        self,
        model_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> EngineHandle:
        if self._known_models is not None and model_id not in self._known_models:
            raise LookupError(f"Model not found: {model_id}")

        for step in range(self._load_steps + 1):
            if step:
                await asyncio.sleep(self._step_delay)
            if on_progress is not None:
                on_progress(LoadProgress(
                    fraction=step / self._load_steps,
                    text=f"Loading {model_id} [{step}/{self._load_steps}]",
                ))

        return EchoHandle(model_id, token_delay=self._token_delay)
