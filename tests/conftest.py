"""Pytest configuration and shared fixtures.

The scripted engine lets a test decide exactly when a load finishes and
when each stream increment arrives, so interleavings are deterministic.
"""
import asyncio
import os
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from localchat.config import build_catalog
from localchat.conversation import ConversationStore
from localchat.engine import (
    ChatMessage,
    EngineHandle,
    InferenceEngine,
    LoadProgress,
    ProgressCallback,
    StreamingResponse,
)
from localchat.lifecycle import EngineLifecycleManager
from localchat.session import SessionController
from localchat.streaming import StreamAggregator

_END = object()


class ScriptedStream:
    """A reply stream fed by the test.

    Increments pushed with ``push`` are yielded in order; ``finish`` ends the
    stream and ``fail`` makes the next read raise.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False
        self.exhausted = False
        self.yielded: list[str] = []

    def push(self, *increments: str) -> "ScriptedStream":
        for increment in increments:
            self._queue.put_nowait(increment)
        return self

    def finish(self) -> "ScriptedStream":
        self._queue.put_nowait(_END)
        return self

    def fail(self, error: BaseException) -> "ScriptedStream":
        self._queue.put_nowait(error)
        return self

    async def iterate(self) -> AsyncIterator[str]:
        try:
            while True:
                item = await self._queue.get()
                if item is _END:
                    self.exhausted = True
                    return
                if isinstance(item, BaseException):
                    raise item
                self.yielded.append(item)
                yield item
        finally:
            self.closed = True


class ScriptedHandle(EngineHandle):
    """Engine handle whose replies are queued by the test."""

    def __init__(self, model_id: str) -> None:
        self._model_id = model_id
        self.requests: list[list[ChatMessage]] = []
        self.temperatures: list[float] = []
        self.streams: list[ScriptedStream] = []
        self._queued: list[ScriptedStream] = []
        self.generate_error: BaseException | None = None
        self.closed = False

    @property
    def model_id(self) -> str:
        return self._model_id

    def queue_reply(self, *increments: str, finish: bool = True) -> ScriptedStream:
        stream = ScriptedStream().push(*increments)
        if finish:
            stream.finish()
        self._queued.append(stream)
        return stream

    async def generate(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        self.requests.append(list(messages))
        self.temperatures.append(temperature)
        if self.generate_error is not None:
            raise self.generate_error
        stream = self._queued.pop(0) if self._queued else ScriptedStream().finish()
        self.streams.append(stream)
        return StreamingResponse(stream.iterate())

    async def close(self) -> None:
        self.closed = True


class LoadGate:
    """Controls one ``construct`` call of the scripted engine."""

    def __init__(self, progress: tuple[float, ...] = (), error: BaseException | None = None):
        self.progress = progress
        self.error = error
        self.on_progress: ProgressCallback | None = None
        self._released = asyncio.Event()

    def report(self, fraction: float) -> None:
        assert self.on_progress is not None
        self.on_progress(LoadProgress(fraction=fraction))

    def release(self, error: BaseException | None = None) -> None:
        if error is not None:
            self.error = error
        self._released.set()

    async def wait(self) -> None:
        await self._released.wait()


class ScriptedEngine(InferenceEngine):
    """Inference engine whose loads are gated by the test.

    A load of a model with no gate prepared succeeds at once.
    """

    def __init__(self) -> None:
        self._gates: dict[str, list[LoadGate]] = {}
        self.construct_calls: list[str] = []
        self.handles: list[ScriptedHandle] = []

    @property
    def backend_type(self) -> str:
        return "scripted"

    def gate(
        self,
        model_id: str,
        progress: tuple[float, ...] = (),
        error: BaseException | None = None,
    ) -> LoadGate:
        gate = LoadGate(progress, error)
        self._gates.setdefault(model_id, []).append(gate)
        return gate

    async def construct(
        self,
        model_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> EngineHandle:
        self.construct_calls.append(model_id)
        pending = self._gates.get(model_id)
        if pending:
            gate = pending.pop(0)
            gate.on_progress = on_progress
            for fraction in gate.progress:
                gate.report(fraction)
            await gate.wait()
            if gate.error is not None:
                raise gate.error
        handle = ScriptedHandle(model_id)
        self.handles.append(handle)
        return handle


async def settle(predicate: Callable[[], bool] | None = None, rounds: int = 100) -> None:
    """Let pending tasks run until ``predicate`` holds (or for a few rounds)."""
    for _ in range(rounds):
        if predicate is not None and predicate():
            return
        await asyncio.sleep(0)
    if predicate is not None:
        assert predicate(), "condition not reached"


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def manager(engine: ScriptedEngine) -> EngineLifecycleManager:
    return EngineLifecycleManager(engine)


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def aggregator(store: ConversationStore) -> StreamAggregator:
    return StreamAggregator(store)


@pytest.fixture
def catalog():
    return build_catalog(["M1", "M2", "M3"])


@pytest.fixture
def session(manager, store, aggregator, catalog) -> SessionController:
    return SessionController(manager, store, aggregator, catalog=catalog)


@pytest.fixture(scope="session")
def server_config():
    """Return the local inference server configuration from environment."""
    return {
        "base_url": os.getenv("LOCALCHAT_BASE_URL"),
        "model": os.getenv("LOCALCHAT_TEST_MODEL"),
    }
