"""Session controller.

Entry point for UI intents. Sequences a send (user message, history
snapshot, streamed reply) and forwards model switches, retries and new
chats to the components that own that state.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..config import ModelCatalogEntry
from ..conversation import ConversationStore, Message, greeting_text, new_message_id
from ..engine import ChatMessage, EngineHandle
from ..lifecycle import EngineLifecycleManager, EngineState, Ready
from ..observers import Listeners, Unsubscribe
from ..streaming import StreamAggregator, StreamOutcome, StreamStatus
from .view import SessionPhase, SessionSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _PreparedSend:
    """State captured when a send is accepted."""

    __slots__ = ("handle", "history", "user_message_id", "target_message_id", "task")

    def __init__(self, handle: EngineHandle, history: list[ChatMessage], user_message_id: str):
        self.handle = handle
        self.history = history
        self.user_message_id = user_message_id
        self.target_message_id = new_message_id()
        self.task: asyncio.Task[None] | None = None


class SessionController:
    """Coordinates one conversation with one engine.

    Phases are ``IDLE`` and ``SENDING``. A send is accepted only from
    ``IDLE``, with a ready engine and non-blank text; anything else is
    ignored. Model switches, retries and new chats are accepted in either
    phase and never wait for an outstanding stream.

    Every successful model load resets the conversation with a greeting
    naming the model. A reset that removes the message being answered
    cancels its stream and returns the session to ``IDLE`` at once.
    """

    def __init__(
        self,
        manager: EngineLifecycleManager,
        store: ConversationStore,
        aggregator: StreamAggregator,
        catalog: list[ModelCatalogEntry] | None = None,
        default_model: str | None = None,
    ):
        if aggregator.store is not store:
            raise ValueError("aggregator must write to the session's conversation store")
        self._manager = manager
        self._store = store
        self._aggregator = aggregator
        self._catalog = tuple(catalog or ())
        self._default_model = default_model or (self._catalog[0].id if self._catalog else None)
        self._phase = SessionPhase.IDLE
        self._last_outcome: StreamOutcome | None = None
        self._inflight: _PreparedSend | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: Listeners[SessionSnapshot] = Listeners()
        self._unsubscribers = [
            manager.subscribe(self._on_engine_state),
            store.subscribe(self._on_conversation_changed),
        ]

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def manager(self) -> EngineLifecycleManager:
        return self._manager

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def catalog(self) -> tuple[ModelCatalogEntry, ...]:
        return self._catalog

    @property
    def last_outcome(self) -> StreamOutcome | None:
        """Outcome of the most recent finished stream."""
        return self._last_outcome

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            messages=self._store.messages,
            engine_state=self._manager.state,
            catalog=self._catalog,
            phase=self._phase,
        )

    def subscribe(self, listener: Callable[[SessionSnapshot], None]) -> Unsubscribe:
        """Call ``listener`` with a fresh snapshot after any change."""
        return self._listeners.add(listener)

    def can_send(self, text: str) -> bool:
        """Whether ``send_message(text)`` would be accepted right now."""
        return (
            bool(text.strip())
            and self._manager.is_ready
            and self._phase is SessionPhase.IDLE
        )

    def start(self) -> asyncio.Task[EngineState] | None:
        """Begin loading the default model in the background."""
        if self._default_model is None:
            logger.warning("No model configured; nothing to load")
            return None
        return self._spawn(self._manager.switch_to(self._default_model))

    async def send_message(self, text: str) -> bool:
        """Send ``text`` and stream the reply.

        Returns:
            False if the send was rejected, True once the reply stream has
            finished (completed, failed or abandoned)
        """
        prepared = self._prepare_send(text)
        if prepared is None:
            return False
        task = self._start_send(prepared)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        return True

    def submit(self, text: str) -> asyncio.Task[None] | None:
        """Like ``send_message`` but streams in a background task.

        The guard check, the user message and the switch to ``SENDING``
        happen before this returns.
        """
        prepared = self._prepare_send(text)
        if prepared is None:
            return None
        return self._start_send(prepared)

    def switch_model(self, model_id: str) -> asyncio.Task[EngineState]:
        """Switch the engine to ``model_id`` in the background.

        Raises:
            ValueError: If ``model_id`` is not in the catalog
        """
        if self._catalog and all(entry.id != model_id for entry in self._catalog):
            raise ValueError(f"Unknown model: {model_id}")
        return self._spawn(self._manager.switch_to(model_id))

    def retry_load(self) -> asyncio.Task[EngineState]:
        """Retry a failed load in the background."""
        return self._spawn(self._manager.retry())

    def new_chat(self) -> Message:
        """Start over with a single greeting."""
        ready_model = self._manager.model_id if self._manager.is_ready else None
        return self._store.reset(greeting_text(ready_model))

    async def aclose(self) -> None:
        """Cancel background work and release engine handles."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._inflight is not None:
            self._finish_send(self._inflight)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self._manager.aclose()

    def _prepare_send(self, text: str) -> _PreparedSend | None:
        if not text.strip():
            logger.debug("Send rejected: empty message")
            return None
        if self._phase is SessionPhase.SENDING:
            logger.debug("Send rejected: a reply is still streaming")
            return None
        handle = self._manager.borrow()
        if handle is None:
            logger.debug("Send rejected: engine is %s", self._manager.state.status.value)
            return None

        self._set_phase(SessionPhase.SENDING)
        user_message = Message.user(text)
        self._store.append(user_message)
        prepared = _PreparedSend(handle, self._store.history(), user_message.id)
        self._inflight = prepared
        return prepared

    def _start_send(self, prepared: _PreparedSend) -> asyncio.Task[None]:
        task = self._spawn(self._run_send(prepared))
        # Runs even when the task is cancelled before it starts.
        task.add_done_callback(lambda _: self._manager.release(prepared.handle))
        prepared.task = task
        return task

    async def _run_send(self, prepared: _PreparedSend) -> None:
        try:
            self._last_outcome = await self._aggregator.run(
                prepared.handle,
                prepared.history,
                prepared.target_message_id,
            )
        finally:
            self._finish_send(prepared)

    def _finish_send(self, prepared: _PreparedSend) -> None:
        if self._inflight is not prepared:
            return
        self._inflight = None
        self._set_phase(SessionPhase.IDLE)

    def _abandon_send(self, prepared: _PreparedSend) -> None:
        logger.info("Conversation reset while a reply was streaming; cancelling it")
        self._last_outcome = StreamOutcome(
            status=StreamStatus.CANCELLED,
            message_id=prepared.target_message_id,
        )
        if prepared.task is not None:
            prepared.task.cancel()
        self._finish_send(prepared)

    def _spawn(self, awaitable: Awaitable[T]) -> asyncio.Task[T]:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background task failed", exc_info=error)

    def _set_phase(self, phase: SessionPhase) -> None:
        if phase is self._phase:
            return
        self._phase = phase
        self._publish()

    def _on_engine_state(self, state: EngineState) -> None:
        if isinstance(state, Ready):
            self._store.reset(greeting_text(state.model_id))
        self._publish()

    def _on_conversation_changed(self, messages: tuple[Message, ...]) -> None:
        prepared = self._inflight
        if prepared is not None and not self._store.contains(prepared.user_message_id):
            self._abandon_send(prepared)
        self._publish()

    def _publish(self) -> None:
        if len(self._listeners):
            self._listeners.notify(self.snapshot())
