"""Engine lifecycle manager.

Owns the engine state and the engine handle. Loads are identified by a
load token taken when the load starts; anything a superseded load produces
later (progress, a handle, a failure) is discarded. That token check is the
only cancellation mechanism: the engine call itself is left to finish.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..engine import EngineHandle, InferenceEngine, LoadProgress
from ..errors import EngineConstructionError, describe_error
from ..observers import Listeners, Unsubscribe
from .models import EngineState, Failed, Loading, Ready, Unloaded

logger = logging.getLogger(__name__)


class EngineLifecycleManager:
    """Drives the engine through ``Unloaded → Loading → Ready | Failed``.

    ``load``, ``switch_to`` and ``retry`` perform their synchronous part
    (the transition to ``Loading`` and dropping the old handle) as soon as
    they are called, and return an awaitable for the rest of the load. This
    lets a caller schedule the load as a background task while the state
    change is already visible to everybody else.

    A stream borrows the ready handle with ``borrow`` and gives it back with
    ``release``. A handle dropped by a switch is closed as soon as nobody
    borrows it; until then it stays open so the stream can finish.
    """

    def __init__(self, engine: InferenceEngine):
        self._engine = engine
        self._state: EngineState = Unloaded()
        self._load_token = 0
        self._borrows: dict[EngineHandle, int] = {}
        self._retired: list[EngineHandle] = []
        self._closing: set[asyncio.Task[Any]] = set()
        self._listeners: Listeners[EngineState] = Listeners()

    @property
    def engine(self) -> InferenceEngine:
        return self._engine

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def model_id(self) -> str | None:
        """Model id the current state refers to, None when unloaded."""
        return getattr(self._state, "model_id", None)

    @property
    def handle(self) -> EngineHandle | None:
        """Engine handle if the engine is ready."""
        if isinstance(self._state, Ready):
            return self._state.handle
        return None

    @property
    def is_ready(self) -> bool:
        return isinstance(self._state, Ready)

    def subscribe(self, listener: Callable[[EngineState], None]) -> Unsubscribe:
        """Call ``listener`` with the new state on every transition."""
        return self._listeners.add(listener)

    def borrow(self) -> EngineHandle | None:
        """Take the ready handle for one generation.

        The handle stays open until it is given back with ``release``, even
        if the engine switches models in the meantime.

        Returns:
            The ready handle, or None if the engine is not ready
        """
        handle = self.handle
        if handle is not None:
            self._borrows[handle] = self._borrows.get(handle, 0) + 1
        return handle

    def release(self, handle: EngineHandle) -> None:
        """Give back a handle taken with ``borrow``.

        A handle that was dropped by a switch is closed once its last
        borrower releases it.
        """
        remaining = self._borrows.get(handle, 0) - 1
        if remaining > 0:
            self._borrows[handle] = remaining
            return
        self._borrows.pop(handle, None)
        if handle in self._retired:
            self._retired.remove(handle)
            self._schedule_close(handle)

    def load(self, model_id: str) -> Awaitable[EngineState]:
        """Start loading ``model_id``.

        The state becomes ``Loading{model_id, 0}`` before this returns. The
        returned awaitable resolves to the state after the load settles,
        which is the state of a newer load if this one was superseded.
        """
        self._load_token += 1
        token = self._load_token
        self._retire_handle()
        self._transition(Loading(model_id=model_id))
        logger.info("Loading model %s", model_id)
        return self._complete_load(token, model_id)

    def switch_to(self, model_id: str) -> Awaitable[EngineState]:
        """Switch to ``model_id``.

        No-op when that model is already loading or ready. Otherwise the
        ready handle, if any, is dropped at once and a new load starts.
        """
        current = self._state
        if isinstance(current, (Loading, Ready)) and current.model_id == model_id:
            logger.debug("Model %s already %s; switch ignored", model_id, current.status.value)
            return self._settled()
        return self.load(model_id)

    def retry(self) -> Awaitable[EngineState]:
        """Reload the model of a ``Failed`` state. No-op in any other state."""
        current = self._state
        if not isinstance(current, Failed):
            logger.debug("Retry ignored in state %s", current.status.value)
            return self._settled()
        return self.load(current.model_id)

    async def aclose(self) -> None:
        """Close every handle, borrowed or not, and return to ``Unloaded``.

        Loads still in flight become stale; their handles are closed when
        they arrive.
        """
        self._load_token += 1
        handles, self._retired = self._retired, []
        if self.handle is not None:
            handles.append(self.handle)
        self._borrows.clear()
        if not isinstance(self._state, Unloaded):
            self._transition(Unloaded())
        for handle in handles:
            await self._close_handle(handle)
        if self._closing:
            await asyncio.gather(*self._closing)

    async def _settled(self) -> EngineState:
        return self._state

    async def _complete_load(self, token: int, model_id: str) -> EngineState:
        def on_progress(progress: LoadProgress) -> None:
            self._apply_progress(token, model_id, progress)

        try:
            handle = await self._engine.construct(model_id, on_progress=on_progress)
        except Exception as e:
            if not self._is_current(token):
                logger.debug("Discarding failure of superseded load of %s: %s", model_id, e)
                return self._state
            error = EngineConstructionError(model_id, e)
            logger.error("%s", error)
            self._transition(Failed(model_id=model_id, error_description=describe_error(e)))
            return self._state

        if not self._is_current(token):
            logger.debug("Discarding superseded load of %s", model_id)
            await self._close_handle(handle)
            return self._state

        self._transition(Ready(model_id=model_id, handle=handle))
        logger.info("Model %s ready", model_id)
        return self._state

    def _apply_progress(self, token: int, model_id: str, progress: LoadProgress) -> None:
        if not self._is_current(token):
            return
        current = self._state
        if not isinstance(current, Loading) or current.model_id != model_id:
            return
        percent = progress.percent
        if percent == current.progress_percent:
            return
        self._transition(Loading(model_id=model_id, progress_percent=percent))

    def _is_current(self, token: int) -> bool:
        return token == self._load_token

    def _retire_handle(self) -> None:
        handle = self.handle
        if handle is None:
            return
        if self._borrows.get(handle):
            logger.debug("Handle for %s still streaming; closing it when released", handle.model_id)
            self._retired.append(handle)
        else:
            self._schedule_close(handle)

    def _schedule_close(self, handle: EngineHandle) -> None:
        task = asyncio.ensure_future(self._close_handle(handle))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def _transition(self, state: EngineState) -> None:
        self._state = state
        self._listeners.notify(state)

    async def _close_handle(self, handle: EngineHandle) -> None:
        try:
            await handle.close()
        except Exception:
            logger.warning("Failed to close engine handle for %s", handle.model_id, exc_info=True)
