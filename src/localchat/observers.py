"""Change notification for state owners.

Each owner of mutable state (engine manager, conversation store, session)
keeps a ``Listeners`` list and calls ``notify`` after every change. Calls
happen synchronously on the event loop thread, so a listener always sees
the state that triggered it.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class Listeners(Generic[T]):
    """Ordered set of callbacks receiving a value of type ``T``."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[T], None]] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Register ``callback`` and return a function that removes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, value: T) -> None:
        """Deliver ``value`` to every listener.

        A failing listener is logged and skipped so the remaining listeners
        and the state owner are unaffected.
        """
        for callback in list(self._callbacks):
            try:
                callback(value)
            except Exception:
                logger.exception("Listener %r failed", callback)
