from __future__ import annotations

from typing import Callable

from loguru import logger

from answer_engine.exceptions import TurnCancelled


class CancellationToken:
    """Revocable signal shared by every operation of one turn.

    Once cancelled the token stays cancelled. A superseding turn always gets a
    fresh token instead of resetting this one.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._listeners: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Settle the token and notify listeners synchronously. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.warning(f"Cancellation listener failed: {e}")

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` for cancellation and return an unsubscribe function.

        If the token is already cancelled the callback runs immediately.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise TurnCancelled()
