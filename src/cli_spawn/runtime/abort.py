"""Cooperative cancellation primitive.

An AbortController owns an AbortSignal. Code that starts work takes the
signal; code that wants the work stopped calls controller.abort(). Listeners
registered on the signal run once, synchronously, when it is aborted.

Everything here is meant to be used from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

__all__ = [
    "AbortController",
    "AbortListener",
    "AbortSignal",
]

logger = logging.getLogger(__name__)

# Listener signature: no arguments, return value ignored
AbortListener = Callable[[], None]


class AbortSignal:
    """Read side of an abort request.

    Example:
        controller = AbortController()
        signal = controller.signal

        if not signal.aborted:
            signal.add_listener(on_abort)
        ...
        signal.remove_listener(on_abort)
    """

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._listeners: list[AbortListener] = []

    @classmethod
    def aborted_signal(cls, reason: Any = None) -> AbortSignal:
        """Return a signal that is already aborted."""
        controller = AbortController()
        controller.abort(reason)
        return controller.signal

    @classmethod
    def timeout(cls, delay: float) -> AbortSignal:
        """Return a signal that aborts after ``delay`` seconds.

        Must be called with a running event loop.
        """
        controller = AbortController()
        controller.abort_after(delay, reason=TimeoutError(f"Timed out after {delay}s"))
        return controller.signal

    @property
    def aborted(self) -> bool:
        """Whether abort() has been called on the owning controller."""
        return self._aborted

    @property
    def reason(self) -> Any:
        """The reason passed to abort(), if any."""
        return self._reason

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, callback: AbortListener) -> None:
        """Register a callback for a future abort.

        Listeners are not invoked if the signal is already aborted; check
        ``aborted`` first.
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: AbortListener) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _trigger(self, reason: Any) -> None:
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason

        # Snapshot: listeners usually remove themselves while running
        listeners = list(self._listeners)
        self._listeners.clear()
        for callback in listeners:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in abort listener {callback!r}: {e}")

    def __repr__(self) -> str:
        return (
            f"AbortSignal(aborted={self._aborted}, "
            f"listeners={len(self._listeners)})"
        )


class AbortController:
    """Write side of an abort request.

    Example:
        controller = AbortController()
        controller.abort_after(5.0)  # 5s timeout
        await spawn("long-running-command", signal=controller.signal)
    """

    def __init__(self) -> None:
        self._signal = AbortSignal()

    @property
    def signal(self) -> AbortSignal:
        return self._signal

    def abort(self, reason: Any = None) -> None:
        """Abort the signal. Calling this more than once has no effect."""
        if not self._signal.aborted:
            logger.debug(f"Abort requested (reason={reason!r})")
        self._signal._trigger(reason)

    def abort_after(self, delay: float, reason: Any = None) -> asyncio.TimerHandle:
        """Schedule abort() on the running loop after ``delay`` seconds.

        Returns:
            The timer handle; cancel it to disarm the timeout.
        """
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.abort, reason)
