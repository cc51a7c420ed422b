"""
Module for running background timers that can be drained together at shutdown.
"""
import logging
import threading
import time
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class _TrackedTimer(threading.Timer):
    """A timer thread that deregisters itself from its group once finished."""

    def __init__(self, group: "TaskGroup", interval: float,
                 function: Callable[..., Any], args: tuple):
        super().__init__(interval, function, args=args)
        self.daemon = True
        self._group = group

    def run(self) -> None:
        try:
            super().run()
        except Exception:
            logger.exception(f"Unhandled error in timer {self.name}")
        finally:
            self._group._discard(self)


class TaskGroup:
    """Owns every timer started by the service, including ones whose callback is still running."""

    def __init__(self):
        self._timers: Set[_TrackedTimer] = set()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def call_later(self, delay: float, target: Callable[..., Any],
                   *args: Any) -> Optional[threading.Timer]:
        """Schedule ``target(*args)`` after ``delay`` seconds on a tracked timer.

        The returned timer can be cancelled until it fires.

        Returns:
            The started timer, or None if the group no longer accepts work
        """
        timer = _TrackedTimer(self, delay, target, args)
        with self._lock:
            if self._closed:
                logger.debug(f"Task group closed, not scheduling {target}")
                return None
            self._timers.add(timer)
            timer.start()
        return timer

    def _discard(self, timer: _TrackedTimer) -> None:
        with self._lock:
            self._timers.discard(timer)

    def close(self, cancel_pending: bool = True) -> None:
        """Stop accepting work and optionally cancel timers that have not fired."""
        with self._lock:
            self._closed = True
            timers = list(self._timers)
        if cancel_pending:
            for timer in timers:
                timer.cancel()

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for running work to finish.

        Args:
            timeout: Overall seconds to wait; None waits indefinitely

        Returns:
            True if everything finished within the timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = list(self._timers)
            if not pending:
                return True

            for timer in pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    logger.warning(f"{len(self)} background tasks still running at shutdown")
                    return False
                timer.join(remaining)
