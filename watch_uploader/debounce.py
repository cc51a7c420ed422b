"""
Module for collapsing bursts of change notifications into one trigger per path.
"""
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

from .models import PendingTransfer

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


# (delay, callback, *args) -> timer, or None when scheduling is no longer allowed
TimerFactory = Callable[..., Optional[Cancellable]]


def _threading_timer(delay: float, callback: Callable[..., None], *args) -> Cancellable:
    timer = threading.Timer(delay, callback, args=args)
    timer.daemon = True
    timer.start()
    return timer


class Debouncer:
    """Fires a handler once per path after a quiet period.

    Every ``notify`` for a path cancels that path's pending timer and starts
    a new one, so a burst fires exactly once, ``delay`` after its last event.
    Different paths never share a timer.
    """

    def __init__(self, delay: float, handler: Callable[[Path], None],
                 timer_factory: Optional[TimerFactory] = None):
        """Initialize the debouncer.

        Args:
            delay: Quiet period in seconds
            handler: Called with the path once its timer expires
            timer_factory: Schedules callbacks; defaults to ``threading.Timer``
        """
        self.delay = delay
        self._handler = handler
        self._timer_factory = timer_factory or _threading_timer
        self._pending: Dict[Path, PendingTransfer] = {}
        self._lock = threading.Lock()

    def notify(self, path: Path) -> None:
        """Register a change for ``path``, restarting its quiet period."""
        path = Path(path)
        with self._lock:
            previous = self._pending.pop(path, None)
            if previous is not None:
                previous.timer.cancel()
                logger.debug(f"Reset debounce window for {path}")

            entry = PendingTransfer(path=path, timer=None)
            timer = self._timer_factory(self.delay, self._fire, entry)
            if timer is None:
                logger.debug(f"Not scheduling {path}: shutting down")
                return
            entry.timer = timer
            self._pending[path] = entry

    def _fire(self, entry: PendingTransfer) -> None:
        logger.debug(f"Processing debounced file: {entry.path}")
        try:
            self._handler(entry.path)
        finally:
            with self._lock:
                # A newer notify may already own the slot.
                if self._pending.get(entry.path) is entry:
                    del self._pending[entry.path]

    def cancel_all(self) -> int:
        """Cancel every timer that has not fired yet.

        Returns:
            Number of pending entries dropped
        """
        with self._lock:
            entries = list(self._pending.values())
            self._pending.clear()
        for entry in entries:
            entry.timer.cancel()
        return len(entries)
