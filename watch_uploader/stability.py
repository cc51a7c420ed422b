"""
Module for detecting when a file has stopped growing.
"""
import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class StabilityError(Exception):
    """Raised when a file vanished or never settled during the stability check."""


class StabilityDetector:
    """Polls a file's size until it holds still for a settle window."""

    def __init__(self, min_stable: float, poll_interval: float,
                 timeout: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 stat: Callable[[Path], os.stat_result] = os.stat):
        """Initialize the detector.

        Args:
            min_stable: Seconds the size must stay unchanged
            poll_interval: Seconds between size checks
            timeout: Optional upper bound on the whole wait; None waits forever
            clock: Monotonic time source
            sleep: Blocking sleep used between polls
            stat: Stat function used to read the size
        """
        self.min_stable = min_stable
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._stat = stat

    def wait(self, path: Path) -> int:
        """Block until the size of ``path`` has been constant for ``min_stable``.

        Only the calling thread blocks. The window restarts every time the
        size differs from the previous poll.

        Args:
            path: File to watch

        Returns:
            The settled size in bytes

        Raises:
            StabilityError: If the file cannot be stat'ed or the timeout elapses
        """
        last_size = -1
        began = self._clock()
        stable_since = began

        while True:
            try:
                current_size = self._stat(path).st_size
            except OSError as e:
                raise StabilityError(f"could not stat {path} during stability check: {e}") from e

            now = self._clock()
            if last_size == -1:
                last_size = current_size
            elif current_size != last_size:
                logger.debug(f"{path} changed size {last_size} -> {current_size}, restarting window")
                last_size = current_size
                stable_since = now

            if now - stable_since >= self.min_stable:
                return current_size

            if self.timeout is not None and now - began >= self.timeout:
                raise StabilityError(
                    f"{path} did not settle within {self.timeout:.1f}s"
                )

            self._sleep(self.poll_interval)
