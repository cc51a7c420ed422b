"""
Module for turning filesystem notifications into change callbacks.

Uses the watchdog library. Created, modified (which includes attribute
changes), closed-after-write and renamed-into-place events are treated alike.
"""
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class WatcherError(RuntimeError):
    """Raised when the filesystem event source cannot be started or has died."""


class ChangeHandler(FileSystemEventHandler):
    """Watchdog handler that forwards file paths to a callback."""

    def __init__(self, on_change: Callable[[Path], None], folder: Optional[Path] = None):
        super().__init__()
        self._on_change = on_change
        self._folder = folder.resolve() if folder is not None else None

    def _forward(self, event: FileSystemEvent, raw_path) -> None:
        path = Path(os.fsdecode(raw_path))
        logger.debug(f"Detected event: {event.event_type} on file: {path}")
        try:
            self._on_change(path)
        except Exception:
            logger.exception(f"Error handling {event.event_type} event for {path}")

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event, event.src_path)

    def on_closed(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """A rename into place counts as a new file under the destination name."""
        if event.is_directory:
            return
        dest = Path(os.fsdecode(event.dest_path))
        if self._folder is not None and dest.parent.resolve() != self._folder:
            logger.debug(f"Ignoring move out of watched folder: {dest}")
            return
        self._forward(event, event.dest_path)


class FolderMonitor:
    """Watches one folder (non-recursively) for new or changed files."""

    def __init__(self, folder: Path, on_change: Callable[[Path], None],
                 observer_factory: Callable[[], Any] = Observer):
        self.folder = folder
        self._handler = ChangeHandler(on_change, folder)
        self._observer_factory = observer_factory
        self._observer: Optional[Any] = None

    def start(self) -> None:
        """Start watching the folder.

        Raises:
            WatcherError: If the observer cannot watch the folder
        """
        if not self.folder.is_dir():
            raise WatcherError(f"Cannot watch {self.folder}: not a directory")

        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, str(self.folder), recursive=False)
            observer.start()
        except OSError as e:
            raise WatcherError(f"Error adding folder '{self.folder}' to watcher: {e}") from e

        self._observer = observer
        logger.debug(f"Monitoring folder '{self.folder}' for file system events")

    def stop(self, timeout: float = 5) -> None:
        """Stop watching and release the observer."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None
        logger.debug("Stopped monitoring")

    @property
    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
