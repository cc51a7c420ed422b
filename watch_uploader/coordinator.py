"""
Module for wiring the folder monitor, debouncer and upload pipeline together.
"""
import logging
import threading
from contextlib import nullcontext
from pathlib import Path
from typing import Callable, Optional

from .auth import AuthSelector
from .config import WatchConfig
from .credentials import KeyringCredentialStore
from .debounce import Debouncer, TimerFactory
from .models import AttemptResult
from .monitor import FolderMonitor, WatcherError
from .notify import Notifier, default_notifier
from .scanner import FileScanner
from .tasks import TaskGroup
from .tracker import OutcomeTracker
from .uploader import UploadPipeline

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Watches a folder and uploads every file that settles in it."""

    def __init__(self, config: WatchConfig,
                 pipeline: Optional[UploadPipeline] = None,
                 notifier: Optional[Notifier] = None,
                 credential_store: Optional[KeyringCredentialStore] = None,
                 tracker: Optional[OutcomeTracker] = None,
                 timer_factory: Optional[TimerFactory] = None,
                 monitor_factory: Callable[..., FolderMonitor] = FolderMonitor):
        """Initialize the upload coordinator.

        Args:
            config: Validated service configuration
            pipeline: Upload pipeline; built from the other arguments if omitted
            notifier: Notification sink; platform default if omitted
            credential_store: Keyring store for static credentials
            tracker: Outcome tracker shared with the pipeline
            timer_factory: Debounce timer scheduler; tracked threads by default
            monitor_factory: Builds the filesystem event source
        """
        self.config = config
        self.watch_dir = config.watch_dir.absolute()
        self.tasks = TaskGroup()
        self.tracker = tracker or OutcomeTracker(log_dir=config.log_dir)
        self.auth = AuthSelector(
            config,
            credential_store or KeyringCredentialStore(
                config.credential_service,
                config.credential_account
            )
        )
        self.pipeline = pipeline or UploadPipeline(
            config,
            self.auth,
            notifier=notifier or default_notifier(),
            tracker=self.tracker
        )
        self.scanner = FileScanner()
        self.debouncer = Debouncer(
            config.debounce_seconds,
            self._run_attempt,
            timer_factory=timer_factory or self.tasks.call_later
        )
        self.monitor = monitor_factory(self.watch_dir, self.debouncer.notify)
        self._slots = (
            threading.BoundedSemaphore(config.max_concurrent_uploads)
            if config.max_concurrent_uploads else None
        )

    def _run_attempt(self, file_path: Path) -> AttemptResult:
        with self._slots or nullcontext():
            return self.pipeline.process(file_path)

    def start(self) -> None:
        """Start monitoring and queue every file already in the folder.

        Raises:
            WatcherError: If the event source cannot be started
        """
        logger.info(f"Starting file transfer monitor for folder: {self.watch_dir}")
        logger.info(f"Target bucket: {self.config.bucket}")
        logger.info(f"Authentication strategy: {self.auth.describe_strategy()}")
        logger.debug(
            f"Debounce {self.config.debounce_seconds}s, stability window "
            f"{self.config.stability_seconds}s polled every {self.config.poll_interval}s"
        )

        self.monitor.start()

        files = self.scanner.scan_folder(self.watch_dir)
        for file_path in files:
            logger.debug(f"Found existing file during initial scan: {file_path.name}")
            self.debouncer.notify(file_path)
        logger.info(f"Initial scan complete: {len(files)} existing files queued")

    def run(self, stop_event: threading.Event, check_interval: float = 0.5) -> None:
        """Run until ``stop_event`` is set, then shut down.

        Raises:
            WatcherError: If the event source dies while running
        """
        self.start()
        try:
            while not stop_event.wait(check_interval):
                if not self.monitor.is_alive:
                    raise WatcherError("file system watcher stopped unexpectedly")
        finally:
            self.stop()

    def stop(self) -> bool:
        """Stop accepting events and give in-flight uploads a grace period.

        Returns:
            True if every in-flight attempt finished within the grace period
        """
        if self.tasks.closed:
            logger.debug("Coordinator already stopped")
            return self.tasks.drain(timeout=0)

        self.monitor.stop()
        dropped = self.debouncer.cancel_all()
        if dropped:
            logger.info(f"Dropped {dropped} pending files at shutdown")
        self.tasks.close()
        drained = self.tasks.drain(timeout=self.config.shutdown_grace)
        self.tracker.log_summary()
        return drained
