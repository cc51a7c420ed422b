"""
Module for moving one local file into S3 and removing the local copy.

Each call to ``UploadPipeline.process`` is a one-shot attempt:

    start -> stability-check -> remote-existence-check -> transfer
          -> verify -> local-delete -> done

Any step may end the attempt as ``aborted``. Aborted attempts are never
retried here; the next change notification for the path starts over.
If the object already exists remotely the transfer is skipped and the
local file is deleted, without comparing contents.
"""
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from .auth import AuthContext, AuthError, AuthSelector
from .config import WatchConfig
from .models import AttemptResult, AttemptState, RemoteObjectIdentity, UploadOutcome
from .notify import TITLE_EXISTED, TITLE_FAILED, TITLE_UPLOADED, Notifier, NullNotifier
from .stability import StabilityDetector, StabilityError
from .store import S3ObjectStore, StoreError
from .tracker import OutcomeTracker

logger = logging.getLogger(__name__)

StoreFactory = Callable[[AuthContext, WatchConfig], S3ObjectStore]


class AttemptAborted(Exception):
    """Ends the current attempt in the ``aborted`` state."""

    def __init__(self, state: AttemptState, reason: str,
                 outcome: UploadOutcome = UploadOutcome.FAILED,
                 notify: bool = False):
        super().__init__(reason)
        self.state = state
        self.outcome = outcome
        self.notify = notify


class UploadPipeline:
    """Runs upload attempts for single files."""

    def __init__(self, config: WatchConfig, auth_selector: AuthSelector,
                 store_factory: StoreFactory = S3ObjectStore.from_auth,
                 notifier: Optional[Notifier] = None,
                 detector: Optional[StabilityDetector] = None,
                 tracker: Optional[OutcomeTracker] = None,
                 read_size: int = 1024 * 1024):
        """Initialize the pipeline.

        Args:
            config: Service configuration
            auth_selector: Resolves credentials once per attempt
            store_factory: Builds an object store from resolved credentials
            notifier: Receives user-facing notifications
            detector: Waits for files to stop growing
            tracker: Records the outcome of every attempt
            read_size: Bytes read from the local file per write
        """
        self.config = config
        self.auth_selector = auth_selector
        self.store_factory = store_factory
        self.notifier = notifier or NullNotifier()
        self.detector = detector or StabilityDetector(
            config.stability_seconds,
            config.poll_interval,
            timeout=config.stability_timeout
        )
        self.tracker = tracker
        self.read_size = read_size

    def process(self, file_path: Path) -> AttemptResult:
        """Run one attempt for ``file_path``. Never raises for file-level faults.

        Args:
            file_path: Local file to upload

        Returns:
            AttemptResult describing how the attempt ended
        """
        file_path = Path(file_path)
        identity = RemoteObjectIdentity.for_path(self.config.bucket, file_path)

        try:
            result = self._run(file_path, identity)
        except AttemptAborted as abort:
            result = AttemptResult(
                file_path=file_path,
                object_name=identity.name,
                outcome=abort.outcome,
                final_state=AttemptState.ABORTED,
                aborted_at=abort.state,
                error=str(abort)
            )
            if abort.outcome is UploadOutcome.IGNORED:
                logger.debug(f"Skipping {file_path}: {abort}")
            else:
                logger.error(f"Failed to upload {file_path} during {abort.state.value}: {abort}")
            if abort.notify and self.config.notify_failures:
                self._notify(TITLE_FAILED, f"Could not upload '{identity.name}' to bucket '{identity.bucket}': {abort}")

        if self.tracker:
            self.tracker.record(result)
        return result

    def _enter(self, state: AttemptState, file_path: Path) -> AttemptState:
        logger.debug(f"{file_path}: -> {state.value}")
        return state

    def _run(self, file_path: Path, identity: RemoteObjectIdentity) -> AttemptResult:
        state = self._enter(AttemptState.START, file_path)
        try:
            if file_path.is_dir():
                raise AttemptAborted(state, "is a directory", UploadOutcome.IGNORED)
            file_path.stat()
        except FileNotFoundError:
            raise AttemptAborted(state, "file no longer exists", UploadOutcome.IGNORED)
        except OSError as e:
            raise AttemptAborted(state, f"error getting file info: {e}")

        state = self._enter(AttemptState.STABILITY_CHECK, file_path)
        try:
            size_bytes = self.detector.wait(file_path)
        except StabilityError as e:
            raise AttemptAborted(state, str(e))

        state = self._enter(AttemptState.REMOTE_EXISTENCE_CHECK, file_path)
        try:
            auth = self.auth_selector.resolve()
            logger.debug(f"{file_path}: authenticating with {auth.description}")
            store = self.store_factory(auth, self.config)
            exists = store.exists(identity.bucket, identity.name)
        except (AuthError, StoreError) as e:
            raise AttemptAborted(state, str(e), notify=True)

        if exists:
            logger.info(f"Skipped {file_path}: {identity} already exists, deleting local copy")
            deleted = self._delete_local(file_path)
            self._notify(TITLE_EXISTED, f"File '{identity.name}' already existed in bucket '{identity.bucket}'. Local file deleted.")
            return AttemptResult(
                file_path=file_path,
                object_name=identity.name,
                outcome=UploadOutcome.SKIPPED_EXISTING,
                final_state=self._enter(AttemptState.DONE, file_path),
                size_bytes=size_bytes,
                local_deleted=deleted
            )

        state = self._enter(AttemptState.TRANSFER, file_path)
        try:
            f = open(file_path, 'rb')
        except OSError as e:
            raise AttemptAborted(state, f"error opening file: {e}")

        with f:
            writer = store.open_writer(identity.bucket, identity.name)
            try:
                while True:
                    chunk = f.read(self.read_size)
                    if not chunk:
                        break
                    writer.write(chunk)
            except (OSError, StoreError) as e:
                writer.abort()
                raise AttemptAborted(state, f"error uploading to {identity}: {e}", notify=True)

            state = self._enter(AttemptState.VERIFY, file_path)
            try:
                writer.close()
            except StoreError as e:
                # No cleanup of a possibly partial object.
                raise AttemptAborted(state, f"error closing writer: {e}", notify=True)

        logger.info(f"Uploaded {file_path} to {identity} ({writer.bytes_written} bytes)")
        deleted = self._delete_local(file_path)
        self._notify(TITLE_UPLOADED, f"Successfully uploaded '{identity.name}' to bucket '{identity.bucket}'.")
        return AttemptResult(
            file_path=file_path,
            object_name=identity.name,
            outcome=UploadOutcome.UPLOADED,
            final_state=self._enter(AttemptState.DONE, file_path),
            size_bytes=writer.bytes_written,
            local_deleted=deleted
        )

    def _delete_local(self, file_path: Path) -> bool:
        self._enter(AttemptState.LOCAL_DELETE, file_path)
        try:
            os.remove(file_path)
        except OSError as e:
            logger.warning(f"Error deleting local file {file_path}: {e}")
            return False
        logger.debug(f"Deleted local file: {file_path}")
        return True

    def _notify(self, title: str, message: str) -> None:
        try:
            self.notifier.notify(title, message)
        except Exception as e:
            logger.warning(f"Notification '{title}' failed: {e}")
