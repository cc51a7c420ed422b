"""
Module containing data models for the watch uploader.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class AttemptState(str, Enum):
    """States of a single upload attempt."""
    START = "start"
    STABILITY_CHECK = "stability-check"
    REMOTE_EXISTENCE_CHECK = "remote-existence-check"
    TRANSFER = "transfer"
    VERIFY = "verify"
    LOCAL_DELETE = "local-delete"
    DONE = "done"
    ABORTED = "aborted"


class UploadOutcome(str, Enum):
    """How an upload attempt ended."""
    UPLOADED = "uploaded"
    SKIPPED_EXISTING = "skipped-existing"
    FAILED = "failed"
    # file vanished or was a directory before anything was attempted
    IGNORED = "ignored"


@dataclass(frozen=True)
class RemoteObjectIdentity:
    """Where a local file lands in the object store."""
    bucket: str
    name: str

    @classmethod
    def for_path(cls, bucket: str, path: Path) -> "RemoteObjectIdentity":
        # Base name only; same-named files from different folders collide.
        return cls(bucket=bucket, name=path.name)

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.name}"


@dataclass
class PendingTransfer:
    """A debounced path waiting for its quiet period to elapse."""
    path: Path
    timer: Any
    created_at: float = field(default_factory=time.monotonic)


@dataclass
class AttemptResult:
    """Represents the result of a single upload attempt."""
    file_path: Path
    object_name: str
    outcome: UploadOutcome
    final_state: AttemptState
    aborted_at: Optional[AttemptState] = None
    error: Optional[str] = None
    size_bytes: Optional[int] = None
    local_deleted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": str(self.file_path),
            "object_name": self.object_name,
            "outcome": self.outcome.value,
            "final_state": self.final_state.value,
            "aborted_at": self.aborted_at.value if self.aborted_at else None,
            "error": self.error,
            "size_bytes": self.size_bytes,
            "local_deleted": self.local_deleted,
        }


@dataclass
class OutcomeSummary:
    """Represents a summary of attempts seen during one run."""
    total_attempts: int
    uploaded: int
    skipped_existing: int
    failed: int
    ignored: int
    bytes_uploaded: int
