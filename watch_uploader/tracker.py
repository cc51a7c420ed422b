"""
Module for tracking the outcomes of upload attempts.
"""
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from .models import AttemptResult, OutcomeSummary, UploadOutcome

logger = logging.getLogger(__name__)

AUDIT_LOG_NAME = "uploads.jsonl"


class OutcomeTracker:
    """Counts attempt outcomes and optionally appends them to an audit log.

    The audit log is write-only; it is never read back to resume work.
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """Initialize the outcome tracker.

        Args:
            log_dir: Directory for the JSON-lines audit log. If None, counts
                are kept in memory only.
        """
        self.log_dir = log_dir
        self.audit_file = log_dir / AUDIT_LOG_NAME if log_dir else None
        if log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)

        self._counts: Dict[UploadOutcome, int] = {outcome: 0 for outcome in UploadOutcome}
        self._bytes_uploaded = 0
        self._lock = threading.Lock()

    def record(self, result: AttemptResult) -> None:
        """Record the result of one attempt.

        Args:
            result: AttemptResult for the file
        """
        with self._lock:
            self._counts[result.outcome] += 1
            if result.outcome is UploadOutcome.UPLOADED and result.size_bytes:
                self._bytes_uploaded += result.size_bytes
            self._append(result)

    def _append(self, result: AttemptResult) -> None:
        if not self.audit_file:
            return

        log_data = {"timestamp": datetime.now().isoformat(), **result.to_dict()}
        try:
            with open(self.audit_file, 'a') as f:
                f.write(json.dumps(log_data) + "\n")
        except OSError as e:
            logger.error(f"Error writing audit log {self.audit_file}: {e}")

    def count(self, outcome: UploadOutcome) -> int:
        with self._lock:
            return self._counts[outcome]

    def summary(self) -> OutcomeSummary:
        with self._lock:
            return OutcomeSummary(
                total_attempts=sum(self._counts.values()),
                uploaded=self._counts[UploadOutcome.UPLOADED],
                skipped_existing=self._counts[UploadOutcome.SKIPPED_EXISTING],
                failed=self._counts[UploadOutcome.FAILED],
                ignored=self._counts[UploadOutcome.IGNORED],
                bytes_uploaded=self._bytes_uploaded
            )

    def log_summary(self) -> OutcomeSummary:
        """Log the summary of every attempt seen so far."""
        summary = self.summary()
        logger.info(
            f"{summary.uploaded} uploaded, {summary.skipped_existing} already present, "
            f"{summary.failed} failed ({summary.bytes_uploaded} bytes uploaded)"
        )
        return summary
