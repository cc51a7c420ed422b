"""
Test fixtures for the watch uploader.
"""
import heapq
import itertools
from typing import List, Optional, Tuple

import boto3
import pytest
from moto import mock_aws as moto_mock_aws

from watch_uploader.auth import AuthSelector
from watch_uploader.config import WatchConfig
from watch_uploader.stability import StabilityDetector
from watch_uploader.tracker import OutcomeTracker
from watch_uploader.uploader import UploadPipeline


class FakeCredentialStore:
    """In-memory stand-in for the keyring store."""

    def __init__(self, blob: Optional[bytes] = None):
        self.blob = blob
        self.reads = 0

    def get(self) -> Optional[bytes]:
        self.reads += 1
        return self.blob

    def put(self, blob: bytes) -> None:
        self.blob = blob


class RecordingNotifier:
    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def notify(self, title: str, message: str) -> None:
        self.sent.append((title, message))

    @property
    def titles(self) -> List[str]:
        return [title for title, _ in self.sent]


class FakeTimer:
    def __init__(self, scheduler, due, callback, args):
        self.scheduler = scheduler
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual clock that fires debounce timers only when advanced."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()
        self.fired_at: List[Tuple[float, tuple]] = []

    def call_later(self, delay, callback, *args):
        timer = FakeTimer(self, self.now + delay, callback, args)
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            self.now = due
            if timer.cancelled:
                continue
            timer.fired = True
            self.fired_at.append((due, timer.args))
            timer.callback(*timer.args)
        self.now = target

    @property
    def live_timers(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep tests away from real AWS credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def tmp_watch_dir(tmp_path):
    """Create a temporary directory to watch."""
    watch_dir = tmp_path / "outbox"
    watch_dir.mkdir()
    return watch_dir


@pytest.fixture
def tmp_log_dir(tmp_path):
    """Create a temporary directory for logs."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def mock_aws():
    """Mock S3 and STS using moto."""
    with moto_mock_aws():
        s3 = boto3.client('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture
def watch_config(tmp_watch_dir):
    """Configuration with short timings for tests."""
    return WatchConfig(
        watch_dir=tmp_watch_dir,
        bucket="test-bucket",
        region="us-east-1",
        debounce_seconds=0.05,
        stability_seconds=0.05,
        poll_interval=0.01,
        shutdown_grace=2.0,
        notify_failures=True
    )


@pytest.fixture
def credential_store():
    return FakeCredentialStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def outcome_tracker():
    return OutcomeTracker()


@pytest.fixture
def pipeline(watch_config, credential_store, notifier, outcome_tracker):
    """Pipeline with an instant stability check."""
    return UploadPipeline(
        watch_config,
        AuthSelector(watch_config, credential_store),
        notifier=notifier,
        detector=StabilityDetector(0.02, 0.01),
        tracker=outcome_tracker
    )


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def fake_clock():
    return FakeClock()
