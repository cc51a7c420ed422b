"""
Tests for desktop notifications.
"""
import subprocess
from unittest.mock import patch

from watch_uploader import notify
from watch_uploader.notify import MacOSNotifier, NullNotifier, default_notifier


def test_macos_notifier_runs_osascript():
    with patch('watch_uploader.notify.subprocess.run') as run:
        MacOSNotifier(subtitle="tests").notify("File Uploaded", 'Uploaded "report.csv"')

    argv = run.call_args.args[0]
    assert argv[:2] == ["osascript", "-e"]
    assert 'with title "File Uploaded"' in argv[2]
    assert '\\"report.csv\\"' in argv[2]
    assert 'subtitle "tests"' in argv[2]


def test_macos_notifier_swallows_failures(caplog):
    error = subprocess.CalledProcessError(1, ["osascript"])
    with patch('watch_uploader.notify.subprocess.run', side_effect=error):
        MacOSNotifier().notify("Title", "message")

    assert "Error sending macOS notification" in caplog.text


def test_missing_osascript_is_swallowed():
    with patch('watch_uploader.notify.subprocess.run', side_effect=FileNotFoundError("osascript")):
        MacOSNotifier().notify("Title", "message")


def test_null_notifier_does_nothing():
    NullNotifier().notify("Title", "message")


def test_default_notifier_depends_on_platform(monkeypatch):
    monkeypatch.setattr(notify, "IS_MACOS", True)
    assert isinstance(default_notifier(), MacOSNotifier)

    monkeypatch.setattr(notify, "IS_MACOS", False)
    assert isinstance(default_notifier(), NullNotifier)
