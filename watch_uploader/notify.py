"""
Desktop notifications for finished uploads.

On macOS a banner is shown through ``osascript``. Everywhere else the
notifications are discarded.
"""
import logging
import subprocess
import sys
from typing import Protocol

logger = logging.getLogger(__name__)

IS_MACOS = sys.platform == "darwin"

TITLE_UPLOADED = "File Uploaded"
TITLE_EXISTED = "File Existed"
TITLE_FAILED = "Upload Failed"


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None: ...


class NullNotifier:
    """Drops every notification."""

    def notify(self, title: str, message: str) -> None:
        logger.debug(f"Notification ({title}): {message}")


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class MacOSNotifier:
    """Shows a Notification Center banner via ``osascript``. Failures are logged only."""

    def __init__(self, subtitle: str = "watch-uploader", timeout: float = 10):
        self.subtitle = subtitle
        self.timeout = timeout

    def notify(self, title: str, message: str) -> None:
        script = (
            f"display notification {_applescript_quote(message)} "
            f"with title {_applescript_quote(title)} "
            f"subtitle {_applescript_quote(self.subtitle)}"
        )
        try:
            subprocess.run(
                ["osascript", "-e", script],
                check=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Error sending macOS notification: {e}")


def default_notifier() -> Notifier:
    """Return the notifier suited to the current platform."""
    return MacOSNotifier() if IS_MACOS else NullNotifier()
