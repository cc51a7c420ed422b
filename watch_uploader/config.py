"""
Module for building and validating the watch uploader configuration.
"""
import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_SERVICE = "watch-uploader-credentials"
DEFAULT_CREDENTIAL_ACCOUNT = "default"


class ConfigError(ValueError):
    """Raised when the configuration cannot be used to start watching."""


@dataclass(frozen=True)
class WatchConfig:
    """Immutable settings fixed at process start."""
    watch_dir: Optional[Path] = None
    bucket: str = ""
    expected_bucket_owner: Optional[str] = None
    role_arn: Optional[str] = None
    role_session_name: str = "watch-uploader"
    role_duration_seconds: int = 3600
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    verbose: bool = False
    debounce_seconds: float = 1.0
    stability_seconds: float = 0.5
    poll_interval: float = 0.1
    stability_timeout: Optional[float] = None
    max_concurrent_uploads: Optional[int] = None
    notify_failures: bool = True
    shutdown_grace: float = 1.0
    chunk_size: int = 8 * 1024 * 1024
    credential_service: str = DEFAULT_CREDENTIAL_SERVICE
    credential_account: str = DEFAULT_CREDENTIAL_ACCOUNT
    log_dir: Optional[Path] = None

    def validate(self) -> "WatchConfig":
        """Check the settings needed before any watching begins.

        Returns:
            The same config, for chaining

        Raises:
            ConfigError: If a required value is missing or out of range
        """
        if not self.watch_dir:
            raise ConfigError("a source folder is required")
        if not self.bucket:
            raise ConfigError("a destination bucket is required")
        if not self.watch_dir.exists():
            raise ConfigError(f"Source folder does not exist: {self.watch_dir}")
        if not self.watch_dir.is_dir():
            raise ConfigError(f"{self.watch_dir} is not a directory")

        for name in ("debounce_seconds", "stability_seconds", "poll_interval"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.stability_timeout is not None and self.stability_timeout <= 0:
            raise ConfigError("stability_timeout must be positive")
        if self.max_concurrent_uploads is not None and self.max_concurrent_uploads < 1:
            raise ConfigError("max_concurrent_uploads must be at least 1")
        if self.chunk_size < 5 * 1024 * 1024:
            raise ConfigError("chunk_size must be at least 5 MiB")
        if self.shutdown_grace < 0:
            raise ConfigError("shutdown_grace cannot be negative")
        return self

    def with_overrides(self, overrides: Mapping[str, Any]) -> "WatchConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        values = {k: v for k, v in overrides.items() if v is not None}
        for key in ("watch_dir", "log_dir"):
            if key in values:
                values[key] = Path(values[key]).expanduser()
        return replace(self, **values)


def load_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration values from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Error loading config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a JSON object")

    logger.debug(f"Loaded {len(data)} settings from {config_file}")
    return data


def build_config(file_values: Mapping[str, Any],
                 cli_values: Mapping[str, Any]) -> WatchConfig:
    """Merge file and command-line values over the defaults and validate.

    Command-line values win over file values; None means "not given".
    """
    return (
        WatchConfig()
        .with_overrides(file_values)
        .with_overrides(cli_values)
        .validate()
    )
