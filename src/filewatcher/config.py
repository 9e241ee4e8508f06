"""Configuration for the file watcher package."""

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .models import Checksum, crc32_checksum


_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class WatcherConfig:
    """
    Configuration options for the file watcher.

    Attributes:
        interval_ms: Reconciliation period in milliseconds; <= 0 disables polling
        validate: Compare content fingerprints to filter no-op writes
        full_name: Report absolute paths (True) or paths as given to watch()
        checksum: Fingerprint function applied to file contents when validating
    """
    interval_ms: int = 10000
    validate: bool = False
    full_name: bool = True
    checksum: Checksum = field(default=crc32_checksum)

    def __post_init__(self):
        if not isinstance(self.interval_ms, int):
            self.interval_ms = int(float(self.interval_ms))

    @property
    def polling_enabled(self) -> bool:
        """Whether the reconciliation loop should run at all."""
        return self.interval_ms > 0

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "WatcherConfig":
        """
        Create from an options mapping.

        Recognizes ``interval``, ``validate`` and ``fullName`` (or the
        snake_case field names). Unknown keys are ignored.

        Args:
            options: Mapping of option names to values

        Returns:
            A new WatcherConfig
        """
        options = options or {}
        config = cls()
        if "interval" in options:
            config.interval_ms = int(options["interval"])
        elif "interval_ms" in options:
            config.interval_ms = int(options["interval_ms"])
        if "validate" in options:
            config.validate = bool(options["validate"])
        if "fullName" in options:
            config.full_name = bool(options["fullName"])
        elif "full_name" in options:
            config.full_name = bool(options["full_name"])
        if options.get("checksum") is not None:
            config.checksum = options["checksum"]
        return config

    @classmethod
    def from_env(cls, prefix: str = "FILEWATCHER_") -> "WatcherConfig":
        """Create from environment variables, falling back to defaults."""
        config = cls()
        interval = os.environ.get(f"{prefix}INTERVAL_MS")
        if interval:
            config.interval_ms = int(interval)
        validate = os.environ.get(f"{prefix}VALIDATE")
        if validate:
            config.validate = validate.strip().lower() in _TRUE_VALUES
        full_name = os.environ.get(f"{prefix}FULL_NAME")
        if full_name:
            config.full_name = full_name.strip().lower() in _TRUE_VALUES
        return config
