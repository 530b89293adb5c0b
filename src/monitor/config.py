"""Configuration model for log tailing and batch timing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .constants import (
    DEFAULT_BATCH_WINDOW_SECONDS,
    DEFAULT_IDLE_RETRY_SECONDS,
    DEFAULT_LOG_FILE_PREFIX,
    DEFAULT_RESCAN_INTERVAL_SECONDS,
)
from .contracts import LogSourceLike
from .log_source import LogFileTail, NewestLogFileTail


class MonitorConfigurationError(Exception):
    """Raised when monitor configuration is invalid."""


@dataclass(frozen=True)
class MonitorConfig:
    """Validated log source location and collector timing."""
    log_file: str = ""
    log_directory: str = ""
    log_file_prefix: str = DEFAULT_LOG_FILE_PREFIX
    batch_window_seconds: float = DEFAULT_BATCH_WINDOW_SECONDS
    idle_retry_seconds: float = DEFAULT_IDLE_RETRY_SECONDS
    rescan_interval_seconds: float = DEFAULT_RESCAN_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        if bool(self.log_file) == bool(self.log_directory):
            raise MonitorConfigurationError(
                "Exactly one of monitor.log_file or monitor.log_directory must be set"
            )
        if self.log_directory and not self.log_file_prefix:
            raise MonitorConfigurationError("monitor.log_file_prefix cannot be empty")
        if self.batch_window_seconds < 0:
            raise MonitorConfigurationError(
                f"monitor.batch_window_ms must be >= 0, got: {self.batch_window_seconds * 1000:g}"
            )
        if self.idle_retry_seconds <= 0:
            raise MonitorConfigurationError(
                f"monitor.idle_retry_ms must be > 0, got: {self.idle_retry_seconds * 1000:g}"
            )
        if self.rescan_interval_seconds <= 0:
            raise MonitorConfigurationError(
                "monitor.rescan_interval_seconds must be > 0, "
                f"got: {self.rescan_interval_seconds}"
            )

    def build_log_source(self, logger: Optional[logging.Logger] = None) -> LogSourceLike:
        if self.log_file:
            return LogFileTail(self.log_file, logger=logger)
        return NewestLogFileTail(
            self.log_directory,
            self.log_file_prefix,
            rescan_interval_seconds=self.rescan_interval_seconds,
            logger=logger,
        )

    @classmethod
    def from_settings(cls, settings) -> "MonitorConfig":
        return cls(
            log_file=(settings.log_file or "").strip(),
            log_directory=(settings.log_directory or "").strip(),
            log_file_prefix=(settings.log_file_prefix or "").strip(),
            batch_window_seconds=settings.batch_window_ms / 1000.0,
            idle_retry_seconds=settings.idle_retry_ms / 1000.0,
            rescan_interval_seconds=settings.rescan_interval_seconds,
        )
