"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from patterns import MessageDefinition

DEFAULT_CONFIG_FILE = "config.toml"


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class MonitorSettings:
    """Log source location and batching timings from `[monitor]`."""
    log_file: str = ""
    log_directory: str = ""
    log_file_prefix: str = "eqlog_"
    batch_window_ms: float = 10.0
    idle_retry_ms: float = 50.0
    rescan_interval_seconds: float = 1.0


@dataclass(frozen=True)
class TTSSettings:
    """Piper voice and playback settings from `[tts]`."""
    model_path: str = ""
    hf_filename: str = ""
    hf_repo_id: str = ""
    hf_revision: str = "main"
    speaker_id: Optional[int] = None
    output_device: Optional[int] = None
    precache: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Complete typed runtime configuration loaded from `config.toml`."""
    monitor: MonitorSettings
    tts: TTSSettings
    messages: tuple[MessageDefinition, ...]
    source_file: str

    @property
    def announcements(self) -> list[str]:
        """Distinct announcement texts in definition order."""
        return list(dict.fromkeys(message.announcement for message in self.messages))
