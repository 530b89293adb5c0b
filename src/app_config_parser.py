"""Validation of config.toml sections into the frozen settings used at startup."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Mapping, Optional

from app_config_schema import (
    AppConfig,
    AppConfigurationError,
    MonitorSettings,
    TTSSettings,
)
from patterns import (
    KIND_SIMPLE,
    KIND_TIMED_DELAY,
    MessageDefinition,
    SimpleMessage,
    TimedDelayMessage,
)

_MESSAGE_TYPES = {KIND_SIMPLE, KIND_TIMED_DELAY}


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Validate a loaded TOML document; raises AppConfigurationError naming the bad field."""
    monitor = _parse_monitor_settings(_section(raw, "monitor"), base_dir=base_dir)
    tts = _parse_tts_settings(_section(raw, "tts"), base_dir=base_dir)
    messages = _parse_messages(raw.get("messages", []))

    return AppConfig(
        monitor=monitor,
        tts=tts,
        messages=messages,
        source_file=source_file,
    )


def _parse_monitor_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> MonitorSettings:
    log_file = _as_str(section.get("log_file", ""), "monitor.log_file")
    log_directory = _as_str(section.get("log_directory", ""), "monitor.log_directory")
    if bool(log_file) == bool(log_directory):
        raise AppConfigurationError(
            "Exactly one of monitor.log_file or monitor.log_directory is required."
        )

    batch_window_ms = _as_float(section.get("batch_window_ms", 10.0), "monitor.batch_window_ms")
    if batch_window_ms < 0:
        raise AppConfigurationError("monitor.batch_window_ms must not be negative.")
    idle_retry_ms = _as_float(section.get("idle_retry_ms", 50.0), "monitor.idle_retry_ms")
    if idle_retry_ms <= 0:
        raise AppConfigurationError("monitor.idle_retry_ms must be greater than zero.")
    rescan_interval_seconds = _as_float(
        section.get("rescan_interval_seconds", 1.0),
        "monitor.rescan_interval_seconds",
    )
    if rescan_interval_seconds <= 0:
        raise AppConfigurationError(
            "monitor.rescan_interval_seconds must be greater than zero."
        )

    return MonitorSettings(
        log_file=_resolve_path(base_dir, log_file),
        log_directory=_resolve_path(base_dir, log_directory),
        log_file_prefix=(
            _as_str(section.get("log_file_prefix", "eqlog_"), "monitor.log_file_prefix")
            or "eqlog_"
        ),
        batch_window_ms=batch_window_ms,
        idle_retry_ms=idle_retry_ms,
        rescan_interval_seconds=rescan_interval_seconds,
    )


def _parse_tts_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> TTSSettings:
    return TTSSettings(
        model_path=_resolve_path(
            base_dir,
            _as_str(section.get("model_path", ""), "tts.model_path"),
        ),
        hf_filename=_as_str(section.get("hf_filename", ""), "tts.hf_filename"),
        hf_repo_id=_as_str(section.get("hf_repo_id", ""), "tts.hf_repo_id"),
        hf_revision=(
            _as_str(section.get("hf_revision", "main"), "tts.hf_revision") or "main"
        ),
        speaker_id=(
            _as_int(section.get("speaker_id"), "tts.speaker_id")
            if "speaker_id" in section
            else None
        ),
        output_device=(
            _as_int(section.get("output_device"), "tts.output_device")
            if "output_device" in section
            else None
        ),
        precache=_as_bool(section.get("precache", True), "tts.precache"),
    )


def _parse_messages(raw: Any) -> tuple[MessageDefinition, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise AppConfigurationError("[[messages]] must be an array of tables.")

    messages: list[MessageDefinition] = []
    for index, item in enumerate(raw):
        field_prefix = f"messages[{index}]"
        if not isinstance(item, Mapping):
            raise AppConfigurationError(f"{field_prefix} must be a table.")

        kind = _as_str(item.get("type", KIND_SIMPLE), f"{field_prefix}.type").lower()
        if kind not in _MESSAGE_TYPES:
            allowed = ", ".join(sorted(_MESSAGE_TYPES))
            raise AppConfigurationError(f"{field_prefix}.type must be one of: {allowed}.")

        pattern = _required_text(item, "pattern", field_prefix)
        announcement = _required_text(item, "announcement", field_prefix)
        if kind == KIND_SIMPLE:
            messages.append(SimpleMessage(pattern=pattern, announcement=announcement))
            continue

        if "timer_delay_in_seconds" not in item:
            raise AppConfigurationError(
                f"{field_prefix}.timer_delay_in_seconds is required for timed_delay messages."
            )
        delay = _as_float(
            item.get("timer_delay_in_seconds"),
            f"{field_prefix}.timer_delay_in_seconds",
        )
        if delay < 0:
            raise AppConfigurationError(
                f"{field_prefix}.timer_delay_in_seconds must not be negative."
            )
        messages.append(
            TimedDelayMessage(
                pattern=pattern,
                announcement=announcement,
                delay_seconds=delay,
            )
        )

    return tuple(messages)


def _section(root: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{name}] must be a table.")
    return raw


def _required_text(section: Mapping[str, Any], field: str, section_name: str) -> str:
    # Patterns and announcements keep their surrounding whitespace.
    value = section.get(field)
    if not isinstance(value, str):
        raise AppConfigurationError(f"{section_name}.{field} must be a string.")
    if not value.strip():
        raise AppConfigurationError(f"{section_name}.{field} is required.")
    return value


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be a number.")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be a number.") from error
    else:
        raise AppConfigurationError(f"{field} must be a number.")
    if not math.isfinite(number):
        raise AppConfigurationError(f"{field} must be a finite number.")
    return number


def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)
