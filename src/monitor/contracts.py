"""Protocols for the collaborators the log monitor drives."""

from __future__ import annotations

from typing import Any, Optional, Protocol


class LogSourceLike(Protocol):
    """Line-oriented, non-blocking view of a growing log."""
    def read_line(self) -> Optional[str]:
        ...

    def close(self) -> None:
        ...


class AnnouncerLike(Protocol):
    """Fire-and-forget announcement entry point."""
    def submit(self, text: str) -> Any:
        ...


class TimerTriggerLike(Protocol):
    def trigger(self, pattern: str, announcement: str, delay_seconds: float) -> Any:
        ...
