"""Configured message definitions and the match results derived from them."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional, Union

KIND_SIMPLE = "simple"
KIND_TIMED_DELAY = "timed_delay"

MatchKind = Literal["simple", "timed_delay"]


@dataclass(frozen=True)
class SimpleMessage:
    """Announce immediately when `pattern` appears in a log line."""
    pattern: str
    announcement: str

    @property
    def kind(self) -> MatchKind:
        return KIND_SIMPLE


@dataclass(frozen=True)
class TimedDelayMessage:
    """Announce `delay_seconds` after the latest line containing `pattern`."""
    pattern: str
    announcement: str
    delay_seconds: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.delay_seconds) or self.delay_seconds < 0:
            raise ValueError("delay_seconds must be a finite, non-negative number")

    @property
    def kind(self) -> MatchKind:
        return KIND_TIMED_DELAY


MessageDefinition = Union[SimpleMessage, TimedDelayMessage]


@dataclass(frozen=True)
class MatchResult:
    kind: MatchKind
    pattern: str
    announcement: str
    delay_seconds: Optional[float] = None

    @property
    def is_timed(self) -> bool:
        return self.kind == KIND_TIMED_DELAY

    @classmethod
    def from_definition(cls, definition: MessageDefinition) -> "MatchResult":
        if isinstance(definition, TimedDelayMessage):
            return cls(
                kind=KIND_TIMED_DELAY,
                pattern=definition.pattern,
                announcement=definition.announcement,
                delay_seconds=definition.delay_seconds,
            )
        return cls(
            kind=KIND_SIMPLE,
            pattern=definition.pattern,
            announcement=definition.announcement,
        )
