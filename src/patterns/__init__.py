from .definitions import (
    KIND_SIMPLE,
    KIND_TIMED_DELAY,
    MatchResult,
    MessageDefinition,
    SimpleMessage,
    TimedDelayMessage,
)
from .matcher import match_line

__all__ = [
    "KIND_SIMPLE",
    "KIND_TIMED_DELAY",
    "MatchResult",
    "MessageDefinition",
    "SimpleMessage",
    "TimedDelayMessage",
    "match_line",
]
