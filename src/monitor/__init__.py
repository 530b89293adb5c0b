"""Log tailing, batching and debounce timers feeding the announcement pipeline."""

from .collector import Batch, BatchCollector, CollectorStats, TimedAnnouncement
from .config import MonitorConfig, MonitorConfigurationError
from .errors import LogReadError, MonitorError, TimerRaceViolation
from .log_source import LogFileTail, NewestLogFileTail, find_most_recent_log
from .service import LogMonitor
from .timers import TimerEntry, TimerRegistry

__all__ = [
    "Batch",
    "BatchCollector",
    "CollectorStats",
    "LogFileTail",
    "LogMonitor",
    "LogReadError",
    "MonitorConfig",
    "MonitorConfigurationError",
    "MonitorError",
    "NewestLogFileTail",
    "TimedAnnouncement",
    "TimerEntry",
    "TimerRaceViolation",
    "TimerRegistry",
    "find_most_recent_log",
]
