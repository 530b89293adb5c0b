class MonitorError(Exception):
    """Base exception for log monitoring."""


class LogReadError(MonitorError):
    """Raised when the log source cannot be read.

    Transient errors are retried on the next poll; terminal errors (the file or
    directory is gone) stop the collector.
    """

    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class TimerRaceViolation(MonitorError):
    """Raised when a debounce timer fires in a state that should be unreachable."""
