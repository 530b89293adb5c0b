"""Timing defaults and state names for the log batch collector."""

from __future__ import annotations

DEFAULT_LOG_FILE_PREFIX = "eqlog_"

DEFAULT_BATCH_WINDOW_SECONDS = 0.010
DEFAULT_IDLE_RETRY_SECONDS = 0.050
DEFAULT_RESCAN_INTERVAL_SECONDS = 1.0

# A line longer than this without a newline is split rather than buffered further.
MAX_LINE_BYTES = 64 * 1024

# Re-poll cadence inside the batch window while no new line is available.
COLLECT_POLL_FRACTION = 0.2

STATE_IDLE = "idle"
STATE_COLLECTING = "collecting"
STATE_DISPATCHING = "dispatching"
