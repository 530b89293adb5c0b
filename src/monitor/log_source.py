"""Non-blocking tailing of append-only game log files."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from .constants import (
    DEFAULT_LOG_FILE_PREFIX,
    DEFAULT_RESCAN_INTERVAL_SECONDS,
    MAX_LINE_BYTES,
)
from .errors import LogReadError


def find_most_recent_log(directory: Path, prefix: str = DEFAULT_LOG_FILE_PREFIX) -> Optional[Path]:
    """Return the most recently modified file in `directory` named `prefix*`."""
    try:
        entries = list(os.scandir(directory))
    except FileNotFoundError as error:
        raise LogReadError(f"Log directory not found: {directory}") from error
    except NotADirectoryError as error:
        raise LogReadError(f"Log directory is not a directory: {directory}") from error
    except OSError as error:
        raise LogReadError(
            f"Failed to read log directory {directory}: {error}",
            transient=True,
        ) from error

    most_recent: Optional[tuple[float, Path]] = None
    for entry in entries:
        if not entry.name.startswith(prefix):
            continue
        try:
            if not entry.is_file():
                continue
            mtime = entry.stat().st_mtime
        except OSError:
            # Vanished between listing and stat.
            continue
        if most_recent is None or mtime > most_recent[0]:
            most_recent = (mtime, Path(entry.path))

    return most_recent[1] if most_recent else None


class LogFileTail:
    """Reads complete lines appended to one log file.

    The file is opened lazily and positioned at its end, so only lines written
    after monitoring starts are returned. A trailing line without its newline
    is held back until the rest of it arrives, up to `max_line_bytes`; longer
    lines are split. Truncation (the client restarting its log) rewinds to the
    start of the file.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        from_start: bool = False,
        encoding: str = "utf-8",
        max_line_bytes: int = MAX_LINE_BYTES,
        logger: Optional[logging.Logger] = None,
    ):
        if max_line_bytes <= 0:
            raise ValueError("max_line_bytes must be greater than zero")
        self._path = Path(path)
        self._from_start = from_start
        self._encoding = encoding
        self._max_line_bytes = max_line_bytes
        self._logger = logger or logging.getLogger("monitor.log_source")
        self._file: Optional[BinaryIO] = None
        self._partial = b""

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        if self._file is not None:
            return
        try:
            handle = open(self._path, "rb")
        except FileNotFoundError as error:
            raise LogReadError(f"Log file not found: {self._path}") from error
        except OSError as error:
            raise self._read_error(error) from error

        try:
            if not self._from_start:
                handle.seek(0, os.SEEK_END)
        except OSError as error:
            handle.close()
            raise self._read_error(error) from error

        self._file = handle
        self._partial = b""
        self._logger.info("Monitoring: %s", self._path)

    def read_line(self) -> Optional[str]:
        """Return the next complete line without its line ending, or None."""
        if self._file is None:
            self.open()
        handle = self._file
        assert handle is not None

        try:
            raw = handle.readline(self._max_line_bytes)
        except OSError as error:
            raise self._read_error(error) from error

        if not raw:
            self._rewind_if_truncated(handle)
            return None

        if not raw.endswith(b"\n"):
            self._partial += raw
            if len(self._partial) < self._max_line_bytes:
                return None
            self._logger.warning(
                "Line in %s exceeds %d bytes without a newline; splitting it",
                self._path,
                self._max_line_bytes,
            )
            raw = b""

        data = self._partial + raw
        self._partial = b""
        return data.decode(self._encoding, errors="replace").rstrip("\r\n")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        self._partial = b""

    def _rewind_if_truncated(self, handle: BinaryIO) -> None:
        try:
            size = self._path.stat().st_size
            position = handle.tell()
        except FileNotFoundError as error:
            raise LogReadError(f"Log file disappeared: {self._path}") from error
        except OSError as error:
            raise self._read_error(error) from error

        if size < position:
            self._logger.info("Log file truncated, rewinding: %s", self._path)
            handle.seek(0)
            self._partial = b""

    def _read_error(self, error: OSError) -> LogReadError:
        if self._path.exists():
            return LogReadError(
                f"Failed to read log file {self._path}: {error}",
                transient=True,
            )
        return LogReadError(f"Log file disappeared: {self._path}")


class NewestLogFileTail:
    """Follows whichever `prefix*` file in a directory was modified last.

    While the current file has no new data the directory is rescanned at most
    once per `rescan_interval_seconds`; a newer file replaces the current one
    and is read from its end.
    """

    def __init__(
        self,
        directory: Path | str,
        prefix: str = DEFAULT_LOG_FILE_PREFIX,
        *,
        rescan_interval_seconds: float = DEFAULT_RESCAN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self._directory = Path(directory)
        self._prefix = prefix
        self._rescan_interval_seconds = rescan_interval_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger("monitor.log_source")
        self._tail: Optional[LogFileTail] = None
        self._last_scan: Optional[float] = None
        self._reported_empty = False

    @property
    def current_path(self) -> Optional[Path]:
        return self._tail.path if self._tail else None

    def read_line(self) -> Optional[str]:
        if self._tail is None and not self._rescan():
            return None
        assert self._tail is not None

        try:
            line = self._tail.read_line()
        except LogReadError as error:
            if error.transient:
                raise
            self._logger.warning("%s; rescanning %s", error, self._directory)
            self._tail.close()
            self._tail = None
            return None

        if line is None:
            self._rescan()
        return line

    def close(self) -> None:
        if self._tail is not None:
            self._tail.close()
            self._tail = None

    def _rescan(self) -> bool:
        """Switch to the newest log file if it changed; return True when one is open."""
        now = self._clock()
        if (
            self._last_scan is not None
            and now - self._last_scan < self._rescan_interval_seconds
        ):
            return self._tail is not None
        self._last_scan = now

        newest = find_most_recent_log(self._directory, self._prefix)
        if newest is None:
            if not self._reported_empty:
                self._logger.info(
                    "No %s* files found in %s, waiting...",
                    self._prefix,
                    self._directory,
                )
                self._reported_empty = True
            return self._tail is not None
        self._reported_empty = False

        if self._tail is not None and self._tail.path == newest:
            return True

        tail = LogFileTail(newest, logger=self._logger)
        try:
            tail.open()
        except LogReadError as error:
            if error.transient:
                raise
            self._logger.warning("%s; keeping current log", error)
            return self._tail is not None

        if self._tail is not None:
            self._logger.info("Switching to: %s", newest)
            self._tail.close()
        self._tail = tail
        return True
