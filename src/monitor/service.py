"""Monitoring session: wires log source, collector and timers to an announcer."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Sequence

from patterns import MessageDefinition

from .collector import BatchCollector
from .config import MonitorConfig
from .contracts import AnnouncerLike, LogSourceLike
from .errors import MonitorError
from .timers import TimerRegistry


class LogMonitor:
    """Start/stop handle around one monitoring session.

    The config snapshot and message definitions are fixed for the session; to
    pick up new settings, stop this monitor and build a new one. Pending
    timers are cancelled on stop and never carried over.
    """

    def __init__(
        self,
        config: MonitorConfig,
        definitions: Sequence[MessageDefinition],
        announcer: AnnouncerLike,
        *,
        source_factory: Optional[Callable[[], LogSourceLike]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._definitions = tuple(definitions)
        self._announcer = announcer
        self._source_factory = source_factory or (
            lambda: config.build_log_source(logging.getLogger("monitor.log_source"))
        )
        self._logger = logger or logging.getLogger("monitor")

        self._source: Optional[LogSourceLike] = None
        self._timers: Optional[TimerRegistry] = None
        self._collector: Optional[BatchCollector] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def collector(self) -> Optional[BatchCollector]:
        return self._collector

    @property
    def timers(self) -> Optional[TimerRegistry]:
        return self._timers

    def start(self) -> asyncio.Task[None]:
        if self.is_running:
            raise MonitorError("Already monitoring")
        if self._source is not None:
            # Previous session ended on a source error without stop().
            self._release()

        self._source = self._source_factory()
        self._timers = TimerRegistry(
            self._announcer.submit,
            logger=logging.getLogger("monitor.timers"),
        )
        self._collector = BatchCollector(
            self._source,
            self._definitions,
            announce=self._announcer.submit,
            timers=self._timers,
            batch_window_seconds=self._config.batch_window_seconds,
            idle_retry_seconds=self._config.idle_retry_seconds,
            logger=logging.getLogger("monitor.collector"),
        )

        self._logger.info(
            "Starting log monitor (%d message definition(s), source=%s)",
            len(self._definitions),
            self._config.log_file or f"{self._config.log_directory}/{self._config.log_file_prefix}*",
        )
        self._task = asyncio.get_running_loop().create_task(
            self._collector.run(),
            name="log-collector",
        )
        self._task.add_done_callback(self._on_collector_done)
        return self._task

    async def wait(self) -> None:
        """Block until the collector stops; re-raises a terminal read error."""
        task = self._task
        if task is None:
            raise MonitorError("Not currently monitoring")
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def stop(self) -> None:
        if self._task is None:
            raise MonitorError("Not currently monitoring")

        task = self._task
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        cancelled_timers = self._release()

        if self._collector is not None:
            stats = self._collector.stats
            self._logger.info(
                "Log monitor stopped: %d line(s) read, %d batch(es), "
                "%d announcement(s), %d timer trigger(s), %d pending timer(s) dropped",
                stats.lines_read,
                stats.batches_dispatched,
                stats.announcements_dispatched,
                stats.timers_triggered,
                cancelled_timers,
            )
        self._task = None

    def _release(self) -> int:
        """Close the log source and drop pending timers; return how many were dropped."""
        cancelled = self._timers.cancel_all() if self._timers else 0
        if self._source is not None:
            self._source.close()
            self._source = None
        return cancelled

    def _on_collector_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._logger.error("Monitoring error: %s", error)
