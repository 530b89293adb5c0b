"""Idle/collecting/dispatching state machine that turns log bursts into announcements."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional, Sequence

from patterns import MatchResult, MessageDefinition, match_line

from .constants import (
    COLLECT_POLL_FRACTION,
    DEFAULT_BATCH_WINDOW_SECONDS,
    DEFAULT_IDLE_RETRY_SECONDS,
    STATE_COLLECTING,
    STATE_DISPATCHING,
    STATE_IDLE,
)
from .contracts import LogSourceLike, TimerTriggerLike
from .errors import LogReadError

CollectorState = Literal["idle", "collecting", "dispatching"]


@dataclass(frozen=True)
class TimedAnnouncement:
    pattern: str
    announcement: str
    delay_seconds: float


@dataclass
class Batch:
    """Announcement intents gathered during one batch window.

    Immediate announcements are unique by spoken text, timed ones by pattern
    (the latest matching line wins).
    """
    immediate: list[str] = field(default_factory=list)
    timed: dict[str, TimedAnnouncement] = field(default_factory=dict)
    line_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.immediate and not self.timed

    def add(self, results: Sequence[MatchResult]) -> None:
        for result in results:
            if result.is_timed:
                self.timed[result.pattern] = TimedAnnouncement(
                    pattern=result.pattern,
                    announcement=result.announcement,
                    delay_seconds=result.delay_seconds or 0.0,
                )
            elif result.announcement not in self.immediate:
                self.immediate.append(result.announcement)


@dataclass
class CollectorStats:
    lines_read: int = 0
    batches_dispatched: int = 0
    announcements_dispatched: int = 0
    timers_triggered: int = 0


class BatchCollector:
    """Polls a log source and dispatches deduplicated announcement batches.

    IDLE polls once per `idle_retry_seconds` until a line shows up. The first
    line opens a batch window of `batch_window_seconds` (COLLECTING) during
    which every further line is folded into the same batch. DISPATCHING hands
    immediate announcements to `announce` without waiting for them and arms a
    debounce timer per timed pattern, then the collector goes back to IDLE.
    """

    def __init__(
        self,
        source: LogSourceLike,
        definitions: Sequence[MessageDefinition],
        *,
        announce: Callable[[str], Any],
        timers: TimerTriggerLike,
        batch_window_seconds: float = DEFAULT_BATCH_WINDOW_SECONDS,
        idle_retry_seconds: float = DEFAULT_IDLE_RETRY_SECONDS,
        logger: Optional[logging.Logger] = None,
    ):
        if batch_window_seconds < 0:
            raise ValueError("batch_window_seconds must not be negative")
        if idle_retry_seconds <= 0:
            raise ValueError("idle_retry_seconds must be greater than zero")

        self._source = source
        self._definitions = tuple(definitions)
        self._announce = announce
        self._timers = timers
        self._batch_window_seconds = batch_window_seconds
        self._idle_retry_seconds = idle_retry_seconds
        self._collect_poll_seconds = max(0.001, batch_window_seconds * COLLECT_POLL_FRACTION)
        self._logger = logger or logging.getLogger("monitor.collector")
        self._state: CollectorState = STATE_IDLE
        self.stats = CollectorStats()
        self._source_error: Optional[LogReadError] = None

    @property
    def state(self) -> CollectorState:
        return self._state

    async def run(self) -> None:
        """Collect and dispatch until cancelled or the log source fails terminally."""
        while True:
            batch = await self.collect_batch()
            if batch is None:
                await asyncio.sleep(self._idle_retry_seconds)
                continue
            self.dispatch(batch)
            error, self._source_error = self._source_error, None
            if error is not None:
                raise error

    async def collect_batch(self) -> Optional[Batch]:
        """Return the next batch, or None when no line is available yet.

        A terminal source error inside the window closes the batch early and is
        raised by `run` once that batch has been dispatched.
        """
        self._state = STATE_IDLE
        first = self._read_line()
        if first is None:
            return None

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._batch_window_seconds
        self._state = STATE_COLLECTING
        batch = Batch()
        self._fold(batch, first)

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                line = self._read_line()
            except LogReadError as error:
                # Lines already folded in still get dispatched; run() re-raises.
                self._source_error = error
                break
            if line is None:
                await asyncio.sleep(min(remaining, self._collect_poll_seconds))
                continue
            self._fold(batch, line)

        return batch

    def dispatch(self, batch: Batch) -> None:
        self._state = STATE_DISPATCHING
        try:
            if batch.is_empty:
                return

            self._logger.info(
                "Dispatching batch: %d line(s), immediate=%s, timed=%s",
                batch.line_count,
                batch.immediate,
                sorted(batch.timed),
            )
            for announcement in batch.immediate:
                self._announce(announcement)
                self.stats.announcements_dispatched += 1

            for timed in batch.timed.values():
                self._timers.trigger(
                    timed.pattern,
                    timed.announcement,
                    timed.delay_seconds,
                )
                self.stats.timers_triggered += 1

            self.stats.batches_dispatched += 1
        finally:
            self._state = STATE_IDLE

    def _fold(self, batch: Batch, line: str) -> None:
        batch.line_count += 1
        self.stats.lines_read += 1
        results = match_line(line, self._definitions)
        for result in results:
            self._logger.debug(
                "Match found! Log: %r -> Announcing: %r",
                line.strip(),
                result.announcement,
            )
        batch.add(results)

    def _read_line(self) -> Optional[str]:
        try:
            return self._source.read_line()
        except LogReadError as error:
            if not error.transient:
                raise
            self._logger.warning("Transient log read error: %s", error)
            return None
