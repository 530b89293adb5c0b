"""Per-pattern debounce timers for delayed announcements."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import TimerRaceViolation


@dataclass(frozen=True)
class TimerEntry:
    """Live timer for one pattern. `generation` increases on every trigger."""
    pattern: str
    announcement: str
    generation: int
    fire_at: float
    task: asyncio.Task[None]


class TimerRegistry:
    """Debounce registry keyed by pattern.

    All bookkeeping happens on the event loop thread, and the look-up, cancel
    and install steps of `trigger` run without yielding, so replacing a timer is
    atomic with respect to the old timer's fire path. A timer that wakes up
    after it was superseded sees a newer generation in the map and does
    nothing.
    """

    def __init__(
        self,
        announce: Callable[[str], Any],
        logger: Optional[logging.Logger] = None,
    ):
        self._announce = announce
        self._logger = logger or logging.getLogger("monitor.timers")
        self._entries: dict[str, TimerEntry] = {}
        self._generations: dict[str, int] = {}
        self._fired = 0
        self._cancelled = 0
        self._violations: list[TimerRaceViolation] = []

    @property
    def fired_count(self) -> int:
        return self._fired

    @property
    def cancelled_count(self) -> int:
        return self._cancelled

    @property
    def violations(self) -> list[TimerRaceViolation]:
        return list(self._violations)

    def trigger(self, pattern: str, announcement: str, delay_seconds: float) -> TimerEntry:
        """Arm (or re-arm) the timer for `pattern` to fire `delay_seconds` from now."""
        if not math.isfinite(delay_seconds) or delay_seconds < 0:
            raise ValueError("delay_seconds must be a finite, non-negative number")
        loop = asyncio.get_running_loop()

        previous = self._entries.pop(pattern, None)
        if previous is not None:
            previous.task.cancel()
            self._cancelled += 1
            self._logger.info("Cancelled existing timer for pattern: %r", pattern)

        generation = self._generations.get(pattern, 0) + 1
        self._generations[pattern] = generation
        task = loop.create_task(
            self._run(pattern, generation, announcement, delay_seconds),
            name=f"timer:{pattern}",
        )
        task.add_done_callback(self._on_timer_done)
        entry = TimerEntry(
            pattern=pattern,
            announcement=announcement,
            generation=generation,
            fire_at=loop.time() + delay_seconds,
            task=task,
        )
        self._entries[pattern] = entry

        self._logger.info(
            "Scheduled timer: %r -> %r (%ss)",
            pattern,
            announcement,
            delay_seconds,
        )
        return entry

    def cancel(self, pattern: str) -> bool:
        entry = self._entries.pop(pattern, None)
        if entry is None:
            return False
        entry.task.cancel()
        self._cancelled += 1
        return True

    def cancel_all(self) -> int:
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.task.cancel()
        self._cancelled += len(entries)
        return len(entries)

    def pending(self) -> dict[str, float]:
        """Seconds remaining per pattern for every armed timer."""
        now = asyncio.get_running_loop().time()
        return {
            pattern: max(0.0, entry.fire_at - now)
            for pattern, entry in self._entries.items()
        }

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def _run(
        self,
        pattern: str,
        generation: int,
        announcement: str,
        delay_seconds: float,
    ) -> None:
        await asyncio.sleep(delay_seconds)
        self._fire(pattern, generation, announcement)

    def _fire(self, pattern: str, generation: int, announcement: str) -> None:
        entry = self._entries.get(pattern)
        if entry is None or entry.generation > generation:
            self._logger.debug(
                "Stale timer for %r (generation %d) woke up; ignoring",
                pattern,
                generation,
            )
            return
        if entry.generation < generation or entry.task is not asyncio.current_task():
            raise TimerRaceViolation(
                f"Timer for {pattern!r} fired as generation {generation} "
                f"but the registry holds generation {entry.generation}"
            )

        # Leave the map before announcing so the fire can no longer be cancelled
        # and a later trigger starts clean.
        del self._entries[pattern]
        self._fired += 1
        self._logger.info("Timer fired: %r -> %r", pattern, announcement)
        self._announce(announcement)

    def _on_timer_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        if isinstance(error, TimerRaceViolation):
            self._violations.append(error)
            self._logger.critical(
                "Timer task %s broke the debounce invariant: %s",
                task.get_name(),
                error,
                exc_info=error,
            )
            return
        self._logger.error(
            "Announcement from timer task %s failed: %s",
            task.get_name(),
            error,
            exc_info=error,
        )
