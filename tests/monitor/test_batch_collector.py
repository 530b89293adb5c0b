import asyncio
import unittest
from collections import deque

from monitor.collector import Batch, BatchCollector
from monitor.errors import LogReadError
from patterns import SimpleMessage, TimedDelayMessage

CHARM = SimpleMessage(pattern="charm spell has worn off", announcement="charm break")
ROOT = SimpleMessage(pattern="Root spell has worn off", announcement="root break")
SNARE = SimpleMessage(pattern="Snare spell has worn off", announcement="snare faded")
CHARM_HOLD = TimedDelayMessage(
    pattern="Charm spell has taken hold",
    announcement="charm about to break",
    delay_seconds=30,
)


class _ListSource:
    def __init__(self, lines=()):
        self.lines: deque[str] = deque(lines)
        self.errors: deque[Exception] = deque()
        self.reads = 0
        self.closed = False

    def read_line(self):
        self.reads += 1
        if self.errors:
            raise self.errors.popleft()
        if self.lines:
            return self.lines.popleft()
        return None

    def close(self) -> None:
        self.closed = True


class _TimerStub:
    def __init__(self):
        self.calls: list[tuple[str, str, float]] = []

    def trigger(self, pattern: str, announcement: str, delay_seconds: float):
        self.calls.append((pattern, announcement, delay_seconds))


def _collector(source, definitions, *, window=0.01, idle=0.05):
    announced: list[str] = []
    timers = _TimerStub()
    collector = BatchCollector(
        source,
        definitions,
        announce=announced.append,
        timers=timers,
        batch_window_seconds=window,
        idle_retry_seconds=idle,
    )
    return collector, announced, timers


class BatchCollectionTests(unittest.IsolatedAsyncioTestCase):
    async def test_identical_lines_collapse_into_one_announcement(self) -> None:
        source = _ListSource(["Your charm spell has worn off."] * 5)
        collector, announced, timers = _collector(source, [CHARM])

        batch = await collector.collect_batch()

        self.assertIsNotNone(batch)
        assert batch is not None
        self.assertEqual(["charm break"], batch.immediate)
        self.assertEqual({}, batch.timed)
        self.assertEqual(5, batch.line_count)

        collector.dispatch(batch)
        self.assertEqual(["charm break"], announced)
        self.assertEqual([], timers.calls)

    async def test_distinct_patterns_each_announce_once(self) -> None:
        source = _ListSource(
            ["Your charm spell has worn off."] * 5 + ["Your Root spell has worn off."]
        )
        collector, announced, _ = _collector(source, [CHARM, ROOT])

        batch = await collector.collect_batch()
        assert batch is not None
        collector.dispatch(batch)

        self.assertEqual(2, len(announced))
        self.assertEqual({"charm break", "root break"}, set(announced))

    async def test_single_line_is_announced(self) -> None:
        source = _ListSource(["Your charm spell has worn off."])
        collector, announced, _ = _collector(source, [CHARM])

        batch = await collector.collect_batch()
        assert batch is not None
        collector.dispatch(batch)

        self.assertEqual(["charm break"], announced)

    async def test_batch_without_matches_dispatches_nothing(self) -> None:
        source = _ListSource(["You say, 'Hail'", "A gnoll growls at you."])
        collector, announced, timers = _collector(source, [CHARM, ROOT])

        batch = await collector.collect_batch()
        assert batch is not None
        self.assertTrue(batch.is_empty)
        collector.dispatch(batch)

        self.assertEqual([], announced)
        self.assertEqual([], timers.calls)
        self.assertEqual("idle", collector.state)
        self.assertEqual(0, collector.stats.batches_dispatched)

    async def test_no_line_available_returns_none_and_stays_idle(self) -> None:
        collector, _, _ = _collector(_ListSource(), [CHARM])

        self.assertIsNone(await collector.collect_batch())
        self.assertEqual("idle", collector.state)

    async def test_mixed_matches_and_non_matches(self) -> None:
        source = _ListSource(
            [
                "Your charm spell has worn off.",
                "You say, 'Hail'",
                "Your Snare spell has worn off.",
                "Your charm spell has worn off.",
            ]
        )
        collector, _, _ = _collector(source, [CHARM, SNARE])

        batch = await collector.collect_batch()
        assert batch is not None

        self.assertEqual(["charm break", "snare faded"], batch.immediate)

    async def test_timed_delay_lines_are_deduplicated_by_pattern(self) -> None:
        source = _ListSource(["Charm spell has taken hold."] * 3)
        collector, announced, timers = _collector(source, [CHARM_HOLD])

        batch = await collector.collect_batch()
        assert batch is not None
        self.assertEqual([], batch.immediate)
        self.assertEqual(["Charm spell has taken hold"], list(batch.timed))

        collector.dispatch(batch)
        self.assertEqual([], announced)
        self.assertEqual(
            [("Charm spell has taken hold", "charm about to break", 30)],
            timers.calls,
        )

    async def test_same_pattern_simple_and_timed_both_dispatch(self) -> None:
        fading = "You feel yourself starting to"
        definitions = [
            SimpleMessage(pattern=fading, announcement="go back in"),
            TimedDelayMessage(pattern=fading, announcement="get out", delay_seconds=22),
        ]
        source = _ListSource([f"{fading} fade."] * 2)
        collector, announced, timers = _collector(source, definitions)

        batch = await collector.collect_batch()
        assert batch is not None
        collector.dispatch(batch)

        self.assertEqual(["go back in"], announced)
        self.assertEqual([(fading, "get out", 22)], timers.calls)

    async def test_line_arriving_inside_window_joins_batch(self) -> None:
        source = _ListSource(["Your charm spell has worn off."])
        collector, _, _ = _collector(source, [CHARM, ROOT], window=0.2)
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, source.lines.append, "Your Root spell has worn off.")

        batch = await collector.collect_batch()
        assert batch is not None

        self.assertEqual(["charm break", "root break"], batch.immediate)

    async def test_line_arriving_after_window_starts_next_batch(self) -> None:
        source = _ListSource(["Your charm spell has worn off."])
        collector, _, _ = _collector(source, [CHARM, ROOT], window=0.02)

        first = await collector.collect_batch()
        source.lines.append("Your Root spell has worn off.")
        second = await collector.collect_batch()

        assert first is not None and second is not None
        self.assertEqual(["charm break"], first.immediate)
        self.assertEqual(["root break"], second.immediate)

    async def test_transient_read_error_is_treated_as_no_data(self) -> None:
        source = _ListSource(["Your charm spell has worn off."])
        source.errors.append(LogReadError("busy", transient=True))
        collector, _, _ = _collector(source, [CHARM])

        with self.assertLogs("monitor.collector", level="WARNING"):
            self.assertIsNone(await collector.collect_batch())
        batch = await collector.collect_batch()

        assert batch is not None
        self.assertEqual(["charm break"], batch.immediate)

    async def test_terminal_read_error_stops_the_collector(self) -> None:
        source = _ListSource()
        source.errors.append(LogReadError("Log file disappeared: eqlog_x.txt"))
        collector, _, _ = _collector(source, [CHARM])

        with self.assertRaises(LogReadError):
            await asyncio.wait_for(collector.run(), timeout=1.0)

    async def test_lines_read_before_terminal_error_are_still_dispatched(self) -> None:
        source = _ListSource(["Your charm spell has worn off."])
        collector, announced, _ = _collector(source, [CHARM], window=0.2)
        loop = asyncio.get_running_loop()
        loop.call_later(
            0.02,
            source.errors.append,
            LogReadError("Log file disappeared: eqlog_x.txt"),
        )

        with self.assertRaises(LogReadError):
            await asyncio.wait_for(collector.run(), timeout=1.0)

        self.assertEqual(["charm break"], announced)
        self.assertEqual(1, collector.stats.batches_dispatched)
        self.assertEqual("idle", collector.state)


class CollectorLoopTests(unittest.IsolatedAsyncioTestCase):
    async def test_idle_source_is_polled_at_idle_interval(self) -> None:
        source = _ListSource()
        collector, _, _ = _collector(source, [CHARM], idle=0.05)

        task = asyncio.ensure_future(collector.run())
        await asyncio.sleep(0.3)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        # ~6 polls expected; a busy loop would produce thousands.
        self.assertGreaterEqual(source.reads, 3)
        self.assertLessEqual(source.reads, 10)

    async def test_run_dispatches_without_waiting_for_announcements(self) -> None:
        source = _ListSource()
        started: list[str] = []
        finished: list[str] = []

        async def slow_announce(text: str) -> None:
            started.append(text)
            await asyncio.sleep(0.5)
            finished.append(text)

        collector = BatchCollector(
            source,
            [CHARM, ROOT],
            announce=lambda text: asyncio.ensure_future(slow_announce(text)),
            timers=_TimerStub(),
            batch_window_seconds=0.01,
            idle_retry_seconds=0.01,
        )
        task = asyncio.ensure_future(collector.run())
        source.lines.append("Your charm spell has worn off.")
        await asyncio.sleep(0.1)
        source.lines.append("Your Root spell has worn off.")
        await asyncio.sleep(0.1)

        self.assertEqual(["charm break", "root break"], started)
        self.assertEqual([], finished)
        self.assertEqual(2, collector.stats.batches_dispatched)

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task


class BatchTests(unittest.TestCase):
    def test_latest_timed_match_wins_within_batch(self) -> None:
        from patterns import MatchResult

        batch = Batch()
        batch.add([MatchResult("timed_delay", "p", "first", 10)])
        batch.add([MatchResult("timed_delay", "p", "second", 20)])

        self.assertEqual(1, len(batch.timed))
        self.assertEqual("second", batch.timed["p"].announcement)
        self.assertEqual(20, batch.timed["p"].delay_seconds)


if __name__ == "__main__":
    unittest.main()
