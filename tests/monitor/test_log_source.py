import os
import tempfile
import time
import unittest
from pathlib import Path

from monitor.errors import LogReadError
from monitor.log_source import LogFileTail, NewestLogFileTail, find_most_recent_log


def _append(path: Path, data: str) -> None:
    with open(path, "ab") as handle:
        handle.write(data.encode("utf-8"))


def _touch(path: Path, mtime: float) -> None:
    path.touch()
    os.utime(path, (mtime, mtime))


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class LogFileTailTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "eqlog_Hero_server.txt"
        self.path.write_text("[Mon] old line before monitoring\n", encoding="utf-8")

    def _tail(self, **kwargs) -> LogFileTail:
        tail = LogFileTail(self.path, **kwargs)
        self.addCleanup(tail.close)
        return tail

    def test_existing_content_is_skipped(self) -> None:
        tail = self._tail()

        self.assertIsNone(tail.read_line())
        _append(self.path, "[Mon] Your charm spell has worn off.\n")

        self.assertEqual("[Mon] Your charm spell has worn off.", tail.read_line())
        self.assertIsNone(tail.read_line())

    def test_from_start_reads_existing_content(self) -> None:
        tail = self._tail(from_start=True)

        self.assertEqual("[Mon] old line before monitoring", tail.read_line())

    def test_partial_line_is_held_until_complete(self) -> None:
        tail = self._tail()
        tail.open()

        _append(self.path, "[Mon] Your charm spell")
        self.assertIsNone(tail.read_line())
        _append(self.path, " has worn off.\r\n")

        self.assertEqual("[Mon] Your charm spell has worn off.", tail.read_line())

    def test_overlong_line_is_split_instead_of_buffered(self) -> None:
        tail = self._tail(max_line_bytes=16)
        tail.open()
        _append(self.path, "x" * 40)

        with self.assertLogs("monitor.log_source", level="WARNING"):
            self.assertEqual("x" * 16, tail.read_line())
            self.assertEqual("x" * 16, tail.read_line())
        self.assertIsNone(tail.read_line())
        self.assertIsNone(tail.read_line())

        _append(self.path, "\n")
        self.assertEqual("x" * 8, tail.read_line())

    def test_invalid_utf8_is_replaced(self) -> None:
        tail = self._tail()
        tail.open()
        with open(self.path, "ab") as handle:
            handle.write(b"caf\xe9 bonus\n")

        line = tail.read_line()

        self.assertIsNotNone(line)
        self.assertIn("�", line)
        self.assertTrue(line.endswith("bonus"))

    def test_truncation_rewinds_to_start(self) -> None:
        tail = self._tail()
        tail.open()
        _append(self.path, "line one\nline two\n")
        self.assertEqual("line one", tail.read_line())
        self.assertEqual("line two", tail.read_line())

        self.path.write_text("fresh\n", encoding="utf-8")
        self.assertIsNone(tail.read_line())

        self.assertEqual("fresh", tail.read_line())

    def test_missing_file_is_terminal(self) -> None:
        tail = LogFileTail(Path(self._tmp.name) / "eqlog_missing.txt")

        with self.assertRaises(LogReadError) as ctx:
            tail.read_line()
        self.assertFalse(ctx.exception.transient)

    def test_vanished_file_is_terminal(self) -> None:
        tail = self._tail()
        tail.open()
        self.path.unlink()

        with self.assertRaises(LogReadError) as ctx:
            tail.read_line()
        self.assertFalse(ctx.exception.transient)

    def test_close_allows_reopen(self) -> None:
        tail = self._tail()
        tail.open()
        tail.close()
        _append(self.path, "after close\n")

        # Reopening seeks to the end again.
        self.assertIsNone(tail.read_line())


class FindMostRecentLogTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.directory = Path(self._tmp.name)

    def test_picks_newest_matching_file(self) -> None:
        now = time.time()
        _touch(self.directory / "eqlog_Old_server.txt", now - 100)
        _touch(self.directory / "eqlog_New_server.txt", now - 10)
        _touch(self.directory / "notes.txt", now)

        self.assertEqual(
            self.directory / "eqlog_New_server.txt",
            find_most_recent_log(self.directory),
        )

    def test_returns_none_without_matching_files(self) -> None:
        _touch(self.directory / "notes.txt", time.time())

        self.assertIsNone(find_most_recent_log(self.directory))

    def test_ignores_directories_with_matching_prefix(self) -> None:
        (self.directory / "eqlog_archive").mkdir()

        self.assertIsNone(find_most_recent_log(self.directory))

    def test_missing_directory_is_terminal(self) -> None:
        with self.assertRaises(LogReadError) as ctx:
            find_most_recent_log(self.directory / "nope")
        self.assertFalse(ctx.exception.transient)


class NewestLogFileTailTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.directory = Path(self._tmp.name)
        self.clock = _FakeClock()

    def _source(self) -> NewestLogFileTail:
        source = NewestLogFileTail(
            self.directory,
            "eqlog_",
            rescan_interval_seconds=1.0,
            clock=self.clock,
        )
        self.addCleanup(source.close)
        return source

    def test_waits_for_first_log_file(self) -> None:
        source = self._source()

        with self.assertLogs("monitor.log_source", level="INFO") as logs:
            self.assertIsNone(source.read_line())
            self.assertIsNone(source.read_line())
        self.assertEqual(1, sum("No eqlog_* files found" in line for line in logs.output))
        self.assertIsNone(source.current_path)

        first = self.directory / "eqlog_Hero_server.txt"
        first.write_text("", encoding="utf-8")
        self.clock.now += 1.0
        self.assertIsNone(source.read_line())
        self.assertEqual(first, source.current_path)

        _append(first, "hello\n")
        self.assertEqual("hello", source.read_line())

    def test_switches_to_newer_file_after_rescan_interval(self) -> None:
        now = time.time()
        first = self.directory / "eqlog_Hero_server.txt"
        _touch(first, now - 60)
        source = self._source()
        self.assertIsNone(source.read_line())
        self.assertEqual(first, source.current_path)

        second = self.directory / "eqlog_Alt_server.txt"
        _touch(second, now)
        self.clock.now += 0.5
        self.assertIsNone(source.read_line())
        self.assertEqual(first, source.current_path)

        self.clock.now += 0.5
        with self.assertLogs("monitor.log_source", level="INFO") as logs:
            self.assertIsNone(source.read_line())
        self.assertEqual(second, source.current_path)
        self.assertTrue(any("Switching to" in line for line in logs.output))

        _append(second, "from alt\n")
        self.assertEqual("from alt", source.read_line())

    def test_deleted_current_file_triggers_rescan(self) -> None:
        now = time.time()
        first = self.directory / "eqlog_Hero_server.txt"
        second = self.directory / "eqlog_Alt_server.txt"
        _touch(second, now - 60)
        _touch(first, now)
        source = self._source()
        self.assertIsNone(source.read_line())
        self.assertEqual(first, source.current_path)

        first.unlink()
        with self.assertLogs("monitor.log_source", level="WARNING"):
            self.assertIsNone(source.read_line())
        self.assertIsNone(source.current_path)

        self.clock.now += 1.0
        self.assertIsNone(source.read_line())
        self.assertEqual(second, source.current_path)

    def test_missing_directory_is_terminal(self) -> None:
        source = NewestLogFileTail(self.directory / "gone", clock=self.clock)

        with self.assertRaises(LogReadError) as ctx:
            source.read_line()
        self.assertFalse(ctx.exception.transient)


if __name__ == "__main__":
    unittest.main()
