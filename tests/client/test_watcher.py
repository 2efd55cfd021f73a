"""Tests for the stabilizing directory watcher."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from uploadagent.client.watch.types import WatchConfig
from uploadagent.client.watch.watcher import (
    DirectoryWatcher,
    StabilizedEventHandler,
    WatchPathError,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_handler(
    base_path: Path,
    clock: FakeClock,
    recursive: bool = True,
    patterns: list[str] | None = None,
) -> tuple[StabilizedEventHandler, list[Path]]:
    """Create a handler collecting reported paths."""
    reported: list[Path] = []
    handler = StabilizedEventHandler(
        base_path=base_path,
        on_stable=reported.append,
        recursive=recursive,
        patterns=patterns,
        stability_threshold=2.0,
        clock=clock,
    )
    return handler, reported


class TestStabilizedEventHandler:
    """Tests for stability tracking with a fake clock."""

    def test_growing_file_reported_once_after_quiet_period(self, tmp_path: Path) -> None:
        """A file written for 3s is reported exactly once, 2s after the last write."""
        clock = FakeClock()
        handler, reported = make_handler(tmp_path, clock)
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"x")
        handler.track(path)

        emitted_at: list[float] = []
        for tick in range(1, 81):
            clock.now = tick / 10
            if tick % 5 == 0 and tick <= 30:
                with open(path, "ab") as f:
                    f.write(b"x" * 1024)
            if handler.poll():
                emitted_at.append(clock.now)

        assert reported == [path]
        assert emitted_at == [5.0]

    def test_not_reported_before_threshold(self, tmp_path: Path) -> None:
        """Nothing is reported while the quiet period is shorter than the threshold."""
        clock = FakeClock()
        handler, reported = make_handler(tmp_path, clock)
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"x")
        handler.track(path)

        clock.now = 1.9
        handler.poll()

        assert reported == []
        assert handler.pending_count == 1

    def test_modified_event_restarts_window(self, tmp_path: Path) -> None:
        """touch() resets the quiet period of a tracked file."""
        clock = FakeClock()
        handler, reported = make_handler(tmp_path, clock)
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"x")
        handler.track(path)

        clock.now = 1.5
        handler.touch(path)
        clock.now = 2.5
        handler.poll()
        assert reported == []

        clock.now = 3.5
        handler.poll()
        assert reported == [path]

    def test_vanished_file_dropped(self, tmp_path: Path) -> None:
        """A file deleted before stabilizing is dropped silently."""
        clock = FakeClock()
        handler, reported = make_handler(tmp_path, clock)
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"x")
        handler.track(path)

        path.unlink()
        clock.now = 5.0
        handler.poll()

        assert reported == []
        assert handler.pending_count == 0

    def test_ignored_files_not_tracked(self, tmp_path: Path) -> None:
        """Hidden files are never tracked."""
        clock = FakeClock()
        handler, _ = make_handler(tmp_path, clock)
        path = tmp_path / ".~lock.scan.pdf"
        path.write_bytes(b"x")

        handler.track(path)

        assert handler.pending_count == 0

    def test_patterns_filter(self, tmp_path: Path) -> None:
        """Only files matching the include patterns are tracked."""
        clock = FakeClock()
        handler, _ = make_handler(tmp_path, clock, patterns=["*.pdf"])
        (tmp_path / "a.pdf").write_bytes(b"x")
        (tmp_path / "b.txt").write_bytes(b"x")

        handler.track(tmp_path / "a.pdf")
        handler.track(tmp_path / "b.txt")

        assert handler.pending_count == 1

    def test_non_recursive_ignores_subdirectories(self, tmp_path: Path) -> None:
        """Non-recursive handlers only see direct children."""
        clock = FakeClock()
        handler, _ = make_handler(tmp_path, clock, recursive=False)
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "deep.pdf").write_bytes(b"x")
        (tmp_path / "top.pdf").write_bytes(b"x")

        handler.track(tmp_path / "sub" / "deep.pdf")
        handler.track(tmp_path / "top.pdf")

        assert handler.pending_count == 1

    def test_callback_error_is_contained(self, tmp_path: Path) -> None:
        """A failing callback does not stop other files from being reported."""
        clock = FakeClock()
        callback = MagicMock(side_effect=[RuntimeError("boom"), None])
        handler = StabilizedEventHandler(
            base_path=tmp_path, on_stable=callback, stability_threshold=1.0, clock=clock
        )
        for name in ("a.pdf", "b.pdf"):
            (tmp_path / name).write_bytes(b"x")
            handler.track(tmp_path / name)

        clock.now = 2.0
        stable = handler.poll()

        assert len(stable) == 2
        assert callback.call_count == 2


class TestDirectoryWatcher:
    """Tests for DirectoryWatcher with a real observer."""

    def test_missing_path(self, tmp_path: Path) -> None:
        """A missing directory raises WatchPathError."""
        config = WatchConfig(path=str(tmp_path / "missing"))

        with pytest.raises(WatchPathError):
            DirectoryWatcher(config, on_file_detected=lambda path: None)

    def test_file_path_rejected(self, tmp_path: Path) -> None:
        """A regular file is not a valid watch path."""
        path = tmp_path / "file.txt"
        path.write_text("x")

        with pytest.raises(WatchPathError):
            DirectoryWatcher(WatchConfig(path=str(path)), on_file_detected=lambda p: None)

    def test_start_stop(self, tmp_path: Path) -> None:
        """Should start and stop cleanly."""
        watcher = DirectoryWatcher(WatchConfig(path=str(tmp_path)), lambda path: None)

        watcher.start()
        assert watcher.is_running is True
        watcher.stop()
        assert watcher.is_running is False

    def test_context_manager(self, tmp_path: Path) -> None:
        """Should work as context manager."""
        with DirectoryWatcher(WatchConfig(path=str(tmp_path)), lambda path: None) as watcher:
            assert watcher.is_running is True
        assert watcher.is_running is False

    def test_reports_file_after_writes_stop(self, tmp_path: Path) -> None:
        """A file written incrementally is reported once, after it stops changing."""
        reported: list[tuple[Path, float]] = []
        done = threading.Event()

        def on_file(path: Path) -> None:
            reported.append((path, time.monotonic()))
            done.set()

        watcher = DirectoryWatcher(
            WatchConfig(path=str(tmp_path)),
            on_file,
            stability_threshold=0.4,
            poll_interval=0.05,
        )
        with watcher:
            time.sleep(0.1)
            path = tmp_path / "scan.pdf"
            with open(path, "wb") as f:
                for _ in range(6):
                    f.write(b"x" * 1024)
                    f.flush()
                    time.sleep(0.1)
            last_write = time.monotonic()

            assert done.wait(5.0)
            time.sleep(0.6)

        assert len(reported) == 1
        assert reported[0][0] == path
        assert reported[0][1] >= last_write + 0.3
