"""Directory watcher reporting new files once they stop changing.

This module provides:
- StabilizedEventHandler: Tracks newly created files until they are stable
- DirectoryWatcher: Runs a watchdog observer plus a stability poller for one config
- WatchPathError: Watch path missing or not a directory

A file is reported once, after its size and mtime have not changed for
`stability_threshold` seconds (checked every `poll_interval`). This avoids
uploading files that are still being written or copied.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from uploadagent.client.watch.ignore import IgnorePatterns, matches_patterns
from uploadagent.client.watch.types import WatchConfig

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

DEFAULT_STABILITY_THRESHOLD = 2.0  # seconds
DEFAULT_POLL_INTERVAL = 0.1  # seconds


class WatchPathError(Exception):
    """Watch path does not exist or is not a directory."""


@dataclass
class PendingFile:
    """A newly created file waiting to become stable."""

    path: Path
    size: int
    mtime_ns: int
    last_change: float


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class StabilizedEventHandler(FileSystemEventHandler):
    """Event handler that reports new files after a stability window."""

    def __init__(
        self,
        base_path: Path,
        on_stable: Callable[[Path], None],
        recursive: bool = True,
        patterns: list[str] | None = None,
        stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
        ignore_patterns: IgnorePatterns | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the handler.

        Args:
            base_path: Directory being watched.
            on_stable: Called once per new file once it is stable.
            recursive: Whether files in subdirectories are reported.
            patterns: Include patterns (empty = all files).
            stability_threshold: Quiet period in seconds before reporting.
            ignore_patterns: Standing ignore list.
            clock: Monotonic clock.
        """
        super().__init__()
        self._base_path = base_path
        self._on_stable = on_stable
        self._recursive = recursive
        self._patterns = list(patterns or [])
        self._threshold = stability_threshold
        self._ignore = ignore_patterns or IgnorePatterns()
        self._clock = clock

        # Files waiting to stabilize, keyed by path
        self._pending: dict[str, PendingFile] = {}
        self._lock = threading.Lock()

    @property
    def pending_count(self) -> int:
        """Number of files waiting to stabilize."""
        with self._lock:
            return len(self._pending)

    def accepts(self, path: Path) -> bool:
        """Check if a file path is eligible for reporting."""
        if not self._recursive and path.parent != self._base_path:
            return False
        if self._ignore.should_ignore(path, self._base_path):
            return False
        return matches_patterns(path, self._base_path, self._patterns)

    def track(self, path: Path) -> None:
        """Start tracking a newly created file."""
        if not self.accepts(path):
            return
        try:
            st = path.stat()
        except FileNotFoundError:
            return

        with self._lock:
            self._pending[str(path)] = PendingFile(
                path=path,
                size=st.st_size,
                mtime_ns=st.st_mtime_ns,
                last_change=self._clock(),
            )
        logger.debug("Tracking new file %s", path)

    def touch(self, path: Path) -> None:
        """Restart the stability window of a tracked file."""
        with self._lock:
            pending = self._pending.get(str(path))
            if pending is not None:
                pending.last_change = self._clock()

    def poll(self) -> list[Path]:
        """Check tracked files and report the ones that became stable.

        Returns:
            Paths reported by this poll.
        """
        now = self._clock()
        stable: list[Path] = []

        with self._lock:
            for key, pending in list(self._pending.items()):
                try:
                    st = pending.path.stat()
                except FileNotFoundError:
                    logger.debug("File vanished before stabilizing: %s", pending.path)
                    del self._pending[key]
                    continue

                if st.st_size != pending.size or st.st_mtime_ns != pending.mtime_ns:
                    pending.size = st.st_size
                    pending.mtime_ns = st.st_mtime_ns
                    pending.last_change = now
                elif now - pending.last_change >= self._threshold:
                    del self._pending[key]
                    stable.append(pending.path)

        # Report outside lock
        for path in stable:
            logger.info("File detected: %s", path)
            try:
                self._on_stable(path)
            except Exception:
                logger.exception("File detected callback failed for %s", path)
        return stable

    def clear(self) -> None:
        """Forget every tracked file."""
        with self._lock:
            self._pending.clear()

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        if isinstance(event, FileCreatedEvent):
            self._safely(self.track, Path(_decode(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event (a file moved into the tree counts as new)."""
        if isinstance(event, FileMovedEvent):
            self._safely(self.track, Path(_decode(event.dest_path)))

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        if isinstance(event, FileModifiedEvent):
            self._safely(self.touch, Path(_decode(event.src_path)))

    def _safely(self, func: Callable[[Path], None], path: Path) -> None:
        """Run an event callback, logging instead of killing the observer thread."""
        try:
            func(path)
        except Exception:
            logger.exception("Watcher error handling %s", path)


class DirectoryWatcher:
    """Watches one directory for new, stable files.

    Runs a watchdog observer feeding a StabilizedEventHandler, plus a
    poller thread checking tracked files every `poll_interval` seconds.
    """

    def __init__(
        self,
        config: WatchConfig,
        on_file_detected: Callable[[Path], None],
        stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the watcher.

        Args:
            config: Watch configuration.
            on_file_detected: Called once per stable new file.
            stability_threshold: Quiet period in seconds before reporting.
            poll_interval: Seconds between stability checks.

        Raises:
            WatchPathError: If the watch path is not an existing directory.
        """
        self._watch_path = Path(config.path).expanduser().resolve()
        if not self._watch_path.is_dir():
            raise WatchPathError(f"Watch path does not exist: {config.path}")

        self._config = config
        self._poll_interval = poll_interval
        self._handler = StabilizedEventHandler(
            base_path=self._watch_path,
            on_stable=on_file_detected,
            recursive=config.recursive,
            patterns=config.patterns,
            stability_threshold=stability_threshold,
        )
        self._observer: BaseObserver = Observer()
        self._stop_event = threading.Event()
        self._poller: threading.Thread | None = None
        self._running = False

    @property
    def config(self) -> WatchConfig:
        """Configuration this watcher was started with."""
        return self._config

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for new files."""
        if self._running:
            return

        self._observer.schedule(
            self._handler, str(self._watch_path), recursive=self._config.recursive
        )
        self._observer.start()

        self._stop_event.clear()
        self._poller = threading.Thread(
            target=self._poll_loop,
            name=f"WatchPoller-{self._config.id}",
            daemon=True,
        )
        self._poller.start()
        self._running = True
        logger.info(f"Watcher {self._config.id} ready for: {self._watch_path}")

    def stop(self) -> None:
        """Stop watching for new files."""
        if not self._running:
            return

        self._stop_event.set()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        # Observer threads cannot be restarted
        self._observer = Observer()
        if self._poller:
            self._poller.join(timeout=5.0)
            self._poller = None
        self._handler.clear()
        self._running = False

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            try:
                self._handler.poll()
            except Exception:
                logger.exception(f"Watcher error for {self._config.id}")

    def __enter__(self) -> DirectoryWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
