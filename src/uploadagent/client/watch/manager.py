"""Watch manager - one directory watcher per enabled configuration.

This module provides:
- WatchManager: Starts/stops DirectoryWatchers and edits their configurations

The manager owns the set of running watchers and the persistent
configuration store. Stable new files are reported through a single
callback registered with set_file_detected_callback(); the agent wires
that callback to the upload queue.

Usage:
    manager = WatchManager(WatchConfigStore(config_dir / "watchers.json"))
    manager.set_file_detected_callback(lambda path, config: queue.enqueue(path))
    manager.start_all()
    ...
    manager.stop_all()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from uploadagent.client.watch.store import WatchConfigError, WatchConfigStore
from uploadagent.client.watch.types import WatchConfig
from uploadagent.client.watch.watcher import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STABILITY_THRESHOLD,
    DirectoryWatcher,
    WatchPathError,
)

logger = logging.getLogger(__name__)

FileDetectedCallback = Callable[[Path, WatchConfig], None]


class WatchManager:
    """Runs directory watchers for the stored watch configurations."""

    def __init__(
        self,
        store: WatchConfigStore,
        stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Persistent watch configuration store.
            stability_threshold: Quiet period in seconds before a file is reported.
            poll_interval: Seconds between stability checks.
        """
        self._store = store
        self._stability_threshold = stability_threshold
        self._poll_interval = poll_interval

        self._lock = threading.RLock()
        self._watchers: dict[str, DirectoryWatcher] = {}
        self._on_file_detected: FileDetectedCallback | None = None

    @property
    def store(self) -> WatchConfigStore:
        """Persistent configuration store."""
        return self._store

    def set_file_detected_callback(self, callback: FileDetectedCallback | None) -> None:
        """Set the callback invoked once per stable new file.

        Args:
            callback: Function(path, config) receiving the file and its current config.
        """
        self._on_file_detected = callback

    # === Watcher lifecycle ===

    def start(self, config: WatchConfig) -> bool:
        """Start watching a configuration's directory.

        Does nothing if a watcher already runs for the config. A missing
        or non-directory path is logged and skipped.

        Returns:
            True if a watcher is running for the config afterwards.
        """
        with self._lock:
            if config.id in self._watchers:
                logger.debug(f"Watcher {config.id} already running")
                return True

            try:
                watcher = DirectoryWatcher(
                    config,
                    on_file_detected=lambda path: self._emit(config.id, path),
                    stability_threshold=self._stability_threshold,
                    poll_interval=self._poll_interval,
                )
                watcher.start()
            except WatchPathError as e:
                logger.error(str(e))
                return False
            except OSError as e:
                logger.error(f"Cannot watch {config.path}: {e}")
                return False

            self._watchers[config.id] = watcher
            return True

    def stop(self, config_id: str) -> None:
        """Stop the watcher of a configuration (idempotent)."""
        with self._lock:
            watcher = self._watchers.pop(config_id, None)
            if watcher is None:
                return
            watcher.stop()
        logger.info(f"Watcher {config_id} stopped")

    def is_running(self, config_id: str) -> bool:
        """Check if a watcher is running for a configuration."""
        with self._lock:
            return config_id in self._watchers

    def start_all(self) -> int:
        """Start a watcher for every enabled configuration.

        A watch configuration file that cannot be read is logged and no
        watcher is started.

        Returns:
            Number of watchers running afterwards.
        """
        try:
            configs = self._store.list()
        except WatchConfigError as e:
            logger.error(str(e))
            configs = []
        for config in configs:
            if config.enabled:
                self.start(config)
        with self._lock:
            return len(self._watchers)

    def stop_all(self) -> None:
        """Stop every running watcher."""
        with self._lock:
            config_ids = list(self._watchers)
        for config_id in config_ids:
            self.stop(config_id)

    # === Configuration surface ===

    def get_configs(self) -> list[WatchConfig]:
        """Get all stored configurations."""
        return self._store.list()

    def add_config(
        self,
        path: str | Path,
        folder_id: str | None = None,
        recursive: bool = True,
        patterns: list[str] | None = None,
        enabled: bool = True,
    ) -> WatchConfig:
        """Persist a new configuration and start it when enabled.

        Returns:
            The stored configuration with its generated id.
        """
        config = WatchConfig(
            path=str(path),
            folder_id=folder_id,
            recursive=recursive,
            patterns=list(patterns or []),
            enabled=enabled,
        )
        config = self._store.add(config)
        logger.info(f"Added watch configuration {config.id} for {config.path}")
        if config.enabled:
            self.start(config)
        return config

    def update(self, config_id: str, **changes: Any) -> WatchConfig | None:
        """Merge changes into a configuration and apply them.

        Path, recursion or pattern changes restart the watcher (when
        enabled); a change of `enabled` alone starts or stops it.

        Returns:
            The updated configuration, or None if the id is unknown.

        Raises:
            ValueError: If a change names a field that cannot be edited.
        """
        with self._lock:
            old = self._store.get(config_id)
            if old is None:
                return None
            new = self._store.update(config_id, **changes)
            if new is None:
                return None

            if old.observer_settings_differ(new):
                self.stop(config_id)
                if new.enabled:
                    self.start(new)
            elif old.enabled != new.enabled:
                if new.enabled:
                    self.start(new)
                else:
                    self.stop(config_id)
            return new

    def update_config(self, config_id: str, **changes: Any) -> WatchConfig | None:
        """Alias of update() for the configuration surface."""
        return self.update(config_id, **changes)

    def remove_config(self, config_id: str) -> bool:
        """Stop and delete a configuration.

        Returns:
            True if the configuration existed.
        """
        self.stop(config_id)
        removed = self._store.remove(config_id)
        if removed:
            logger.info(f"Removed watch configuration {config_id}")
        return removed

    def start_config(self, config_id: str) -> bool:
        """Start the watcher of a stored configuration by id.

        Returns:
            False if the id is unknown or the watcher could not start.
        """
        config = self._store.get(config_id)
        if config is None:
            return False
        return self.start(config)

    # === Internal ===

    def _emit(self, config_id: str, path: Path) -> None:
        """Report a stable file with the configuration as currently stored."""
        callback = self._on_file_detected
        if callback is None:
            return
        try:
            config = self._store.get(config_id)
        except WatchConfigError as e:
            logger.error(f"Dropping {path}: {e}")
            return
        if config is None:
            logger.debug(f"Dropping {path}: watch configuration {config_id} was removed")
            return
        try:
            callback(path, config)
        except Exception:
            logger.exception(f"File detected callback failed for {path}")
