"""Persistent storage of watch configurations.

Watch configurations are kept as a JSON list in ``watchers.json`` inside
the agent config directory, so they survive restarts (upload jobs don't).

This module provides:
- WatchConfigStore: JSON-file backed collection of WatchConfig objects
- WatchConfigError: Raised when the backing file cannot be parsed
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any

from uploadagent.client.watch.types import EDITABLE_FIELDS, WatchConfig

logger = logging.getLogger(__name__)

WATCHERS_FILE_NAME = "watchers.json"


class WatchConfigError(Exception):
    """Exception raised for a corrupted or malformed watch configuration file."""


def _normalize_path(path: str | Path) -> str:
    """Absolute, user-expanded form of a directory path."""
    return str(Path(path).expanduser().resolve())


class WatchConfigStore:
    """JSON-file backed collection of WatchConfig objects.

    Paths are normalized on the way in, so every caller stores the same
    absolute form. A file that cannot be parsed raises WatchConfigError
    and is never overwritten.

    Usage:
        store = WatchConfigStore(config_dir / "watchers.json")
        config = store.add(WatchConfig(path="/data/scans"))
        store.update(config.id, enabled=False)
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the configurations.
        """
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Path of the backing JSON file."""
        return self._path

    def list(self) -> list[WatchConfig]:
        """Get all stored configurations, in insertion order.

        Raises:
            WatchConfigError: If the backing file is corrupted.
        """
        with self._lock:
            return self._read()

    def get(self, config_id: str) -> WatchConfig | None:
        """Get one configuration by id."""
        with self._lock:
            for config in self._read():
                if config.id == config_id:
                    return config
        return None

    def add(self, config: WatchConfig) -> WatchConfig:
        """Persist a new configuration.

        Returns:
            The stored configuration (with its normalized path).

        Raises:
            ValueError: If a configuration with the same id exists.
            WatchConfigError: If the backing file is corrupted.
        """
        config = replace(config, path=_normalize_path(config.path))
        with self._lock:
            configs = self._read()
            if any(c.id == config.id for c in configs):
                raise ValueError(f"Watch configuration already exists: {config.id}")
            configs.append(config)
            self._write(configs)
        logger.debug(f"Added watch configuration {config.id} for {config.path}")
        return config

    def update(self, config_id: str, **changes: Any) -> WatchConfig | None:
        """Merge changes into a stored configuration.

        Args:
            config_id: Configuration to update.
            **changes: Fields to change (path, folder_id, recursive, patterns, enabled).

        Returns:
            The updated configuration, or None if the id is unknown.

        Raises:
            ValueError: If a change names a field that cannot be edited.
            WatchConfigError: If the backing file is corrupted.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "patterns" in changes:
            changes["patterns"] = list(changes["patterns"] or [])
        if "path" in changes:
            changes["path"] = _normalize_path(changes["path"])

        with self._lock:
            configs = self._read()
            for index, config in enumerate(configs):
                if config.id == config_id:
                    updated = replace(config, **changes)
                    configs[index] = updated
                    self._write(configs)
                    return updated
        return None

    def remove(self, config_id: str) -> bool:
        """Delete a configuration.

        Returns:
            True if the configuration existed.

        Raises:
            WatchConfigError: If the backing file is corrupted.
        """
        with self._lock:
            configs = self._read()
            remaining = [c for c in configs if c.id != config_id]
            if len(remaining) == len(configs):
                return False
            self._write(remaining)
        logger.debug(f"Removed watch configuration {config_id}")
        return True

    def _read(self) -> list[WatchConfig]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text())
        except json.JSONDecodeError as e:
            raise WatchConfigError(f"Corrupted watch configuration file {self._path}: {e}") from e

        if not isinstance(data, list):
            raise WatchConfigError(
                f"Malformed watch configuration file {self._path}: expected a list"
            )
        try:
            return [WatchConfig.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise WatchConfigError(
                f"Malformed watch configuration file {self._path}: {e!r}"
            ) from e

    def _write(self, configs: list[WatchConfig]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps([c.to_dict() for c in configs], indent=2))
