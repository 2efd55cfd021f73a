"""Configuration utilities for the uploadagent CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any

from uploadagent.client.auth import CredentialStore
from uploadagent.client.watch.store import WATCHERS_FILE_NAME, WatchConfigStore
from uploadagent.core.config import AgentSettings

CONFIG_HOME_ENV = "UPLOADAGENT_HOME"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_config_dir() -> Path:
    """Get the configuration directory for uploadagent.

    Returns:
        Path from $UPLOADAGENT_HOME, or ~/.uploadagent.
    """
    override = os.environ.get(CONFIG_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".uploadagent"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def load_settings() -> AgentSettings:
    """Build AgentSettings from the "settings" section of the config file.

    Unknown keys are ignored; missing keys keep their defaults.
    """
    section = load_config().get("settings") or {}
    known = {f.name for f in fields(AgentSettings)}
    return AgentSettings(**{k: v for k, v in section.items() if k in known})


def get_credential_store() -> CredentialStore:
    """Credential store rooted in the config directory."""
    return CredentialStore(get_config_dir())


def get_watch_store() -> WatchConfigStore:
    """Watch configuration store rooted in the config directory."""
    return WatchConfigStore(get_config_dir() / WATCHERS_FILE_NAME)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure the uploadagent logger.

    Args:
        verbose: Log at DEBUG instead of INFO.
        log_file: Optional file receiving the same records.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("uploadagent")
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
