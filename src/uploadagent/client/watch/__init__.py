"""Directory watching: reports new, stable files to the upload queue.

Components:
- **WatchManager**: One DirectoryWatcher per enabled configuration
- **DirectoryWatcher**: watchdog observer plus stability poller for one directory
- **WatchConfigStore**: JSON persistence of watch configurations
- **IgnorePatterns**: Standing ignore list (hidden files, VCS dirs, OS metadata)
"""

from uploadagent.client.watch.ignore import (
    DEFAULT_IGNORE_PATTERNS,
    IgnorePatterns,
    matches_patterns,
)
from uploadagent.client.watch.manager import FileDetectedCallback, WatchManager
from uploadagent.client.watch.store import (
    WATCHERS_FILE_NAME,
    WatchConfigError,
    WatchConfigStore,
)
from uploadagent.client.watch.types import WatchConfig
from uploadagent.client.watch.watcher import (
    DirectoryWatcher,
    StabilizedEventHandler,
    WatchPathError,
)

__all__ = [
    # Ignore
    "DEFAULT_IGNORE_PATTERNS",
    "IgnorePatterns",
    "matches_patterns",
    # Manager
    "FileDetectedCallback",
    "WatchManager",
    # Store
    "WATCHERS_FILE_NAME",
    "WatchConfigError",
    "WatchConfigStore",
    # Types
    "WatchConfig",
    # Watcher
    "DirectoryWatcher",
    "StabilizedEventHandler",
    "WatchPathError",
]
