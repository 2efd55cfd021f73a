"""Ignore list and include patterns for watched directories.

This module provides:
- IgnorePatterns: Standing ignore list applied to every watched path
- DEFAULT_IGNORE_PATTERNS: Hidden files, OS metadata, dependency and VCS directories
- matches_patterns: Per-config include filter
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

# Matched against every component of the path relative to the watch root
DEFAULT_IGNORE_PATTERNS = [
    ".*",  # hidden files and directories (covers .git, .svn, .hg, .DS_Store)
    "Thumbs.db",
    "desktop.ini",
    "node_modules",
    ".git",
    ".svn",
    ".hg",
    "__pycache__",
]


class IgnorePatterns:
    """Handles ignore pattern matching for file paths."""

    def __init__(self, patterns: list[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Additional glob patterns on top of the defaults.
        """
        self._patterns = list(DEFAULT_IGNORE_PATTERNS)
        if patterns:
            self._patterns.extend(patterns)

    @property
    def patterns(self) -> list[str]:
        """Active patterns."""
        return list(self._patterns)

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored.

        A path is ignored when it is a symlink or when any component of
        its path relative to the watch root matches an ignore pattern.

        Args:
            path: Absolute path to check.
            base_path: Watch root.

        Returns:
            True if the path should be ignored.
        """
        if path.is_symlink():
            return True

        try:
            parts = path.relative_to(base_path).parts
        except ValueError:
            # Outside the watch root
            return True

        return any(
            fnmatch.fnmatch(part, pattern) for part in parts for pattern in self._patterns
        )


def matches_patterns(path: Path, base_path: Path, patterns: list[str]) -> bool:
    """Check a file against a config's include patterns.

    A file matches when its name, or its path relative to the watch root
    (forward slashes), matches any pattern. An empty list matches everything.
    """
    if not patterns:
        return True

    try:
        rel_str = path.relative_to(base_path).as_posix()
    except ValueError:
        return False

    return any(
        fnmatch.fnmatch(path.name, pattern) or fnmatch.fnmatch(rel_str, pattern)
        for pattern in patterns
    )
