"""Tests for ignore and include pattern matching."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from uploadagent.client.watch.ignore import IgnorePatterns, matches_patterns


class TestIgnorePatterns:
    """Tests for the standing ignore list."""

    @pytest.mark.parametrize(
        "relative",
        [
            ".DS_Store",
            ".hidden.pdf",
            "Thumbs.db",
            "desktop.ini",
            ".git/config",
            "node_modules/pkg/index.js",
            ".cache/scan.pdf",
            "docs/.svn/entries",
        ],
    )
    def test_default_patterns(self, tmp_path: Path, relative: str) -> None:
        """Hidden files, OS metadata and VCS/dependency dirs are ignored."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / relative, tmp_path) is True

    def test_normal_file_not_ignored(self, tmp_path: Path) -> None:
        """Should not ignore normal files."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / "docs" / "report.pdf", tmp_path) is False

    def test_custom_pattern(self, tmp_path: Path) -> None:
        """Should support additional patterns."""
        ignore = IgnorePatterns(["*.tmp"])
        assert ignore.should_ignore(tmp_path / "upload.tmp", tmp_path) is True
        assert "*.tmp" in ignore.patterns

    def test_outside_root_ignored(self, tmp_path: Path) -> None:
        """Paths outside the watch root are ignored."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(Path("/elsewhere/file.pdf"), tmp_path) is True

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlink_ignored(self, tmp_path: Path) -> None:
        """Symbolic links are never reported."""
        target = tmp_path / "real.pdf"
        target.write_bytes(b"x")
        link = tmp_path / "link.pdf"
        link.symlink_to(target)

        assert IgnorePatterns().should_ignore(link, tmp_path) is True


class TestMatchesPatterns:
    """Tests for include patterns."""

    def test_empty_list_matches_everything(self, tmp_path: Path) -> None:
        """No patterns means every file matches."""
        assert matches_patterns(tmp_path / "any.bin", tmp_path, []) is True

    def test_name_match(self, tmp_path: Path) -> None:
        """Patterns match against the file name."""
        patterns = ["*.pdf", "*.docx"]
        assert matches_patterns(tmp_path / "sub" / "scan.pdf", tmp_path, patterns) is True
        assert matches_patterns(tmp_path / "notes.txt", tmp_path, patterns) is False

    def test_relative_path_match(self, tmp_path: Path) -> None:
        """Patterns may also match the path relative to the watch root."""
        path = tmp_path / "invoices" / "2025" / "jan.csv"
        assert matches_patterns(path, tmp_path, ["invoices/*"]) is True
        assert matches_patterns(path, tmp_path, ["receipts/*"]) is False
