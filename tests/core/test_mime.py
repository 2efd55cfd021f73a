"""Tests for MIME type derivation."""

from __future__ import annotations

from pathlib import Path

import pytest

from uploadagent.core.mime import DEFAULT_MIME_TYPE, guess_mime_type


class TestGuessMimeType:
    """Tests for guess_mime_type."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("report.pdf", "application/pdf"),
            ("photo.jpeg", "image/jpeg"),
            ("data.csv", "text/csv"),
            ("archive.7z", "application/x-7z-compressed"),
            (
                "sheet.xlsx",
                "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            ),
        ],
    )
    def test_known_extensions(self, name: str, expected: str) -> None:
        """Known extensions map to their MIME type."""
        assert guess_mime_type(name) == expected

    def test_extension_is_case_insensitive(self) -> None:
        """Upper-case extensions should be recognized."""
        assert guess_mime_type(Path("SCAN.PDF")) == "application/pdf"

    def test_unknown_extension(self) -> None:
        """Unknown extensions fall back to application/octet-stream."""
        assert guess_mime_type("model.blend") == DEFAULT_MIME_TYPE

    def test_no_extension(self) -> None:
        """Files without extension fall back to application/octet-stream."""
        assert guess_mime_type("/tmp/Makefile") == "application/octet-stream"
