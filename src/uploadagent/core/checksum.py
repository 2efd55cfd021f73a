"""Content checksums for uploaded files.

This module provides:
- compute_file_checksum: Single-pass streaming SHA-256 of a file
"""

from __future__ import annotations

import hashlib
from pathlib import Path

# Read size for checksum computation
CHECKSUM_CHUNK_SIZE = 1024 * 1024  # 1 MiB


def compute_file_checksum(path: Path | str, chunk_size: int = CHECKSUM_CHUNK_SIZE) -> str:
    """Compute the SHA-256 checksum of a file.

    Reads the file exactly once, in chunks, so large files are never
    held in memory.

    Args:
        path: Path to the file to hash.
        chunk_size: Number of bytes read per iteration.

    Returns:
        Lowercase hexadecimal SHA-256 digest.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(chunk_size), b""):
            hasher.update(block)
    return hasher.hexdigest()
