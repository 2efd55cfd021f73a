"""Core module - Checksums, MIME types, and settings."""

from uploadagent.core.checksum import CHECKSUM_CHUNK_SIZE, compute_file_checksum
from uploadagent.core.config import AgentSettings, ServerConfig
from uploadagent.core.mime import DEFAULT_MIME_TYPE, MIME_TYPES, guess_mime_type

__all__ = [
    # Checksum
    "CHECKSUM_CHUNK_SIZE",
    "compute_file_checksum",
    # Config
    "AgentSettings",
    "ServerConfig",
    # MIME
    "DEFAULT_MIME_TYPE",
    "MIME_TYPES",
    "guess_mime_type",
]
