"""Shared configuration classes for uploadagent.

This module defines the tuning knobs of the upload engine and the
connection settings used by the HTTP client.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for connecting to the document server.

    Attributes:
        server_url: Base URL of the server (e.g., "https://dms.example.com").
        timeout: Transport timeout in seconds (connect/read/write per operation).
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.server_url.startswith("https://")


@dataclass
class AgentSettings:
    """Tuning parameters for the upload queue and the folder watchers.

    Attributes:
        max_concurrent: Maximum number of jobs uploading at once.
        max_retries: Maximum automatic retries per job.
        retry_backoff: Base backoff in seconds, multiplied by the retry count.
        stability_threshold: Seconds without changes before a new file is reported.
        poll_interval: Seconds between stability checks.
        chunk_size: Bytes read per chunk while streaming a file upload.
        timeout: HTTP timeout in seconds for each network operation.
    """

    max_concurrent: int = 3
    max_retries: int = 3
    retry_backoff: float = 5.0
    stability_threshold: float = 2.0
    poll_interval: float = 0.1
    chunk_size: int = 64 * 1024
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.retry_backoff < 0:
            raise ValueError(f"retry_backoff must be >= 0, got {self.retry_backoff}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
