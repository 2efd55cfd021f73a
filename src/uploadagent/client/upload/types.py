"""Shared types for upload jobs.

This module provides:
- JobStatus: Lifecycle states of an upload job
- UploadJob: One file's upload and its mutable state
- UploadError, UploadCancelledError: Exception classes
- Type aliases for listener callbacks
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any


class UploadError(Exception):
    """Failed to upload a file."""


class UploadCancelledError(UploadError):
    """Upload was cancelled cooperatively (job removed or cancelled)."""


class JobStatus(str, Enum):
    """Status of an upload job.

    Transitions:
        pending -> uploading -> completed | failed
        failed -> pending      (automatic retry or manual retry())
        pending | uploading -> cancelled
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """Whether the job can still make progress on its own."""
        return self in (JobStatus.PENDING, JobStatus.UPLOADING)


# Statuses removed by clear_completed()
CLEARABLE_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})


def new_job_id() -> str:
    """Generate a unique job identifier."""
    return f"upload-{uuid.uuid4().hex[:12]}"


@dataclass
class UploadJob:
    """One file's upload attempt(s) and its mutable state.

    Attributes:
        id: Unique job identifier.
        file_path: Absolute path of the source file.
        file_name: Base name of the file.
        file_size: Size in bytes, refreshed at the start of every attempt.
        mime_type: Content type derived from the extension.
        folder_id: Optional target folder on the server.
        status: Current lifecycle status.
        progress: Progress percentage (0-100).
        uploaded_bytes: Bytes streamed in the current attempt.
        error: Last error message, if any.
        retry_count: Number of retries performed so far.
        created_at: When the job was created (UTC).
        completed_at: When the job completed (UTC).
        document_id: Remote document id once registered.
    """

    file_path: Path
    file_name: str
    file_size: int
    mime_type: str
    folder_id: str | None = None
    id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    uploaded_bytes: int = 0
    error: str | None = None
    retry_count: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    document_id: str | None = None

    def snapshot(self) -> UploadJob:
        """Return a copy safe to hand out of the queue lock."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "file_path": str(self.file_path),
            "file_name": self.file_name,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "folder_id": self.folder_id,
            "status": self.status.value,
            "progress": self.progress,
            "uploaded_bytes": self.uploaded_bytes,
            "error": self.error,
            "retry_count": self.retry_count,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "document_id": self.document_id,
        }

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"UploadJob({self.id}, {self.file_name!r}, "
            f"status={self.status.value}, progress={self.progress}%, "
            f"retries={self.retry_count})"
        )


# Type aliases for listener callbacks
QueueListener = Callable[[list[UploadJob]], None]
ProgressListener = Callable[[str, int, int], None]
