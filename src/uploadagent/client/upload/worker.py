"""Upload worker executing the three-phase transfer protocol.

This module provides:
- UploadWorker: Runs Register -> Transfer -> Confirm for one job
- UploadContext: Callbacks and cancellation check for one attempt
- UploadPhase: The protocol phases (used for logging and errors)
- TRANSFER_PROGRESS_CAP: Progress ceiling until the server confirms

The worker is purely sequential and holds no per-job state, so one
instance can serve many jobs running on different threads. It never
mutates the job: state changes are reported through UploadContext and
applied by the queue under its lock.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from uploadagent.client.upload.multipart import encode_multipart_envelope, iter_multipart_body
from uploadagent.client.upload.types import UploadCancelledError, UploadJob
from uploadagent.core.checksum import compute_file_checksum

if TYPE_CHECKING:
    from uploadagent.client.api import DocumentClient

logger = logging.getLogger(__name__)

# The last 10% is reserved for the confirm phase
TRANSFER_PROGRESS_CAP = 90
DEFAULT_CHUNK_SIZE = 64 * 1024


class UploadPhase(str, Enum):
    """Ordered phases of the upload protocol."""

    REGISTER = "register"
    TRANSFER = "transfer"
    CONFIRM = "confirm"


@dataclass
class UploadContext:
    """Context passed to one upload attempt.

    Attributes:
        cancel_check: Returns True once the job was cancelled or removed.
        on_file_size: Called with the current file size when it differs from
            the size recorded on the job.
        on_registered: Called with the remote document id after Register.
        on_progress: Called with (progress_percent, uploaded_bytes) per chunk.
    """

    cancel_check: Callable[[], bool] = field(default=lambda: False)
    on_file_size: Callable[[int], None] | None = None
    on_registered: Callable[[str], None] | None = None
    on_progress: Callable[[int, int], None] | None = None


@dataclass
class UploadResult:
    """Result of a successful upload."""

    job_id: str
    document_id: str
    checksum: str


def transfer_progress(uploaded_bytes: int, total_bytes: int) -> int:
    """Progress percentage during the transfer phase, capped at 90."""
    if total_bytes <= 0:
        return TRANSFER_PROGRESS_CAP
    return min(TRANSFER_PROGRESS_CAP, round(uploaded_bytes * TRANSFER_PROGRESS_CAP / total_bytes))


class UploadWorker:
    """Executes the upload protocol for one job at a time.

    Usage:
        worker = UploadWorker(client)
        result = worker.upload(job, UploadContext(on_progress=callback))
    """

    def __init__(self, client: DocumentClient, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize the upload worker.

        Args:
            client: Document server client.
            chunk_size: Bytes read per chunk while streaming the file.
        """
        self._client = client
        self._chunk_size = chunk_size

    def upload(self, job: UploadJob, ctx: UploadContext | None = None) -> UploadResult:
        """Upload the job's file.

        Args:
            job: Snapshot of the job to upload.
            ctx: Callbacks and cancellation check.

        Returns:
            UploadResult with the remote document id.

        Raises:
            UploadCancelledError: If the job was cancelled between phases.
            NetworkError: If any remote call fails.
            OSError: If the file cannot be read.
        """
        ctx = ctx or UploadContext()

        # Phase 1: Register
        self._check_cancelled(ctx, job, UploadPhase.REGISTER)
        job = self._refresh_size(job, ctx)
        checksum = compute_file_checksum(job.file_path)
        created = self._client.create_document(
            name=job.file_name,
            mime_type=job.mime_type,
            size_bytes=job.file_size,
            checksum=checksum,
            folder_id=job.folder_id,
        )
        logger.debug(f"Registered {job.file_name} as document {created.document_id}")
        if ctx.on_registered:
            ctx.on_registered(created.document_id)

        # Phase 2: Transfer
        self._check_cancelled(ctx, job, UploadPhase.TRANSFER)
        self._transfer(job, created.upload_url, created.upload_fields, ctx)

        # Phase 3: Confirm
        self._check_cancelled(ctx, job, UploadPhase.CONFIRM)
        self._client.confirm_upload(created.document_id)
        logger.info(f"Uploaded {job.file_name} ({job.file_size} bytes) as {created.document_id}")

        return UploadResult(job_id=job.id, document_id=created.document_id, checksum=checksum)

    def _transfer(
        self,
        job: UploadJob,
        upload_url: str,
        upload_fields: dict[str, str],
        ctx: UploadContext,
    ) -> None:
        """Stream the file to the upload target as multipart/form-data."""
        envelope = encode_multipart_envelope(upload_fields, job.file_name, job.mime_type)

        def on_chunk(uploaded: int) -> None:
            if ctx.on_progress:
                ctx.on_progress(transfer_progress(uploaded, job.file_size), uploaded)

        self._client.transfer(
            upload_url,
            iter_multipart_body(envelope, job.file_path, self._chunk_size, on_chunk),
            content_type=envelope.content_type,
            content_length=envelope.content_length(job.file_size),
        )

    @staticmethod
    def _refresh_size(job: UploadJob, ctx: UploadContext) -> UploadJob:
        """Re-read the file size at the start of an attempt.

        The file may have been rewritten while the job waited. The attempt
        registers and streams the file as it is now.
        """
        current_size = os.path.getsize(job.file_path)
        if current_size == job.file_size:
            return job
        logger.info(
            f"{job.file_name} changed since it was queued "
            f"({job.file_size} -> {current_size} bytes)"
        )
        if ctx.on_file_size:
            ctx.on_file_size(current_size)
        return replace(job, file_size=current_size)

    @staticmethod
    def _check_cancelled(ctx: UploadContext, job: UploadJob, phase: UploadPhase) -> None:
        if ctx.cancel_check():
            raise UploadCancelledError(f"Upload of {job.file_name} cancelled before {phase.value}")
