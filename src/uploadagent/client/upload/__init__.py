"""Upload engine: job queue, worker and progress reporting.

Architecture:
    enqueue() -> UploadQueue -> UploadWorker (Register -> Transfer -> Confirm)
                      |                 |
                      +--> ProgressReporter <--+

Components:
- **UploadQueue**: Owns jobs, admission control (concurrency cap), retries
- **UploadWorker**: Executes the three-phase protocol for one job
- **RetryPolicy**: Linear backoff decision for failed attempts
- **ProgressReporter**: Fans out queue snapshots and byte progress
- **Multipart encoder**: Streams the file as multipart/form-data
"""

from uploadagent.client.upload.multipart import (
    MultipartEnvelope,
    encode_multipart_envelope,
    iter_multipart_body,
)
from uploadagent.client.upload.progress import ProgressReporter
from uploadagent.client.upload.queue import DEFAULT_MAX_CONCURRENT, UploadQueue
from uploadagent.client.upload.retry import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    RetryDecision,
    RetryPolicy,
)
from uploadagent.client.upload.types import (
    JobStatus,
    ProgressListener,
    QueueListener,
    UploadCancelledError,
    UploadError,
    UploadJob,
)
from uploadagent.client.upload.worker import (
    TRANSFER_PROGRESS_CAP,
    UploadContext,
    UploadPhase,
    UploadResult,
    UploadWorker,
)

__all__ = [
    # Multipart
    "MultipartEnvelope",
    "encode_multipart_envelope",
    "iter_multipart_body",
    # Progress
    "ProgressReporter",
    # Queue
    "DEFAULT_MAX_CONCURRENT",
    "UploadQueue",
    # Retry
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_BACKOFF",
    "RetryDecision",
    "RetryPolicy",
    # Types
    "JobStatus",
    "ProgressListener",
    "QueueListener",
    "UploadCancelledError",
    "UploadError",
    "UploadJob",
    # Worker
    "TRANSFER_PROGRESS_CAP",
    "UploadContext",
    "UploadPhase",
    "UploadResult",
    "UploadWorker",
]
