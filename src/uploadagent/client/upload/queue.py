"""Upload queue with admission control and retry scheduling.

This module provides:
- UploadQueue: Single source of truth for upload jobs and their scheduler

The queue owns every UploadJob. All mutations happen under one RLock;
listener notifications are delivered outside of it.

Scheduling pass (re-entrant, idempotent, run after every relevant mutation):
    while not paused and count(uploading) < max_concurrent:
        take the oldest eligible pending job (FIFO by creation)
        mark it uploading and run it on its own worker thread

Retry policy (applied when an attempt fails):
    retry_count < max_retries  -> retry_count += 1, back to pending,
                                  eligible again after backoff * retry_count
    otherwise                  -> stays failed until a manual retry()

Cancellation is cooperative: removing or cancelling an uploading job only
flips its bookkeeping state. The worker notices between phases; whatever
the in-flight attempt eventually returns is discarded.

Usage:
    queue = UploadQueue(UploadWorker(client), reporter)
    job = queue.enqueue("/data/scans/invoice.pdf", folder_id="folder-1")
    ...
    queue.shutdown()
"""

from __future__ import annotations

import logging
import stat
import threading
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from uploadagent.client.api import NetworkError
from uploadagent.client.upload.progress import ProgressReporter
from uploadagent.client.upload.retry import RetryPolicy
from uploadagent.client.upload.types import (
    CLEARABLE_STATUSES,
    JobStatus,
    UploadCancelledError,
    UploadError,
    UploadJob,
)
from uploadagent.client.upload.worker import UploadContext
from uploadagent.core.mime import guess_mime_type

if TYPE_CHECKING:
    from uploadagent.client.upload.worker import UploadResult, UploadWorker

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3


class UploadQueue:
    """Thread-safe upload queue with a concurrency cap and automatic retries.

    Attributes:
        max_concurrent: Maximum number of jobs in the uploading state.
        retry_policy: Policy applied to failed attempts.
    """

    def __init__(
        self,
        worker: UploadWorker,
        reporter: ProgressReporter | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the upload queue.

        Args:
            worker: Executes the upload protocol for admitted jobs.
            reporter: Receives queue snapshots and progress (optional).
            max_concurrent: Concurrency cap.
            retry_policy: Retry policy (defaults: 3 retries, 5s linear backoff).
            clock: Monotonic clock used for retry deadlines.
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")

        self._worker = worker
        self._reporter = reporter or ProgressReporter()
        self._max_concurrent = max_concurrent
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock

        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._jobs: list[UploadJob] = []
        self._paused = False
        self._closed = False

        # Backoff deadlines of pending jobs waiting for an automatic retry
        self._retry_at: dict[str, float] = {}

        # Joinable set of in-flight work
        self._threads: set[threading.Thread] = set()
        self._timers: set[threading.Timer] = set()

    @property
    def max_concurrent(self) -> int:
        """Concurrency cap."""
        return self._max_concurrent

    @property
    def retry_policy(self) -> RetryPolicy:
        """Retry policy applied to failed attempts."""
        return self._retry_policy

    @property
    def reporter(self) -> ProgressReporter:
        """Progress reporter receiving queue notifications."""
        return self._reporter

    @property
    def is_paused(self) -> bool:
        """Check if admission is paused."""
        return self._paused

    @property
    def active_count(self) -> int:
        """Number of jobs currently uploading."""
        with self._lock:
            return self._count(JobStatus.UPLOADING)

    # === Commands ===

    def enqueue(self, file_path: Path | str, folder_id: str | None = None) -> UploadJob:
        """Add a file to the queue.

        Args:
            file_path: Path of the file to upload.
            folder_id: Optional target folder on the server.

        Returns:
            Snapshot of the created job.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the path is not a regular file.
            RuntimeError: If the queue was shut down.
        """
        path = Path(file_path).expanduser().resolve()
        file_stat = path.stat()
        if not stat.S_ISREG(file_stat.st_mode):
            raise ValueError(f"Not a regular file: {path}")

        job = UploadJob(
            file_path=path,
            file_name=path.name,
            file_size=file_stat.st_size,
            mime_type=guess_mime_type(path),
            folder_id=folder_id,
        )

        with self._lock:
            if self._closed:
                raise RuntimeError("Queue is shut down")
            self._jobs.append(job)
            snapshot = job.snapshot()
            self._changed.notify_all()

        logger.info(f"Queued {job.file_name} ({job.file_size} bytes) as {job.id}")
        self._notify_queue()
        self._schedule()
        return snapshot

    def enqueue_many(
        self,
        file_paths: Iterable[Path | str],
        folder_id: str | None = None,
    ) -> list[UploadJob]:
        """Add several files to the queue, in order.

        Returns:
            Snapshots of the created jobs.
        """
        return [self.enqueue(path, folder_id) for path in file_paths]

    def remove(self, job_id: str) -> bool:
        """Remove a job from the queue.

        An uploading job is marked cancelled first; its in-flight attempt
        keeps running but its outcome is ignored.

        Returns:
            True if the job existed.
        """
        with self._lock:
            job = self._find(job_id)
            if job is None:
                return False
            if job.status == JobStatus.UPLOADING:
                job.status = JobStatus.CANCELLED
                logger.info(f"Cancelled in-flight upload {job_id}")
            self._jobs.remove(job)
            self._retry_at.pop(job_id, None)
            self._changed.notify_all()

        logger.debug(f"Removed job {job_id}")
        self._notify_queue()
        self._schedule()
        return True

    def cancel(self, job_id: str) -> bool:
        """Cancel a pending or uploading job, keeping it in the queue.

        Returns:
            True if the job was cancelled.
        """
        with self._lock:
            job = self._find(job_id)
            if job is None or not job.status.is_active:
                return False
            job.status = JobStatus.CANCELLED
            self._retry_at.pop(job_id, None)
            self._changed.notify_all()

        logger.info(f"Cancelled job {job_id}")
        self._notify_queue()
        self._schedule()
        return True

    def retry(self, job_id: str) -> bool:
        """Manually retry a failed job.

        Progress, uploaded bytes and error are reset. The retry count is
        kept so that the job's attempt history is preserved.

        Returns:
            True if the job was failed and is now pending again.
        """
        with self._lock:
            job = self._find(job_id)
            if job is None or job.status != JobStatus.FAILED:
                return False
            job.status = JobStatus.PENDING
            job.error = None
            job.progress = 0
            job.uploaded_bytes = 0
            self._retry_at.pop(job_id, None)
            self._changed.notify_all()

        logger.info(f"Manual retry of {job_id}")
        self._notify_queue()
        self._schedule()
        return True

    def pause(self) -> None:
        """Stop admitting new jobs. Uploading jobs run to completion."""
        with self._lock:
            self._paused = True
            self._changed.notify_all()
        logger.info("Upload queue paused")

    def resume(self) -> None:
        """Resume admitting jobs."""
        with self._lock:
            self._paused = False
            self._changed.notify_all()
        logger.info("Upload queue resumed")
        self._schedule()

    def toggle_pause(self, paused: bool) -> None:
        """Pause or resume the queue."""
        if paused:
            self.pause()
        else:
            self.resume()

    def clear_completed(self) -> int:
        """Remove completed and cancelled jobs.

        Returns:
            Number of jobs removed.
        """
        with self._lock:
            before = len(self._jobs)
            self._jobs = [j for j in self._jobs if j.status not in CLEARABLE_STATUSES]
            removed = before - len(self._jobs)
            self._changed.notify_all()

        if removed:
            logger.debug(f"Cleared {removed} finished jobs")
        self._notify_queue()
        return removed

    # === Queries ===

    def get_queue(self) -> list[UploadJob]:
        """Snapshots of every job, in creation order."""
        with self._lock:
            return [job.snapshot() for job in self._jobs]

    def get(self, job_id: str) -> UploadJob | None:
        """Snapshot of one job, or None if unknown."""
        with self._lock:
            job = self._find(job_id)
            return job.snapshot() if job else None

    def stats(self) -> dict[str, int]:
        """Get queue statistics.

        Returns:
            Dictionary with job counts by status, plus the total.
        """
        with self._lock:
            stats = {status.value: 0 for status in JobStatus}
            for job in self._jobs:
                stats[job.status.value] += 1
            stats["total"] = len(self._jobs)
            return stats

    def __len__(self) -> int:
        """Get number of jobs."""
        with self._lock:
            return len(self._jobs)

    # === Waiting / shutdown ===

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no job is pending or uploading (including scheduled retries).

        Args:
            timeout: Maximum seconds to wait (None = wait forever).

        Returns:
            True if the queue settled, False on timeout.
        """
        with self._changed:
            return self._changed.wait_for(
                lambda: not any(j.status.is_active for j in self._jobs),
                timeout=timeout,
            )

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop admitting jobs and cancel scheduled retries.

        Args:
            wait: Join in-flight upload threads (otherwise they are abandoned).
            timeout: Maximum total seconds to wait for in-flight uploads.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()
            threads = list(self._threads)
            self._changed.notify_all()

        logger.info(f"Upload queue shutting down ({len(threads)} uploads in flight)")
        if not wait:
            return

        deadline = None if timeout is None else self._clock() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - self._clock())
            thread.join(timeout=remaining)
            if thread.is_alive():
                logger.warning(f"Abandoning in-flight upload thread {thread.name}")

    # === Scheduling ===

    def _schedule(self) -> None:
        """Admit pending jobs until the concurrency cap is reached."""
        admitted: list[UploadJob] = []
        with self._lock:
            if self._paused or self._closed:
                return

            active = self._count(JobStatus.UPLOADING)
            now = self._clock()
            for job in self._jobs:
                if active >= self._max_concurrent:
                    break
                if job.status != JobStatus.PENDING:
                    continue
                if self._retry_at.get(job.id, 0.0) > now:
                    continue

                self._retry_at.pop(job.id, None)
                job.status = JobStatus.UPLOADING
                job.progress = 0
                job.uploaded_bytes = 0
                job.error = None
                active += 1
                admitted.append(job.snapshot())

            for snapshot in admitted:
                thread = threading.Thread(
                    target=self._run_job,
                    args=(snapshot,),
                    name=f"Upload-{snapshot.id}",
                    daemon=True,
                )
                self._threads.add(thread)
                thread.start()

            if admitted:
                self._changed.notify_all()

        if admitted:
            logger.debug(f"Admitted {len(admitted)} jobs ({active}/{self._max_concurrent} active)")
            self._notify_queue()

    def _run_job(self, snapshot: UploadJob) -> None:
        """Run one upload attempt on a worker thread."""
        job_id = snapshot.id
        ctx = UploadContext(
            cancel_check=lambda: self._is_cancelled(job_id),
            on_file_size=lambda size: self._on_file_size(job_id, size),
            on_registered=lambda document_id: self._on_registered(job_id, document_id),
            on_progress=lambda progress, uploaded: self._on_progress(job_id, progress, uploaded),
        )

        try:
            result = self._worker.upload(snapshot, ctx)
        except UploadCancelledError as e:
            logger.info(f"{e}")
        except (NetworkError, UploadError, OSError) as e:
            logger.warning(f"Upload of {snapshot.file_name} failed: {e}")
            self._on_failure(job_id, str(e) or type(e).__name__)
        except Exception as e:
            logger.exception(f"Unexpected error uploading {snapshot.file_name}")
            self._on_failure(job_id, str(e) or type(e).__name__)
        else:
            self._on_success(job_id, result)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())
                self._changed.notify_all()
            self._schedule()

    def _on_file_size(self, job_id: str, file_size: int) -> None:
        with self._lock:
            job = self._live_job(job_id)
            if job is not None:
                job.file_size = file_size
        self._notify_queue()

    def _on_registered(self, job_id: str, document_id: str) -> None:
        with self._lock:
            job = self._live_job(job_id)
            if job is not None:
                job.document_id = document_id

    def _on_progress(self, job_id: str, progress: int, uploaded_bytes: int) -> None:
        with self._lock:
            job = self._live_job(job_id)
            if job is None:
                return
            job.progress = max(job.progress, progress)
            job.uploaded_bytes = uploaded_bytes
            progress = job.progress
        self._reporter.job_progress(job_id, progress, uploaded_bytes)

    def _on_success(self, job_id: str, result: UploadResult) -> None:
        with self._lock:
            job = self._live_job(job_id)
            if job is None:
                logger.debug(f"Ignoring result of cancelled job {job_id}")
                return
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.uploaded_bytes = job.file_size
            job.document_id = result.document_id
            job.completed_at = datetime.now(UTC)
            job.error = None
            self._changed.notify_all()
        self._notify_queue()

    def _on_failure(self, job_id: str, message: str) -> None:
        """Record a failed attempt and apply the retry policy."""
        with self._lock:
            job = self._live_job(job_id)
            if job is None:
                logger.debug(f"Ignoring failure of cancelled job {job_id}")
                return

            job.status = JobStatus.FAILED
            job.error = message

            decision = self._retry_policy.decide(job.retry_count)
            if decision.retry and not self._closed:
                job.retry_count = decision.retry_count
                job.status = JobStatus.PENDING
                deadline = self._clock() + decision.delay
                self._retry_at[job_id] = deadline
                self._start_retry_timer(job_id, deadline, decision.delay)
                logger.info(
                    f"Retrying {job.file_name} in {decision.delay:.1f}s "
                    f"(attempt {decision.retry_count}/{self._retry_policy.max_retries})"
                )
            else:
                logger.error(
                    f"Upload of {job.file_name} failed after {job.retry_count} retries: {message}"
                )
            self._changed.notify_all()
        self._notify_queue()

    def _start_retry_timer(self, job_id: str, deadline: float, delay: float) -> None:
        """Schedule a scheduling pass after a retry backoff. Caller holds the lock."""
        timer = threading.Timer(delay, lambda: self._on_retry_timer(timer, job_id, deadline))
        timer.daemon = True
        self._timers.add(timer)
        timer.start()

    def _on_retry_timer(self, timer: threading.Timer, job_id: str, deadline: float) -> None:
        with self._lock:
            self._timers.discard(timer)
            # Backoff is over even if the timer woke slightly early
            if self._retry_at.get(job_id) == deadline:
                del self._retry_at[job_id]
        self._schedule()

    # === Helpers ===

    def _find(self, job_id: str) -> UploadJob | None:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def _live_job(self, job_id: str) -> UploadJob | None:
        """The job if it is still in the queue and uploading."""
        job = self._find(job_id)
        if job is None or job.status != JobStatus.UPLOADING:
            return None
        return job

    def _is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            return self._live_job(job_id) is None

    def _count(self, status: JobStatus) -> int:
        return sum(1 for job in self._jobs if job.status == status)

    def _notify_queue(self) -> None:
        self._reporter.queue_updated(self.get_queue())
