"""Progress fan-out toward the UI boundary.

This module provides:
- ProgressReporter: Delivers queue snapshots and byte progress to listeners

Two kinds of notifications are produced:
- queue_updated(jobs): full snapshot after structural/status changes
- job_progress(job_id, progress, uploaded_bytes): every chunk during transfer
"""

from __future__ import annotations

import logging
import threading

from uploadagent.client.upload.types import ProgressListener, QueueListener, UploadJob

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Stateless fan-out of queue and progress notifications.

    Listeners are invoked synchronously on the notifying thread. A
    listener that raises is logged and does not affect the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue_listeners: list[QueueListener] = []
        self._progress_listeners: list[ProgressListener] = []

    def add_queue_listener(self, listener: QueueListener) -> None:
        """Register a listener for full queue snapshots."""
        with self._lock:
            self._queue_listeners.append(listener)

    def remove_queue_listener(self, listener: QueueListener) -> None:
        """Unregister a queue listener (no-op if unknown)."""
        with self._lock:
            if listener in self._queue_listeners:
                self._queue_listeners.remove(listener)

    def add_progress_listener(self, listener: ProgressListener) -> None:
        """Register a listener for per-job byte progress."""
        with self._lock:
            self._progress_listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        """Unregister a progress listener (no-op if unknown)."""
        with self._lock:
            if listener in self._progress_listeners:
                self._progress_listeners.remove(listener)

    def queue_updated(self, jobs: list[UploadJob]) -> None:
        """Publish a full queue snapshot."""
        with self._lock:
            listeners = list(self._queue_listeners)
        for listener in listeners:
            try:
                listener(jobs)
            except Exception:
                logger.exception("Queue listener failed")

    def job_progress(self, job_id: str, progress: int, uploaded_bytes: int) -> None:
        """Publish byte progress for one job."""
        with self._lock:
            listeners = list(self._progress_listeners)
        for listener in listeners:
            try:
                listener(job_id, progress, uploaded_bytes)
            except Exception:
                logger.exception("Progress listener failed for %s", job_id)
