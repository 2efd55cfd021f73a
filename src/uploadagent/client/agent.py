"""Upload agent - wires the watchers, the upload queue and the server client.

This module provides:
- UploadAgent: The command surface and watch-configuration surface

Data flow:
    WatchManager --(stable new file)--> UploadAgent._on_file_detected
        --> UploadQueue.enqueue(path, config.folder_id)
        --> UploadWorker --> DocumentClient --> server
    UploadQueue --> ProgressReporter --> registered listeners
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from uploadagent.client.api import DocumentClient
from uploadagent.client.auth import Credentials
from uploadagent.client.upload.progress import ProgressReporter
from uploadagent.client.upload.queue import UploadQueue
from uploadagent.client.upload.retry import RetryPolicy
from uploadagent.client.upload.types import UploadJob
from uploadagent.client.upload.worker import UploadWorker
from uploadagent.client.watch.manager import WatchManager
from uploadagent.client.watch.store import WatchConfigStore
from uploadagent.client.watch.types import WatchConfig
from uploadagent.core.config import AgentSettings, ServerConfig

logger = logging.getLogger(__name__)


class UploadAgent:
    """Local upload agent.

    Owns one UploadQueue, one WatchManager and the DocumentClient they
    share. Every component is created here and injected into its
    consumers; nothing is global.

    Usage:
        with UploadAgent(credentials, WatchConfigStore(path)) as agent:
            agent.start()
            agent.add("/data/scans/invoice.pdf")
    """

    def __init__(
        self,
        credentials: Credentials,
        watch_store: WatchConfigStore,
        settings: AgentSettings | None = None,
        client: DocumentClient | None = None,
    ) -> None:
        """Initialize the agent.

        Args:
            credentials: Credentials used to sign server requests.
            watch_store: Persistent watch configurations.
            settings: Queue and watcher tuning (defaults when omitted).
            client: Document client (built from credentials when omitted).
        """
        self._settings = settings or AgentSettings()
        self._client = client or DocumentClient(
            credentials,
            ServerConfig(server_url=credentials.server_url, timeout=self._settings.timeout),
        )
        self._reporter = ProgressReporter()
        self._queue = UploadQueue(
            UploadWorker(self._client, chunk_size=self._settings.chunk_size),
            reporter=self._reporter,
            max_concurrent=self._settings.max_concurrent,
            retry_policy=RetryPolicy(
                max_retries=self._settings.max_retries,
                backoff=self._settings.retry_backoff,
            ),
        )
        self._watchers = WatchManager(
            watch_store,
            stability_threshold=self._settings.stability_threshold,
            poll_interval=self._settings.poll_interval,
        )
        self._watchers.set_file_detected_callback(self._on_file_detected)

    @property
    def settings(self) -> AgentSettings:
        """Agent settings."""
        return self._settings

    @property
    def queue(self) -> UploadQueue:
        """Upload queue."""
        return self._queue

    @property
    def watchers(self) -> WatchManager:
        """Watch manager."""
        return self._watchers

    @property
    def reporter(self) -> ProgressReporter:
        """Progress reporter for UI listeners."""
        return self._reporter

    # === Lifecycle ===

    def start(self) -> int:
        """Start a watcher for every enabled configuration.

        Returns:
            Number of running watchers.
        """
        running = self._watchers.start_all()
        logger.info(f"Upload agent started ({running} watchers running)")
        return running

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop watchers, stop the queue and close the server client.

        Args:
            wait: Join in-flight uploads before returning.
            timeout: Maximum seconds to wait for in-flight uploads.
        """
        self._watchers.stop_all()
        self._queue.shutdown(wait=wait, timeout=timeout)
        self._client.close()
        logger.info("Upload agent stopped")

    def __enter__(self) -> UploadAgent:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.shutdown()

    # === Command surface ===

    def add(self, file_path: Path | str, folder_id: str | None = None) -> UploadJob:
        """Queue a file for upload."""
        return self._queue.enqueue(file_path, folder_id)

    def add_multiple(
        self,
        file_paths: Iterable[Path | str],
        folder_id: str | None = None,
    ) -> list[UploadJob]:
        """Queue several files for upload."""
        return self._queue.enqueue_many(file_paths, folder_id)

    def remove(self, job_id: str) -> bool:
        """Remove a job (cancelling it if it is uploading)."""
        return self._queue.remove(job_id)

    def retry(self, job_id: str) -> bool:
        """Manually retry a failed job."""
        return self._queue.retry(job_id)

    def get_queue(self) -> list[UploadJob]:
        """Snapshots of every job."""
        return self._queue.get_queue()

    def clear_completed(self) -> int:
        """Remove completed and cancelled jobs."""
        return self._queue.clear_completed()

    def toggle_pause(self, paused: bool) -> None:
        """Pause or resume admission of new uploads."""
        self._queue.toggle_pause(paused)

    # === Watch-configuration surface ===

    def get_configs(self) -> list[WatchConfig]:
        """Get all watch configurations."""
        return self._watchers.get_configs()

    def add_config(
        self,
        path: str | Path,
        folder_id: str | None = None,
        recursive: bool = True,
        patterns: list[str] | None = None,
        enabled: bool = True,
    ) -> WatchConfig:
        """Add a watch configuration (started immediately when enabled)."""
        return self._watchers.add_config(path, folder_id, recursive, patterns, enabled)

    def update_config(self, config_id: str, **changes: Any) -> WatchConfig | None:
        """Update a watch configuration."""
        return self._watchers.update_config(config_id, **changes)

    def remove_config(self, config_id: str) -> bool:
        """Stop and delete a watch configuration."""
        return self._watchers.remove_config(config_id)

    def start_watcher(self, config_id: str) -> bool:
        """Start the watcher of a configuration."""
        return self._watchers.start_config(config_id)

    def stop_watcher(self, config_id: str) -> bool:
        """Stop the watcher of a configuration."""
        self._watchers.stop(config_id)
        return True

    def watcher_status(self, config_id: str) -> bool:
        """Check if the watcher of a configuration is running."""
        return self._watchers.is_running(config_id)

    # === Internal ===

    def _on_file_detected(self, path: Path, config: WatchConfig) -> None:
        """Queue a file reported by a watcher."""
        try:
            self._queue.enqueue(path, config.folder_id)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not queue detected file {path}: {e}")
        except RuntimeError:
            logger.debug(f"Ignoring {path}: upload queue is shut down")
