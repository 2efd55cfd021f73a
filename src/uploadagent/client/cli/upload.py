"""Upload commands for the uploadagent CLI.

Commands:
- upload: Upload files once and report the results
- run: Run the agent, uploading new files from every enabled watcher
"""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click

from uploadagent.client.agent import UploadAgent
from uploadagent.client.auth import CredentialsError
from uploadagent.client.cli.config import get_credential_store, get_watch_store, load_settings
from uploadagent.client.upload.types import JobStatus, UploadJob


def _create_agent() -> UploadAgent:
    """Build an agent from stored credentials, exiting when there are none."""
    try:
        credentials = get_credential_store().require()
    except CredentialsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return UploadAgent(credentials, get_watch_store(), settings=load_settings())


def _print_results(jobs: list[UploadJob]) -> int:
    """Print one line per job. Returns the number of jobs that did not complete."""
    failures = 0
    for job in jobs:
        if job.status == JobStatus.COMPLETED:
            click.echo(f"  ✓ {job.file_name} -> {job.document_id}")
        else:
            failures += 1
            reason = job.error or job.status.value
            click.echo(click.style(f"  ✗ {job.file_name}: {reason}", fg="red"))
    return failures


def _block_until_interrupted() -> None:
    while True:
        time.sleep(1.0)


@click.command()
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--folder", "folder_id", default=None, help="Target folder id on the server.")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Give up waiting after this many seconds.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the jobs as JSON.")
def upload(
    paths: tuple[Path, ...],
    folder_id: str | None,
    timeout: float | None,
    as_json: bool,
) -> None:
    """Upload files and wait for the results.

    Failed uploads are retried automatically before being reported.
    Exits with status 1 if any file could not be uploaded.
    """
    agent = _create_agent()
    try:
        jobs = agent.add_multiple(paths, folder_id)
        if not as_json:
            click.echo(f"Uploading {len(jobs)} file(s)...")
        settled = agent.queue.wait_idle(timeout=timeout)
        results = agent.get_queue()
    finally:
        agent.shutdown(wait=False)

    if as_json:
        click.echo(json.dumps([job.to_dict() for job in results], indent=2))
        failures = sum(1 for job in results if job.status != JobStatus.COMPLETED)
    else:
        failures = _print_results(results)
    if not settled:
        click.echo("Error: Timed out waiting for uploads.", err=True)
        sys.exit(1)
    if failures:
        click.echo(f"\n{failures} of {len(results)} upload(s) failed.", err=True)
        sys.exit(1)
    if not as_json:
        click.echo(f"\nUploaded {len(results)} file(s).")


@click.command()
def run() -> None:
    """Run the agent until interrupted.

    Starts a watcher for every enabled watch configuration and uploads
    new files as they appear.
    """
    agent = _create_agent()
    reported: set[str] = set()

    def on_queue_updated(jobs: list[UploadJob]) -> None:
        for job in jobs:
            if job.status == JobStatus.COMPLETED and job.id not in reported:
                reported.add(job.id)
                click.echo(f"  ✓ {job.file_name}")
            elif job.status == JobStatus.FAILED and job.id not in reported:
                reported.add(job.id)
                click.echo(click.style(f"  ✗ {job.file_name}: {job.error}", fg="red"))

    agent.reporter.add_queue_listener(on_queue_updated)

    running = agent.start()
    if running == 0:
        click.echo("Warning: No watchers running. Add one with 'uploadagent watch add'.", err=True)
    click.echo("Watching for new files... (Ctrl+C to stop)\n")

    try:
        _block_until_interrupted()
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        agent.shutdown()
