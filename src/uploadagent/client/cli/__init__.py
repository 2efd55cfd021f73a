"""Command-line interface for uploadagent.

This module provides the main CLI entry point and assembles all commands.

Commands:
- login: Store API credentials for a document server
- logout: Forget stored credentials
- status: Show credentials and watch configurations
- upload: Upload files once and report the results
- run: Run the agent, uploading new files from enabled watchers
- watch: Manage watched directories (list, add, update, remove, enable, disable)
"""

from __future__ import annotations

from pathlib import Path

import click

from uploadagent.client.cli.auth import login, logout, status
from uploadagent.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    load_settings,
    setup_logging,
)
from uploadagent.client.cli.upload import run, upload
from uploadagent.client.cli.watch import watch


@click.group()
@click.version_option(package_name="uploadagent")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file.",
)
def cli(verbose: bool, log_file: Path | None) -> None:
    """uploadagent - Watch directories and upload new files to a document server."""
    setup_logging(verbose, log_file)


# Credential commands
cli.add_command(login)
cli.add_command(logout)
cli.add_command(status)

# Upload commands
cli.add_command(upload)
cli.add_command(run)

# Watch configuration commands
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "load_config",
    "load_settings",
    "setup_logging",
]
