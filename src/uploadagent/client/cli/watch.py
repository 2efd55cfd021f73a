"""Watch configuration commands for the uploadagent CLI.

Commands:
- watch list: List watch configurations
- watch add: Add a watched directory
- watch update: Change a watch configuration
- watch remove: Delete a watch configuration
- watch enable / watch disable: Toggle a watch configuration

These commands edit watchers.json; a running agent picks the changes up
on its next start.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click

from uploadagent.client.cli.config import get_watch_store
from uploadagent.client.watch.store import WatchConfigError
from uploadagent.client.watch.types import WatchConfig


def _describe(config: WatchConfig) -> str:
    state = "enabled" if config.enabled else "disabled"
    mode = "recursive" if config.recursive else "top-level"
    patterns = ", ".join(config.patterns) if config.patterns else "*"
    folder = config.folder_id or "-"
    return f"{config.id}  {config.path}  [{state}, {mode}]  patterns={patterns}  folder={folder}"


def _fail(message: object) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _update(config_id: str, **changes: object) -> None:
    try:
        updated = get_watch_store().update(config_id, **changes)
    except WatchConfigError as e:
        _fail(e)
    if updated is None:
        _fail(f"Unknown watch configuration: {config_id}")
    click.echo(_describe(updated))


@click.group()
def watch() -> None:
    """Manage watched directories."""


@watch.command("list")
def list_configs() -> None:
    """List watch configurations."""
    try:
        configs = get_watch_store().list()
    except WatchConfigError as e:
        _fail(e)
    if not configs:
        click.echo("No watch configurations.")
        return
    for config in configs:
        click.echo(_describe(config))


@watch.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--folder", "folder_id", default=None, help="Target folder id on the server.")
@click.option(
    "--recursive/--no-recursive",
    default=True,
    help="Also watch subdirectories (default: recursive).",
)
@click.option(
    "--pattern",
    "patterns",
    multiple=True,
    help="Glob a file must match (repeatable, default: all files).",
)
@click.option("--disabled", is_flag=True, help="Store the configuration disabled.")
def add(
    path: Path,
    folder_id: str | None,
    recursive: bool,
    patterns: tuple[str, ...],
    disabled: bool,
) -> None:
    """Add a watched directory."""
    config = WatchConfig(
        path=str(path),
        folder_id=folder_id,
        recursive=recursive,
        patterns=list(patterns),
        enabled=not disabled,
    )
    try:
        config = get_watch_store().add(config)
    except WatchConfigError as e:
        _fail(e)
    click.echo(f"Added {_describe(config)}")


@watch.command()
@click.argument("config_id")
@click.option("--path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--folder", "folder_id", default=None, help="Target folder id on the server.")
@click.option("--recursive/--no-recursive", default=None)
@click.option("--pattern", "patterns", multiple=True, help="Replace the include patterns.")
@click.option("--clear-patterns", is_flag=True, help="Accept all files.")
def update(
    config_id: str,
    path: Path | None,
    folder_id: str | None,
    recursive: bool | None,
    patterns: tuple[str, ...],
    clear_patterns: bool,
) -> None:
    """Change a watch configuration."""
    changes: dict[str, object] = {}
    if path is not None:
        changes["path"] = str(path)
    if folder_id is not None:
        changes["folder_id"] = folder_id
    if recursive is not None:
        changes["recursive"] = recursive
    if clear_patterns:
        changes["patterns"] = []
    elif patterns:
        changes["patterns"] = list(patterns)

    if not changes:
        click.echo("Nothing to update.", err=True)
        sys.exit(1)
    _update(config_id, **changes)


@watch.command()
@click.argument("config_id")
def remove(config_id: str) -> None:
    """Delete a watch configuration."""
    try:
        removed = get_watch_store().remove(config_id)
    except WatchConfigError as e:
        _fail(e)
    if not removed:
        _fail(f"Unknown watch configuration: {config_id}")
    click.echo(f"Removed {config_id}")


@watch.command()
@click.argument("config_id")
def enable(config_id: str) -> None:
    """Enable a watch configuration."""
    _update(config_id, enabled=True)


@watch.command()
@click.argument("config_id")
def disable(config_id: str) -> None:
    """Disable a watch configuration."""
    _update(config_id, enabled=False)
