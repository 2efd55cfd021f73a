"""Credential commands for the uploadagent CLI.

Commands:
- login: Store API credentials for a document server
- logout: Forget stored credentials
- status: Show credentials and watch configurations
"""

from __future__ import annotations

import sys

import click

from uploadagent.client.api import DocumentClient
from uploadagent.client.auth import Credentials, CredentialsError
from uploadagent.client.cli.config import get_config_file, get_credential_store, get_watch_store
from uploadagent.client.watch.store import WatchConfigError


@click.command()
@click.option(
    "--server",
    required=True,
    help="Server URL (e.g., https://dms.example.com).",
)
@click.option("--api-key", required=True, help="API key identifier.")
@click.option("--organization", required=True, help="Organization id of the API key.")
@click.option(
    "--api-secret",
    prompt="API secret",
    hide_input=True,
    help="API secret (prompted when omitted).",
)
@click.option(
    "--validate/--no-validate",
    default=True,
    help="Check the credentials against the server before saving.",
)
def login(server: str, api_key: str, organization: str, api_secret: str, validate: bool) -> None:
    """Store credentials for a document server.

    The API secret is kept in the OS keyring; the other fields are
    written to config.json.
    """
    credentials = Credentials(
        api_key=api_key,
        api_secret=api_secret,
        organization_id=organization,
        server_url=server,
    )

    if validate:
        click.echo(f"Validating credentials with {credentials.server_url}...")
        with DocumentClient(credentials) as client:
            if not client.validate_credentials():
                click.echo("Error: Server rejected the credentials.", err=True)
                sys.exit(1)

    try:
        get_credential_store().save(credentials)
    except CredentialsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Logged in to {credentials.server_url} with API key {api_key}.")


@click.command()
def logout() -> None:
    """Forget stored credentials."""
    store = get_credential_store()
    if not store.has_credentials():
        click.echo("Not logged in.")
        return
    store.clear()
    click.echo("Credentials removed.")


@click.command()
@click.option("--check", is_flag=True, help="Also check that the server accepts the credentials.")
def status(check: bool) -> None:
    """Show credentials and watch configurations."""
    store = get_credential_store()
    try:
        credentials = store.require()
    except CredentialsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Server:       {credentials.server_url}")
    click.echo(f"API key:      {credentials.api_key}")
    click.echo(f"Organization: {credentials.organization_id}")

    if check:
        with DocumentClient(credentials) as client:
            if client.validate_credentials():
                click.echo(click.style("Credentials:  valid", fg="green"))
            else:
                click.echo(click.style("Credentials:  rejected", fg="red"))

    try:
        configs = get_watch_store().list()
    except WatchConfigError as e:
        click.echo(click.style(f"Watchers:     {e}", fg="red"))
    else:
        enabled = sum(1 for c in configs if c.enabled)
        click.echo(f"Watchers:     {len(configs)} configured, {enabled} enabled")
    click.echo(f"Config file:  {get_config_file()}")
