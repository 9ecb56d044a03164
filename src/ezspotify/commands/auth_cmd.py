"""CLI commands for authentication management."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from ezspotify.app import build_authorization_flow
from ezspotify.auth import AutoRefreshingTokenSource, SpotifyOAuth
from ezspotify.config import Config, get_config
from ezspotify.models.auth import TokenStatus
from ezspotify.token_store import CredentialStore
from ezspotify.utils.errors import (
    ConfigError,
    CredentialNotFoundError,
    CredentialStoreError,
    EzSpotifyError,
    handle_error,
)
from ezspotify.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Manage the stored Spotify credential.")


def _load_config() -> Config:
    try:
        return get_config()
    except ConfigError as e:
        handle_error(e)
        raise typer.Exit(1)


def _status_row(status: TokenStatus) -> dict[str, object]:
    return {
        "has_token": status.has_token,
        "is_expired": status.is_expired,
        "expires_at": str(status.expires_at) if status.expires_at else "N/A",
        "seconds_remaining": status.seconds_remaining or 0,
    }


@app.command()
def login(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Run the browser authorization flow and store a new credential."""
    config = _load_config()
    oauth = SpotifyOAuth(config)

    try:
        config.require_client_credentials()
        store = CredentialStore(config.token_path)
        console.print("Starting authorization...", style="yellow")
        credential = build_authorization_flow(config, oauth, store).authenticate()
        result = {"status": "authenticated", **_status_row(TokenStatus.from_credential(credential))}
        print_output(result, output, title="Authentication")
    except EzSpotifyError as e:
        console.print(f"[red]Authentication failed:[/red] {e}")
        raise typer.Exit(1)
    finally:
        oauth.close()


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show the stored credential's status."""
    config = _load_config()
    store = CredentialStore(config.token_path)

    try:
        credential = store.load()
    except CredentialNotFoundError:
        credential = None
    except CredentialStoreError as e:
        console.print(f"[yellow]{e}[/yellow]")
        credential = None

    print_output(_status_row(TokenStatus.from_credential(credential)), output, title="Token Status")


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Force refresh the stored credential."""
    config = _load_config()
    oauth = SpotifyOAuth(config)

    try:
        config.require_client_credentials()
        store = CredentialStore(config.token_path)
        console.print("Force refreshing token...", style="yellow")
        tokens = AutoRefreshingTokenSource(oauth, store, store.load())
        tokens.force_refresh()
        result = {"status": "refreshed", **_status_row(tokens.get_status())}
        print_output(result, output, title="Token Refreshed")
    except EzSpotifyError as e:
        console.print(f"[red]Token refresh failed:[/red] {e}")
        raise typer.Exit(1)
    finally:
        oauth.close()


@app.command()
def logout() -> None:
    """Delete the stored credential."""
    store = CredentialStore(_load_config().token_path)
    if store.delete():
        console.print(f"Removed {store.path}", style="green")
    else:
        console.print(f"[dim]No credential stored at {store.path}[/dim]")
