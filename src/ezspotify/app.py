"""Composition root: credential -> token source -> client -> input loop."""

from __future__ import annotations

import logging

from rich.console import Console

from ezspotify.auth import AutoRefreshingTokenSource, SpotifyOAuth
from ezspotify.authorization import AuthorizationFlow, build_ssl_context
from ezspotify.client import SpotifyClient
from ezspotify.config import Config
from ezspotify.models.auth import Credential
from ezspotify.models.player import ShortcutTable
from ezspotify.services.dispatcher import ActionDispatcher
from ezspotify.services.multiplexer import InputMultiplexer
from ezspotify.services.terminal import open_key_reader
from ezspotify.token_store import CredentialStore
from ezspotify.utils.errors import CredentialStoreError
from ezspotify.utils.output import print_output

logger = logging.getLogger(__name__)
console = Console(stderr=True)


def build_authorization_flow(config: Config, oauth: SpotifyOAuth, store: CredentialStore) -> AuthorizationFlow:
    """Authorization flow wired to the configured port and TLS material."""
    settings = config.settings
    return AuthorizationFlow(
        oauth,
        store,
        port=settings.local_port,
        ssl_context=build_ssl_context(settings.cert_file, settings.key_file),
        open_browser=settings.open_browser,
    )


def obtain_credential(config: Config, oauth: SpotifyOAuth, store: CredentialStore) -> Credential:
    """Load the stored credential, or run the authorization flow if there is none.

    A missing or corrupt file is never fatal; authorization errors are.
    """
    try:
        return store.load()
    except CredentialStoreError as e:
        logger.info("Stored credential unusable: %s", e)
        console.print("No valid token found, starting authorization...", style="yellow")

    return build_authorization_flow(config, oauth, store).authenticate()


def print_legend(shortcuts: ShortcutTable) -> None:
    """Show the keyboard shortcuts."""
    print_output(shortcuts.legend(), columns=["key", "action"], title="Shortcuts")
    console.print("[dim]Media keys (Play/Pause, Next, Previous) are also supported[/dim]")


def run(config: Config, media_keys: bool = True, verbose: bool = False) -> None:
    """Authenticate, then control playback until the user quits.

    Raises:
        ConfigError: Missing client credentials or conflicting shortcuts.
        AuthorizationError: No stored credential and the flow failed.
    """
    config.require_client_credentials()
    shortcuts = config.shortcuts()

    store = CredentialStore(config.token_path)
    oauth = SpotifyOAuth(config)
    client: SpotifyClient | None = None
    try:
        credential = obtain_credential(config, oauth, store)
        tokens = AutoRefreshingTokenSource(oauth, store, credential)
        client = SpotifyClient(tokens, verbose=verbose)

        console.print("\n[bold green]Spotify Controller Ready![/bold green]")
        print_legend(shortcuts)

        multiplexer = InputMultiplexer(
            ActionDispatcher(client),
            shortcuts,
            open_key_reader(),
            media_keys=media_keys,
        )
        multiplexer.run()
    finally:
        if client is not None:
            client.close()
        oauth.close()
