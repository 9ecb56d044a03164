"""ezspotify — entry point.

Control Spotify playback from the keyboard and hardware media keys.
"""

from __future__ import annotations

import logging

import typer

from ezspotify import app as controller
from ezspotify.commands.auth_cmd import app as auth_app
from ezspotify.config import get_config
from ezspotify.utils.errors import ConfigError, EzSpotifyError, handle_error

app = typer.Typer(
    name="ezspotify",
    help="Control Spotify playback from the keyboard and media keys.",
    invoke_without_command=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    media_keys: bool = typer.Option(True, "--media-keys/--no-media-keys", help="Listen for hardware media keys"),
) -> None:
    """Run the controller when no subcommand is given."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    if ctx.invoked_subcommand is not None:
        return

    try:
        controller.run(get_config(), media_keys=media_keys, verbose=verbose)
    except EzSpotifyError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def keys() -> None:
    """Print the keyboard shortcuts."""
    try:
        shortcuts = get_config().shortcuts()
    except ConfigError as e:
        handle_error(e)
        raise typer.Exit(1)
    controller.print_legend(shortcuts)


if __name__ == "__main__":
    app()
