"""Error taxonomy and structured error output."""

from __future__ import annotations

import json
import sys

from rich.console import Console

console = Console(stderr=True)


class EzSpotifyError(Exception):
    """Base class for every error raised by ezspotify."""

    code = "RUNTIME_ERROR"


class ConfigError(EzSpotifyError):
    """Required configuration is missing or inconsistent."""

    code = "CONFIG_ERROR"


# ── Authorization ────────────────────────────────────────────────────

class AuthorizationError(EzSpotifyError):
    """The authorization code flow did not produce a credential."""

    code = "AUTH_ERROR"


class StateMismatchError(AuthorizationError):
    """Callback ``state`` did not match the value we sent."""


class MissingCodeError(AuthorizationError):
    """Callback arrived without a ``code`` parameter."""


class AuthorizationTimeoutError(AuthorizationError):
    """No callback arrived before the deadline."""

    code = "TIMEOUT"


class TokenExchangeError(AuthorizationError):
    """The token endpoint rejected the grant code or could not be reached."""


class CallbackListenerError(AuthorizationError):
    """The loopback callback listener could not be started."""


class TokenRefreshError(EzSpotifyError):
    """A refresh-token exchange failed."""

    code = "AUTH_ERROR"


# ── Credential store ─────────────────────────────────────────────────

class CredentialStoreError(EzSpotifyError):
    """Reading or writing the credential file failed."""

    code = "STORE_ERROR"


class CredentialNotFoundError(CredentialStoreError):
    """No credential file exists yet."""


class CredentialCorruptError(CredentialStoreError):
    """The credential file exists but cannot be decoded."""


# ── Playback ─────────────────────────────────────────────────────────

class PlaybackError(EzSpotifyError):
    """A remote playback call failed."""

    code = "PLAYBACK_ERROR"


class NoActiveDeviceError(PlaybackError):
    """The account has no active playback device."""

    code = "NO_ACTIVE_DEVICE"


class PlaybackTransportError(PlaybackError):
    """Network failure or error status from the playback API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlaybackDecodeError(PlaybackError):
    """The playback API returned a body we could not decode."""


# Actionable hints keyed by error substring
_ERROR_HINTS: list[tuple[str, str]] = [
    ("no active device", "Start playback on any Spotify device, then retry"),
    ("state mismatch", "Restart the login; the callback did not come from this session"),
    ("timed out", "Complete the consent page within 5 minutes; run `ezspotify auth login`"),
    ("refresh failed", "The grant may be revoked; run `ezspotify auth login`"),
    ("invalid_grant", "The grant may be revoked; run `ezspotify auth login`"),
    ("401", "Token may be expired; run `ezspotify auth refresh`"),
    ("address already in use", "Another process holds the callback port; set EZSPOTIFY_LOCAL_PORT"),
    ("must be set", "Add the missing values to your .env file"),
    ("429", "Rate limited; wait a moment and retry"),
    ("connection", "Connection error; check network connectivity"),
]


def _get_hint(error_message: str) -> str | None:
    """Match an error message to an actionable hint."""
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern.lower() in lower:
            return hint
    return None


def error_code(error: Exception) -> str:
    """Classify an exception into a stable error code."""
    if isinstance(error, EzSpotifyError):
        return error.code
    message = str(error).lower()
    if "timeout" in message:
        return "TIMEOUT"
    if "connection" in message:
        return "CONNECTION_ERROR"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout:
    {"error": true, "code": "AUTH_ERROR", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    message = str(error)
    hint = _get_hint(message)

    error_obj: dict[str, object] = {
        "error": True,
        "code": error_code(error),
        "message": message,
    }
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
