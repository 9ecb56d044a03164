"""Configuration management for ezspotify.

Loads credentials, listener settings and shortcut overrides from the
environment, with an optional .env file in the working directory.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ezspotify.models.player import QUIT_KEYS, Action, ShortcutBinding, ShortcutTable
from ezspotify.utils.errors import ConfigError

SCOPES = [
    "user-modify-playback-state",
    "user-read-playback-state",
]


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    client_id: str = Field(default="", description="Spotify OAuth client ID")
    client_secret: str = Field(default="", description="Spotify OAuth client secret")
    local_port: int = Field(default=9120, description="Port of the loopback callback listener")
    cert_file: str = Field(default="cert.pem", description="TLS certificate for the callback listener")
    key_file: str = Field(default="key.pem", description="TLS private key for the callback listener")
    token_file: str = Field(default="spotify_token.json", description="Where the credential is persisted")
    open_browser: bool = Field(default=True, description="Open the consent page in a browser")
    key_play_pause: str = " "
    key_next: str = "n"
    key_prev: str = "p"
    key_volume_up: str = "+"
    key_volume_down: str = "-"
    key_mute: str = "m"


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings

    @property
    def redirect_uri(self) -> str:
        return f"https://127.0.0.1:{self.settings.local_port}/callback"

    @property
    def scopes(self) -> list[str]:
        return list(SCOPES)

    @property
    def token_path(self) -> Path:
        return Path(self.settings.token_file).expanduser()

    def require_client_credentials(self) -> None:
        """Raise ConfigError unless both client id and secret are set."""
        if not self.settings.client_id or not self.settings.client_secret:
            raise ConfigError("EZSPOTIFY_CLIENT_ID and EZSPOTIFY_CLIENT_SECRET must be set")

    def shortcuts(self) -> ShortcutTable:
        """Build the keyboard shortcut table from the configured keys."""
        s = self.settings
        keys = [
            (s.key_play_pause, Action.TOGGLE_PLAYBACK),
            (s.key_next, Action.NEXT),
            (s.key_prev, Action.PREVIOUS),
            (s.key_volume_up, Action.VOLUME_UP),
            (s.key_volume_down, Action.VOLUME_DOWN),
            (s.key_mute, Action.MUTE),
        ]
        bindings = []
        for key, action in keys:
            if key in QUIT_KEYS:
                raise ConfigError(f"Key {key!r} is reserved for quitting and cannot trigger {action.display_name}")
            bindings.append(ShortcutBinding(trigger=key, action=action))
        try:
            return ShortcutTable(bindings)
        except ValueError as e:
            raise ConfigError(str(e)) from e


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _key(name: str, default: str) -> str:
    """Single-character shortcut override; only the first character counts."""
    val = os.environ.get(name, "")
    if not val:
        return default
    # A bare space is a valid binding, so fall back to the raw value
    stripped = val.strip().strip('"')
    return (stripped or val)[0]


def _port(name: str, default: str) -> int:
    """TCP port from the environment."""
    raw = _env(name, default=default)
    try:
        port = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a port number, got {raw!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"{name} must be between 1 and 65535, got {port}")
    return port


def _load_settings() -> Settings:
    """Load settings from EZSPOTIFY_* environment variables."""
    return Settings(
        client_id=_env("EZSPOTIFY_CLIENT_ID"),
        client_secret=_env("EZSPOTIFY_CLIENT_SECRET"),
        local_port=_port("EZSPOTIFY_LOCAL_PORT", "9120"),
        cert_file=_env("EZSPOTIFY_CERT_FILE", default="cert.pem"),
        key_file=_env("EZSPOTIFY_KEY_FILE", default="key.pem"),
        token_file=_env("EZSPOTIFY_TOKEN_FILE", default="spotify_token.json"),
        open_browser=_env("EZSPOTIFY_OPEN_BROWSER", default="true").lower() in ("true", "1", "yes"),
        key_play_pause=_key("EZSPOTIFY_KEY_PLAY_PAUSE", " "),
        key_next=_key("EZSPOTIFY_KEY_NEXT", "n"),
        key_prev=_key("EZSPOTIFY_KEY_PREV", "p"),
        key_volume_up=_key("EZSPOTIFY_KEY_VOLUME_UP", "+"),
        key_volume_down=_key("EZSPOTIFY_KEY_VOLUME_DOWN", "-"),
        key_mute=_key("EZSPOTIFY_KEY_MUTE", "m"),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Config(settings=_load_settings())
