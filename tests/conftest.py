"""Shared fixtures for the ezspotify test suite."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from ezspotify.config import Config, Settings
from ezspotify.models.auth import Credential, utcnow
from ezspotify.models.player import PlaybackState
from ezspotify.token_store import CredentialStore


@pytest.fixture
def fake_settings(tmp_path) -> Settings:
    return Settings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        local_port=9120,
        cert_file="cert.pem",
        key_file="key.pem",
        token_file=str(tmp_path / "spotify_token.json"),
        open_browser=False,
    )


@pytest.fixture
def fake_config(fake_settings) -> Config:
    return Config(settings=fake_settings)


@pytest.fixture
def store(fake_config) -> CredentialStore:
    return CredentialStore(fake_config.token_path)


@pytest.fixture
def valid_credential() -> Credential:
    return Credential(
        access_token="access-valid",
        refresh_token="refresh-1",
        token_type="Bearer",
        expiry=utcnow() + timedelta(hours=1),
    )


@pytest.fixture
def expired_credential() -> Credential:
    return Credential(
        access_token="access-old",
        refresh_token="refresh-1",
        token_type="Bearer",
        expiry=utcnow() - timedelta(minutes=5),
    )


@pytest.fixture
def mock_player():
    """MagicMock standing in for SpotifyClient."""
    player = MagicMock()
    player.get_playback_state.return_value = PlaybackState.model_validate(
        {"is_playing": True, "device": {"volume_percent": 50}}
    )
    return player
