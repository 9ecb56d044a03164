"""HTTP client for the Spotify Web API player endpoints.

Fetches a bearer token from the token source on every request. Failures
are raised as PlaybackError subclasses; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from ezspotify.models.auth import Credential
from ezspotify.models.player import PlaybackState
from ezspotify.utils.errors import (
    NoActiveDeviceError,
    PlaybackDecodeError,
    PlaybackTransportError,
)

logger = logging.getLogger(__name__)

API_BASE = "https://api.spotify.com/v1"

# (method, path) for the stateless transport actions
TRANSPORT_ENDPOINTS: dict[str, tuple[str, str]] = {
    "play": ("PUT", "/me/player/play"),
    "pause": ("PUT", "/me/player/pause"),
    "next": ("POST", "/me/player/next"),
    "previous": ("POST", "/me/player/previous"),
}


class TokenSource(Protocol):
    def token(self) -> Credential: ...


class SpotifyClient:
    """Player API calls authorized through a token source."""

    def __init__(
        self,
        tokens: TokenSource,
        base_url: str = API_BASE,
        verbose: bool = False,
    ) -> None:
        self._tokens = tokens
        self._base_url = base_url
        self._verbose = verbose
        self._http = httpx.Client(timeout=15.0)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST, PUT).
            path: API path (e.g. "/me/player"), appended to the base URL.
            params: Query parameters.

        Returns:
            The httpx.Response object for any status below 400.

        Raises:
            NoActiveDeviceError: The API reports no active device.
            PlaybackTransportError: Network failure or any other error status.
            TokenRefreshError: The token source could not refresh.
        """
        url = self._base_url + path
        credential = self._tokens.token()
        headers = {"Authorization": f"{credential.token_type or 'Bearer'} {credential.access_token}"}

        if self._verbose:
            logger.info(f"{method} {url} {params or ''}")

        try:
            response = self._http.request(method=method, url=url, headers=headers, params=params)
        except httpx.HTTPError as e:
            raise PlaybackTransportError(f"{method} {path} failed: {e}") from e

        if self._verbose:
            logger.info(f"Response: {response.status_code}")

        if response.status_code >= 400:
            message, reason = _error_fields(response)
            if reason == "NO_ACTIVE_DEVICE":
                raise NoActiveDeviceError(f"No active device: {message}")
            raise PlaybackTransportError(
                f"API error (HTTP {response.status_code}): {message}",
                status_code=response.status_code,
            )

        return response

    def get_playback_state(self) -> PlaybackState:
        """Current is-playing flag and device volume.

        Raises:
            NoActiveDeviceError: Nothing is playing anywhere (HTTP 204).
            PlaybackDecodeError: The body is not a playback state.
        """
        response = self.request("GET", "/me/player")
        if response.status_code == 204 or not response.content:
            raise NoActiveDeviceError("No active device")
        try:
            return PlaybackState.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise PlaybackDecodeError(f"Could not decode playback state: {e}") from e

    def transport(self, action: str) -> None:
        """Issue one of play, pause, next or previous."""
        if action not in TRANSPORT_ENDPOINTS:
            raise ValueError(f"Unknown transport action '{action}'")
        method, path = TRANSPORT_ENDPOINTS[action]
        self.request(method, path)

    def set_volume(self, percent: int) -> None:
        """Set the active device volume (0-100)."""
        if not 0 <= percent <= 100:
            raise ValueError(f"Volume must be between 0 and 100, got {percent}")
        self.request("PUT", "/me/player/volume", params={"volume_percent": percent})

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()


def _error_fields(response: httpx.Response) -> tuple[str, str]:
    """Extract (message, reason) from a Web API error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text, ""
    error = data.get("error", {}) if isinstance(data, dict) else data
    if not isinstance(error, dict):
        return str(error), ""
    return error.get("message", response.text), error.get("reason", "")
