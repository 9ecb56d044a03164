"""OAuth2 for the Spotify accounts service.

Builds authorization URLs, exchanges grant codes, refreshes tokens, and
wraps a credential in a token source that persists every token it hands out.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse

import httpx

from ezspotify.config import Config
from ezspotify.models.auth import Credential, TokenResponse, TokenStatus
from ezspotify.token_store import CredentialStore
from ezspotify.utils.errors import TokenExchangeError, TokenRefreshError

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"


def _error_detail(response: httpx.Response) -> str:
    """Best-effort provider error message from a token endpoint response."""
    error_detail = response.text
    try:
        error_json = response.json()
        error_detail = error_json.get("error_description") or error_json.get("error") or response.text
    except ValueError:
        pass
    return error_detail


class SpotifyOAuth:
    """Authorization code grant against the Spotify accounts service."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._http = httpx.Client(timeout=30.0)

    def authorization_url(self, state: str) -> str:
        """URL the user visits to grant access.

        Args:
            state: CSRF token echoed back on the callback.
        """
        params = {
            "client_id": self._config.settings.client_id,
            "response_type": "code",
            "redirect_uri": self._config.redirect_uri,
            "scope": " ".join(self._config.scopes),
            "state": state,
            "access_type": "offline",
        }
        return f"{AUTH_URL}?{urllib.parse.urlencode(params)}"

    def exchange_code(self, code: str) -> Credential:
        """Exchange a grant code for a credential.

        Raises:
            TokenExchangeError: Transport failure or non-200 response, with the provider's message.
        """
        token = self._post_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._config.redirect_uri,
        }, TokenExchangeError, "Token exchange failed")
        return token.to_credential()

    def refresh(self, credential: Credential) -> Credential:
        """Exchange the refresh token for a new credential."""
        if not credential.refresh_token:
            raise TokenRefreshError("Token refresh failed: no refresh token stored")

        token = self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
        }, TokenRefreshError, "Token refresh failed")
        return token.to_credential(credential.refresh_token)

    def _post_token(
        self,
        data: dict[str, str],
        error_cls: type[Exception],
        what: str,
    ) -> TokenResponse:
        data = {
            **data,
            "client_id": self._config.settings.client_id,
            "client_secret": self._config.settings.client_secret,
        }
        try:
            response = self._http.post(TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise error_cls(f"{what}: {e}") from e

        if response.status_code != 200:
            raise error_cls(f"{what} (HTTP {response.status_code}): {_error_detail(response)}")

        try:
            return TokenResponse(**response.json())
        except (ValueError, TypeError) as e:
            raise error_cls(f"{what}: unexpected token response: {e}") from e

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()


class AutoRefreshingTokenSource:
    """Hands out a valid credential, refreshing it once expired.

    Every successful call persists the returned credential, so the file on
    disk always matches what callers last saw.
    """

    def __init__(self, oauth: SpotifyOAuth, store: CredentialStore, credential: Credential) -> None:
        self._oauth = oauth
        self._store = store
        self._credential = credential
        self._lock = threading.Lock()

    def token(self) -> Credential:
        """Return a usable credential.

        Raises:
            TokenRefreshError: The refresh exchange failed; nothing is retried.
        """
        with self._lock:
            if self._credential.is_expired():
                logger.info("Access token expired, refreshing")
                self._credential = self._oauth.refresh(self._credential)
            self._store.save(self._credential)
            return self._credential

    def access_token(self) -> str:
        return self.token().access_token

    def force_refresh(self) -> Credential:
        """Refresh regardless of expiry and persist the result."""
        with self._lock:
            self._credential = self._oauth.refresh(self._credential)
            self._store.save(self._credential)
            return self._credential

    def get_status(self) -> TokenStatus:
        """Get the current token status."""
        return TokenStatus.from_credential(self._credential)
