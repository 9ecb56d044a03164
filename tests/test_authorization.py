"""Tests for authorization.py — loopback callback listener and the three-way wait."""
from __future__ import annotations

import os
import socket
import threading
from unittest.mock import MagicMock, patch

import httpx
import pytest

from ezspotify.authorization import SUCCESS_BODY, AuthorizationFlow, build_ssl_context
from ezspotify.utils.errors import (
    AuthorizationTimeoutError,
    CallbackListenerError,
    MissingCodeError,
    StateMismatchError,
    TokenExchangeError,
)

STATE = "expected-state"


@pytest.fixture
def oauth(valid_credential):
    o = MagicMock()
    o.authorization_url.side_effect = lambda state: f"https://accounts.example/authorize?state={state}"
    o.exchange_code.return_value = valid_credential
    return o


class _Browser:
    """Plays the user's browser: hits the callback once the URL is presented."""

    def __init__(self, *paths: str) -> None:
        self.paths = paths
        self.responses: list[httpx.Response] = []
        self.port: int | None = None
        self.url: str | None = None
        self._thread: threading.Thread | None = None
        self.flow: AuthorizationFlow | None = None

    def __call__(self, url: str) -> None:
        self.url = url
        self.port = self.flow.listening_port
        self._thread = threading.Thread(target=self._visit, daemon=True)
        self._thread.start()

    def _visit(self) -> None:
        for path in self.paths:
            self.responses.append(httpx.get(f"http://127.0.0.1:{self.port}{path}", timeout=5))

    def join(self) -> None:
        if self._thread is not None:
            self._thread.join(5)


def _flow(oauth, store, browser, timeout=5.0, state=STATE, port=0):
    flow = AuthorizationFlow(
        oauth,
        store,
        port=port,
        ssl_context=None,
        timeout=timeout,
        open_browser=False,
        state=state,
        presenter=browser,
    )
    browser.flow = flow
    return flow


def _assert_listener_closed(browser, flow):
    assert flow.listening_port is None
    with pytest.raises(httpx.ConnectError):
        httpx.get(f"http://127.0.0.1:{browser.port}/callback", timeout=2)


# ── success ──────────────────────────────────────────────────────────

def test_successful_callback_exchanges_and_persists(oauth, store, valid_credential):
    browser = _Browser(f"/callback?state={STATE}&code=grant-123")
    flow = _flow(oauth, store, browser)

    cred = flow.authenticate()
    browser.join()

    assert cred == valid_credential
    oauth.exchange_code.assert_called_once_with("grant-123")
    assert store.load() == valid_credential
    assert browser.responses[0].status_code == 200
    assert browser.responses[0].text == SUCCESS_BODY
    _assert_listener_closed(browser, flow)


def test_unrelated_path_is_ignored(oauth, store):
    browser = _Browser("/favicon.ico", f"/callback?state={STATE}&code=c")
    flow = _flow(oauth, store, browser)

    flow.authenticate()
    browser.join()

    assert browser.responses[0].status_code == 404
    oauth.exchange_code.assert_called_once_with("c")


def test_state_generated_per_invocation(oauth, store):
    states = []
    for _ in range(2):
        browser = _Browser()
        flow = _flow(oauth, store, browser, timeout=0.1, state=None)
        with pytest.raises(AuthorizationTimeoutError):
            flow.authenticate()
        states.append(oauth.authorization_url.call_args[0][0])
    assert states[0] != states[1]
    assert all(len(s) >= 20 for s in states)


# ── failures ─────────────────────────────────────────────────────────

def test_state_mismatch_fails_and_closes_listener(oauth, store):
    browser = _Browser("/callback?state=forged&code=grant-123")
    flow = _flow(oauth, store, browser)

    with pytest.raises(StateMismatchError):
        flow.authenticate()
    browser.join()

    assert browser.responses[0].status_code == 400
    oauth.exchange_code.assert_not_called()
    _assert_listener_closed(browser, flow)


def test_missing_code(oauth, store):
    browser = _Browser(f"/callback?state={STATE}")
    flow = _flow(oauth, store, browser)

    with pytest.raises(MissingCodeError):
        flow.authenticate()
    browser.join()

    assert browser.responses[0].status_code == 400
    _assert_listener_closed(browser, flow)


def test_provider_denial_reported_as_missing_code(oauth, store):
    browser = _Browser(f"/callback?state={STATE}&error=access_denied")
    flow = _flow(oauth, store, browser)

    with pytest.raises(MissingCodeError, match="access_denied"):
        flow.authenticate()
    browser.join()


def test_timeout_releases_listener(oauth, store):
    browser = _Browser()
    flow = _flow(oauth, store, browser, timeout=0.2)

    with pytest.raises(AuthorizationTimeoutError):
        flow.authenticate()

    oauth.exchange_code.assert_not_called()
    _assert_listener_closed(browser, flow)


def test_exchange_failure_propagates_and_saves_nothing(oauth, store):
    oauth.exchange_code.side_effect = TokenExchangeError("Token exchange failed (HTTP 400): bad code")
    browser = _Browser(f"/callback?state={STATE}&code=c")
    flow = _flow(oauth, store, browser)

    with pytest.raises(TokenExchangeError, match="bad code"):
        flow.authenticate()
    browser.join()

    assert not store.path.exists()
    _assert_listener_closed(browser, flow)


@pytest.mark.skipif(os.name == "nt", reason="Windows allows address reuse")
def test_port_in_use_is_surfaced(oauth, store):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        browser = _Browser()
        flow = _flow(oauth, store, browser, port=blocker.getsockname()[1])
        with pytest.raises(CallbackListenerError, match="Could not listen"):
            flow.authenticate()
        assert browser.url is None
    finally:
        blocker.close()


# ── presentation / TLS ───────────────────────────────────────────────

def test_default_presenter_opens_browser(oauth, store):
    flow = AuthorizationFlow(oauth, store, port=0, ssl_context=None, timeout=0.1, open_browser=True)
    with patch("ezspotify.authorization.webbrowser.open") as mock_open:
        with pytest.raises(AuthorizationTimeoutError):
            flow.authenticate()
    mock_open.assert_called_once()
    assert mock_open.call_args[0][0].startswith("https://accounts.example/authorize")


def test_default_presenter_without_browser(oauth, store):
    flow = AuthorizationFlow(oauth, store, port=0, ssl_context=None, timeout=0.1, open_browser=False)
    with patch("ezspotify.authorization.webbrowser.open") as mock_open:
        with pytest.raises(AuthorizationTimeoutError):
            flow.authenticate()
    mock_open.assert_not_called()


def test_missing_tls_material(tmp_path):
    with pytest.raises(CallbackListenerError, match="TLS certificate"):
        build_ssl_context(str(tmp_path / "cert.pem"), str(tmp_path / "key.pem"))
