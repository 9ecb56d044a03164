"""Authorization code flow with a loopback HTTPS callback listener.

The listener lives only for the duration of one ``authenticate()`` call and
serves a single route, ``/callback``, which receives the provider redirect.
"""

from __future__ import annotations

import logging
import queue
import secrets
import ssl
import threading
import webbrowser
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable
from urllib.parse import parse_qs, urlparse

from rich.console import Console

from ezspotify.auth import SpotifyOAuth
from ezspotify.models.auth import Credential
from ezspotify.token_store import CredentialStore
from ezspotify.utils.errors import (
    AuthorizationTimeoutError,
    CallbackListenerError,
    MissingCodeError,
    StateMismatchError,
)

logger = logging.getLogger(__name__)
console = Console(stderr=True)

CALLBACK_PATH = "/callback"
LOOPBACK_HOST = "127.0.0.1"
AUTH_TIMEOUT = 5 * 60.0
SHUTDOWN_TIMEOUT = 5.0

SUCCESS_BODY = "Authorization successful! You can close this window."


@dataclass
class PendingAuthorization:
    """Per-flow CSRF state and the channel the callback reports into."""
    state: str
    results: queue.Queue = field(default_factory=queue.Queue)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self._respond(404, "Not found.")
            return

        params = parse_qs(parsed.query)
        pending = self.server.pending

        state = params.get("state", [""])[0]
        if not secrets.compare_digest(state.encode(), pending.state.encode()):
            pending.results.put(StateMismatchError("State mismatch in authorization callback"))
            self._respond(400, "Authorization failed: state mismatch. You can close this window.")
            return

        code = params.get("code", [""])[0]
        if not code:
            reason = params.get("error", ["no code in response"])[0]
            pending.results.put(MissingCodeError(f"Authorization callback carried no code: {reason}"))
            self._respond(400, "Authorization failed: no code received. You can close this window.")
            return

        self._respond(200, SUCCESS_BODY)
        pending.results.put(code)

    def _respond(self, status: int, body: str) -> None:
        payload = body.encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("callback %s - " + format, self.address_string(), *args)


class _CallbackServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], pending: PendingAuthorization) -> None:
        super().__init__(address, _CallbackHandler)
        self.pending = pending


def build_ssl_context(cert_file: str, key_file: str) -> ssl.SSLContext:
    """Server-side TLS context for the callback listener."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        context.load_cert_chain(certfile=cert_file, keyfile=key_file)
    except (OSError, ssl.SSLError) as e:
        raise CallbackListenerError(
            f"Could not load TLS certificate '{cert_file}' / key '{key_file}': {e}"
        ) from e
    return context


class AuthorizationFlow:
    """Runs one authorization code grant end to end.

    Starts the callback listener, shows the consent URL, waits for the
    redirect (or an error, or the timeout, whichever comes first), exchanges
    the code and persists the resulting credential. The listener is shut down
    on every exit path.
    """

    def __init__(
        self,
        oauth: SpotifyOAuth,
        store: CredentialStore,
        *,
        port: int,
        ssl_context: ssl.SSLContext | None,
        host: str = LOOPBACK_HOST,
        timeout: float = AUTH_TIMEOUT,
        open_browser: bool = True,
        state: str | None = None,
        presenter: Callable[[str], None] | None = None,
    ) -> None:
        self._oauth = oauth
        self._store = store
        self._host = host
        self._port = port
        self._ssl_context = ssl_context
        self._timeout = timeout
        self._open_browser = open_browser
        self._state = state
        self._presenter = presenter or self._present
        self._server: _CallbackServer | None = None

    @property
    def listening_port(self) -> int | None:
        """Port the listener is bound to while the flow is waiting."""
        if self._server is None:
            return None
        return self._server.server_address[1]

    def authenticate(self) -> Credential:
        """Obtain and persist a new credential.

        Raises:
            StateMismatchError, MissingCodeError: The callback was rejected.
            AuthorizationTimeoutError: No callback within the timeout.
            TokenExchangeError: The code could not be exchanged.
            CallbackListenerError: The listener could not be started.
        """
        pending = PendingAuthorization(state=self._state or secrets.token_urlsafe(24))
        auth_url = self._oauth.authorization_url(pending.state)

        thread = self._start_listener(pending)
        try:
            self._presenter(auth_url)
            code = self._wait_for_code(pending)
        finally:
            self._shutdown(thread)

        credential = self._oauth.exchange_code(code)
        self._store.save(credential)
        logger.info("Authorization complete, credential saved to %s", self._store.path)
        return credential

    def _start_listener(self, pending: PendingAuthorization) -> threading.Thread:
        try:
            server = _CallbackServer((self._host, self._port), pending)
        except OSError as e:
            raise CallbackListenerError(
                f"Could not listen on {self._host}:{self._port}: {e}"
            ) from e

        if self._ssl_context is not None:
            server.socket = self._ssl_context.wrap_socket(server.socket, server_side=True)

        self._server = server
        thread = threading.Thread(
            target=server.serve_forever,
            name="ezspotify-callback",
            daemon=True,
        )
        thread.start()
        logger.info("Callback listener started on %s:%s", self._host, self.listening_port)
        return thread

    def _wait_for_code(self, pending: PendingAuthorization) -> str:
        try:
            outcome = pending.results.get(timeout=self._timeout)
        except queue.Empty:
            raise AuthorizationTimeoutError(
                f"Authorization timed out after {int(self._timeout)} seconds"
            ) from None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def _shutdown(self, thread: threading.Thread) -> None:
        server = self._server
        if server is None:
            return
        # shutdown() waits for serve_forever to notice, so bound it
        stopper = threading.Thread(target=server.shutdown, daemon=True)
        stopper.start()
        stopper.join(SHUTDOWN_TIMEOUT)
        if stopper.is_alive():
            logger.warning("Callback listener did not stop within %.0fs", SHUTDOWN_TIMEOUT)
        server.server_close()
        thread.join(SHUTDOWN_TIMEOUT)
        self._server = None
        logger.info("Callback listener stopped")

    def _present(self, auth_url: str) -> None:
        if self._open_browser:
            console.print("Opening browser for authorization...")
            webbrowser.open(auth_url)
        console.print("If the browser doesn't open, visit this URL:")
        console.print(auth_url, markup=False, soft_wrap=True)
