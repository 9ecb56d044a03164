"""Merges keyboard and media-key input into one serialized action queue.

Both producers only enqueue. A single consumer thread owns the dispatcher,
so read-modify-write actions never interleave regardless of which input
triggered them.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Protocol

from rich.console import Console

from ezspotify.models.player import QUIT_KEYS, Action, ShortcutTable
from ezspotify.services.dispatcher import ActionDispatcher
from ezspotify.services.media_keys import MediaKeyListener
from ezspotify.utils.errors import EzSpotifyError

logger = logging.getLogger(__name__)
console = Console(stderr=True)

POLL_INTERVAL = 0.1
QUEUE_SIZE = 16
STOP_TIMEOUT = 30.0

KEYBOARD = "keyboard"
MEDIA_KEY = "media key"


class KeyReader(Protocol):
    def __enter__(self) -> KeyReader: ...
    def __exit__(self, *exc_info: object) -> None: ...
    def read_key(self, timeout: float | None = None) -> str | None: ...


@dataclass(frozen=True)
class QueuedAction:
    action: Action
    source: str


_STOP = object()


class InputMultiplexer:
    """Runs the interactive key loop and the media-key hook against one dispatcher.

    ``run()`` blocks on the calling thread until a quit key, Ctrl-C or end of
    input, then cancels the hook, lets the consumer finish what is already
    queued, and joins it.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        shortcuts: ShortcutTable,
        reader: KeyReader,
        *,
        media_keys: bool = True,
        queue_size: int = QUEUE_SIZE,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._dispatcher = dispatcher
        self._shortcuts = shortcuts
        self._reader = reader
        self._poll_interval = poll_interval
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._stopped = threading.Event()
        self._consumer: threading.Thread | None = None
        self._media_keys = (
            MediaKeyListener(lambda action: self.submit(action, MEDIA_KEY)) if media_keys else None
        )

    @property
    def stopped(self) -> threading.Event:
        return self._stopped

    @property
    def media_keys(self) -> MediaKeyListener | None:
        return self._media_keys

    # ── producers ─────────────────────────────────────────────────────

    def submit(self, action: Action, source: str = KEYBOARD) -> bool:
        """Queue an action without blocking. Returns False if it was dropped."""
        if self._stopped.is_set():
            return False
        try:
            self._queue.put_nowait(QueuedAction(action, source))
        except queue.Full:
            logger.warning("Action queue full, dropping %s from %s", action.value, source)
            console.print(f"[yellow]Busy, ignored {action.display_name}[/yellow]")
            return False
        return True

    def handle_key(self, key: str) -> bool:
        """Process one key from the interactive reader. Returns False on quit."""
        if key in QUIT_KEYS:
            return False
        binding = self._shortcuts.lookup(key)
        if binding is None:
            logger.debug("No shortcut bound to %r", key)
            return True
        self.submit(binding.action, KEYBOARD)
        return True

    def _read_keys(self) -> None:
        with self._reader:
            while not self._stopped.is_set():
                try:
                    key = self._reader.read_key(self._poll_interval)
                except (EOFError, KeyboardInterrupt):
                    break
                except OSError as e:
                    logger.warning("Error reading key: %s", e)
                    continue
                if key is None:
                    continue
                if not self.handle_key(key):
                    break

    # ── consumer ──────────────────────────────────────────────────────

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._dispatch(item)

    def _dispatch(self, item: QueuedAction) -> None:
        name = item.action.display_name
        if item.source == MEDIA_KEY:
            console.print(f"Media key: {name}")
        else:
            console.print(f"Executing: {name}")
        try:
            self._dispatcher.execute(item.action)
        except EzSpotifyError as e:
            logger.info("%s failed: %s", name, e)
            console.print(f"[red]Error executing {name}:[/red] {e}")
        except Exception as e:
            logger.exception("Unexpected error executing %s", name)
            console.print(f"[red]Error executing {name}:[/red] {e}")

    # ── lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the consumer and install the media-key hook."""
        if self._consumer is not None:
            return
        self._consumer = threading.Thread(target=self._consume, name="ezspotify-dispatch", daemon=True)
        self._consumer.start()
        if self._media_keys is not None:
            self._media_keys.start()

    def run(self) -> None:
        """Block reading keys until quit, then shut everything down."""
        self.start()
        try:
            self._read_keys()
        finally:
            self.stop()
        console.print("\nExiting...")

    def stop(self) -> None:
        """Cancel both producers and join the consumer."""
        self._stopped.set()
        if self._media_keys is not None:
            self._media_keys.stop()
        consumer, self._consumer = self._consumer, None
        if consumer is None:
            return
        self._queue.put(_STOP)
        consumer.join(STOP_TIMEOUT)
        if consumer.is_alive():
            logger.warning("Dispatch thread still busy after %.0fs, exiting anyway", STOP_TIMEOUT)
