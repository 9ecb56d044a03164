"""Global hardware media-key hook."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable

import keyboard
from rich.console import Console

from ezspotify.models.player import (
    EVDEV_MEDIA_KEY_CODES,
    MEDIA_KEY_CODES,
    MEDIA_KEY_NAMES,
    Action,
)

logger = logging.getLogger(__name__)
console = Console(stderr=True)


def default_codes(platform: str = sys.platform) -> dict[int, Action]:
    """Raw media-key codes for *platform*, keyed the way ``raw_code`` reports them."""
    if platform == "win32":
        return MEDIA_KEY_CODES
    if platform.startswith("linux"):
        return EVDEV_MEDIA_KEY_CODES
    return {}


def raw_code(event: keyboard.KeyboardEvent, platform: str = sys.platform) -> int | None:
    """Platform key code carried by a hook event, or None if it has none.

    On Windows the hook reports the hardware scan code, and only falls back
    to the negated virtual-key code when the scan code is zero. On Linux
    ``scan_code`` is the evdev code.
    """
    scan_code = event.scan_code
    if scan_code is None:
        return None
    if platform == "win32":
        return -scan_code if scan_code < 0 else None
    return scan_code


class MediaKeyListener:
    """Forwards play/pause, next and previous media keys to a callback.

    Events are matched by key name first, then by the platform's raw code.
    The hook library delivers events one at a time on its own thread, so
    ``on_action`` is never called concurrently with itself.
    """

    def __init__(
        self,
        on_action: Callable[[Action], Any],
        codes: dict[int, Action] | None = None,
        names: dict[str, Action] | None = None,
        platform: str = sys.platform,
    ) -> None:
        self._on_action = on_action
        self._platform = platform
        self._codes = default_codes(platform) if codes is None else codes
        self._names = MEDIA_KEY_NAMES if names is None else names
        self._hook: Callable | None = None

    @property
    def active(self) -> bool:
        return self._hook is not None

    def resolve(self, event: keyboard.KeyboardEvent) -> Action | None:
        """Map a key-down event to an action; anything else maps to None."""
        if event.event_type != keyboard.KEY_DOWN:
            return None
        name = getattr(event, "name", None)
        if name:
            action = self._names.get(name.lower())
            if action is not None:
                return action
        code = raw_code(event, self._platform)
        if code is None:
            return None
        return self._codes.get(code)

    def handle_event(self, event: keyboard.KeyboardEvent) -> None:
        action = self.resolve(event)
        if action is not None:
            logger.debug("Media key %s (code %s) -> %s", event.name, event.scan_code, action.value)
            self._on_action(action)

    def start(self) -> bool:
        """Install the global hook. Returns False if the platform refuses it."""
        if self._hook is not None:
            return True
        try:
            self._hook = keyboard.hook(self.handle_event)
        except (ImportError, OSError) as e:
            # keyboard raises ImportError on Linux when not running as root
            logger.warning("Media key hook unavailable: %s", e)
            console.print(f"[yellow]Media keys disabled:[/yellow] {e}")
            return False
        logger.info("Media key hook installed")
        return True

    def stop(self) -> None:
        """Remove the hook; safe to call more than once."""
        if self._hook is None:
            return
        hook, self._hook = self._hook, None
        try:
            keyboard.unhook(hook)
        except (KeyError, ValueError) as e:
            logger.debug("Media key hook already removed: %s", e)
        logger.info("Media key hook removed")
