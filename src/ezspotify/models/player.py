"""Playback state, remote actions and shortcut bindings."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field


class Action(str, Enum):
    """Closed set of remote operations a shortcut can trigger."""
    TOGGLE_PLAYBACK = "toggle_playback"
    NEXT = "next"
    PREVIOUS = "previous"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    MUTE = "mute"

    @property
    def display_name(self) -> str:
        return ACTION_NAMES[self]


ACTION_NAMES: dict[Action, str] = {
    Action.TOGGLE_PLAYBACK: "Play/Pause",
    Action.NEXT: "Next Track",
    Action.PREVIOUS: "Previous Track",
    Action.VOLUME_UP: "Volume Up",
    Action.VOLUME_DOWN: "Volume Down",
    Action.MUTE: "Mute",
}

# Windows virtual-key codes (VK_MEDIA_PLAY_PAUSE, VK_MEDIA_NEXT_TRACK, VK_MEDIA_PREV_TRACK)
MEDIA_KEY_CODES: dict[int, Action] = {
    179: Action.TOGGLE_PLAYBACK,
    176: Action.NEXT,
    177: Action.PREVIOUS,
}

# Linux evdev codes (KEY_PLAYPAUSE, KEY_NEXTSONG, KEY_PREVIOUSSONG)
EVDEV_MEDIA_KEY_CODES: dict[int, Action] = {
    164: Action.TOGGLE_PLAYBACK,
    163: Action.NEXT,
    165: Action.PREVIOUS,
}

# Names the hook library assigns to the media keys
MEDIA_KEY_NAMES: dict[str, Action] = {
    "play/pause media": Action.TOGGLE_PLAYBACK,
    "next track": Action.NEXT,
    "previous track": Action.PREVIOUS,
}

QUIT_KEY = "q"
ESCAPE_KEY = "\x1b"
INTERRUPT_KEY = "\x03"
QUIT_KEYS = frozenset({QUIT_KEY, ESCAPE_KEY, INTERRUPT_KEY})


class _Device(BaseModel):
    volume_percent: int | None = None


class PlaybackState(BaseModel):
    """Subset of ``GET /me/player`` the dispatcher needs."""
    is_playing: bool = False
    device: _Device = Field(default_factory=_Device)

    @property
    def volume_percent(self) -> int:
        return self.device.volume_percent or 0


class ShortcutBinding(BaseModel):
    """A keyboard character bound to a remote action."""
    model_config = ConfigDict(frozen=True)

    trigger: str = Field(min_length=1, max_length=1)
    action: Action

    @property
    def display_name(self) -> str:
        return self.action.display_name

    @property
    def label(self) -> str:
        return "Space" if self.trigger == " " else self.trigger


class ShortcutTable:
    """Immutable trigger -> binding mapping, built once at startup."""

    def __init__(self, bindings: list[ShortcutBinding]) -> None:
        table: dict[str, ShortcutBinding] = {}
        for binding in bindings:
            if binding.trigger in table:
                existing = table[binding.trigger]
                raise ValueError(
                    f"Key '{binding.label}' is bound to both "
                    f"{existing.display_name} and {binding.display_name}"
                )
            table[binding.trigger] = binding
        self._table: Mapping[str, ShortcutBinding] = MappingProxyType(table)

    def lookup(self, trigger: str) -> ShortcutBinding | None:
        return self._table.get(trigger)

    def __iter__(self) -> Iterator[ShortcutBinding]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)

    def legend(self) -> list[dict[str, str]]:
        """Rows for the shortcut legend, quit key last."""
        rows = [{"key": f"[{b.label}]", "action": b.display_name} for b in self]
        rows.append({"key": f"[{QUIT_KEY}]", "action": "Quit"})
        return rows
