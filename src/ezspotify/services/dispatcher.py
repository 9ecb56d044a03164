"""Turns a remote Action into player API calls."""

from __future__ import annotations

import logging
from typing import Protocol

from ezspotify.models.player import Action, PlaybackState

logger = logging.getLogger(__name__)

VOLUME_STEP = 10
MIN_VOLUME = 0
MAX_VOLUME = 100


class PlayerAPI(Protocol):
    def get_playback_state(self) -> PlaybackState: ...
    def transport(self, action: str) -> None: ...
    def set_volume(self, percent: int) -> None: ...


def clamp_volume(volume: int) -> int:
    return max(MIN_VOLUME, min(MAX_VOLUME, volume))


class ActionDispatcher:
    """Executes actions against the player API.

    Toggle and volume steps read the current state first and then write;
    the two calls are not atomic and the last write wins. Mute always sets
    the volume to 0 and remembers nothing about the previous level.
    """

    def __init__(self, client: PlayerAPI) -> None:
        self._client = client

    def execute(self, action: Action) -> None:
        """Run one action.

        Raises:
            NoActiveDeviceError: No device is available to control.
            PlaybackTransportError: A player call failed.
            PlaybackDecodeError: The playback state could not be read.
            TokenRefreshError: The credential could not be refreshed.
        """
        if action is Action.TOGGLE_PLAYBACK:
            self.toggle_playback()
        elif action is Action.NEXT:
            self._client.transport("next")
        elif action is Action.PREVIOUS:
            self._client.transport("previous")
        elif action is Action.VOLUME_UP:
            self.adjust_volume(VOLUME_STEP)
        elif action is Action.VOLUME_DOWN:
            self.adjust_volume(-VOLUME_STEP)
        elif action is Action.MUTE:
            self._client.set_volume(MIN_VOLUME)
        else:
            raise ValueError(f"Unknown action: {action!r}")

    def toggle_playback(self) -> bool:
        """Pause if playing, otherwise resume. Returns the new is-playing flag."""
        state = self._client.get_playback_state()
        if state.is_playing:
            self._client.transport("pause")
        else:
            self._client.transport("play")
        return not state.is_playing

    def adjust_volume(self, delta: int) -> int:
        """Step the volume by *delta*, clamped to 0-100. Returns the volume set."""
        state = self._client.get_playback_state()
        volume = clamp_volume(state.volume_percent + delta)
        logger.info("Volume %d -> %d", state.volume_percent, volume)
        self._client.set_volume(volume)
        return volume
