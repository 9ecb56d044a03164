"""Tests for services/dispatcher.py — action routing, toggle, volume clamp, mute."""
from __future__ import annotations

import pytest

from ezspotify.models.player import Action, PlaybackState
from ezspotify.services.dispatcher import VOLUME_STEP, ActionDispatcher, clamp_volume
from ezspotify.utils.errors import NoActiveDeviceError


def _state(is_playing=False, volume=50):
    return PlaybackState.model_validate({"is_playing": is_playing, "device": {"volume_percent": volume}})


@pytest.fixture
def dispatcher(mock_player):
    return ActionDispatcher(mock_player)


# ── toggle ───────────────────────────────────────────────────────────

def test_toggle_pauses_when_playing(dispatcher, mock_player):
    mock_player.get_playback_state.return_value = _state(is_playing=True)
    dispatcher.execute(Action.TOGGLE_PLAYBACK)
    mock_player.transport.assert_called_once_with("pause")


def test_toggle_plays_when_paused(dispatcher, mock_player):
    mock_player.get_playback_state.return_value = _state(is_playing=False)
    dispatcher.execute(Action.TOGGLE_PLAYBACK)
    mock_player.transport.assert_called_once_with("play")


def test_toggle_no_active_device(dispatcher, mock_player):
    mock_player.get_playback_state.side_effect = NoActiveDeviceError("No active device")
    with pytest.raises(NoActiveDeviceError):
        dispatcher.execute(Action.TOGGLE_PLAYBACK)
    mock_player.transport.assert_not_called()


# ── track skip ───────────────────────────────────────────────────────

def test_next(dispatcher, mock_player):
    dispatcher.execute(Action.NEXT)
    mock_player.transport.assert_called_once_with("next")
    mock_player.get_playback_state.assert_not_called()


def test_previous(dispatcher, mock_player):
    dispatcher.execute(Action.PREVIOUS)
    mock_player.transport.assert_called_once_with("previous")


# ── volume ───────────────────────────────────────────────────────────

@pytest.mark.parametrize("start", [0, 5, 50, 90, 95, 100])
def test_volume_up_clamped(dispatcher, mock_player, start):
    mock_player.get_playback_state.return_value = _state(volume=start)
    dispatcher.execute(Action.VOLUME_UP)
    mock_player.set_volume.assert_called_once_with(min(100, start + VOLUME_STEP))


@pytest.mark.parametrize("start", [0, 5, 50, 100])
def test_volume_down_clamped(dispatcher, mock_player, start):
    mock_player.get_playback_state.return_value = _state(volume=start)
    dispatcher.execute(Action.VOLUME_DOWN)
    mock_player.set_volume.assert_called_once_with(max(0, start - VOLUME_STEP))


def test_repeated_volume_up_stays_in_range(dispatcher, mock_player):
    volume = 73
    for _ in range(15):
        mock_player.get_playback_state.return_value = _state(volume=volume)
        volume = dispatcher.adjust_volume(VOLUME_STEP)
        assert 0 <= volume <= 100
    assert volume == 100


def test_repeated_volume_down_stays_in_range(dispatcher, mock_player):
    volume = 27
    for _ in range(15):
        mock_player.get_playback_state.return_value = _state(volume=volume)
        volume = dispatcher.adjust_volume(-VOLUME_STEP)
        assert 0 <= volume <= 100
    assert volume == 0


def test_clamp_volume():
    assert clamp_volume(-20) == 0
    assert clamp_volume(42) == 42
    assert clamp_volume(130) == 100


# ── mute ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("prior", [0, 35, 100])
def test_mute_sets_zero_without_reading_state(dispatcher, mock_player, prior):
    mock_player.get_playback_state.return_value = _state(volume=prior)
    dispatcher.execute(Action.MUTE)
    mock_player.set_volume.assert_called_once_with(0)
    mock_player.get_playback_state.assert_not_called()


def test_unknown_action_rejected(dispatcher):
    with pytest.raises(ValueError):
        dispatcher.execute("rewind")
