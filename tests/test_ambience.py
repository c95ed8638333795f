"""Tests for the ambience player."""

from studyflow.ambience import AmbiencePlayer
from studyflow.models import AmbienceTrack

from conftest import FakeHandleFactory


def make_player(**kwargs):
    factory = FakeHandleFactory(**kwargs)
    return AmbiencePlayer(volume=0.5, handle_factory=factory), factory


def test_switch_releases_before_acquiring():
    player, factory = make_player()
    player.select(AmbienceTrack.RAIN)
    player.select(AmbienceTrack.CAFE)

    assert len(factory.live) == 1
    assert factory.live[0].track == AmbienceTrack.CAFE
    assert factory.log == [
        ("acquire", AmbienceTrack.RAIN),
        ("release", AmbienceTrack.RAIN),
        ("acquire", AmbienceTrack.CAFE),
    ]
    assert player.track == AmbienceTrack.CAFE


def test_new_track_plays_at_current_volume():
    player, factory = make_player()
    player.set_volume(0.8)
    player.select(AmbienceTrack.FIRE)
    handle = factory.live[0]
    assert handle.playing
    assert handle.volume == 0.8


def test_volume_is_clamped_and_applied_live():
    player, factory = make_player()
    player.select(AmbienceTrack.RAIN)
    player.set_volume(1.7)
    assert player.volume == 1.0
    assert factory.live[0].volume == 1.0
    player.set_volume(-3)
    assert player.volume == 0.0


def test_silent_and_teardown_release_handle():
    player, factory = make_player()
    player.select(AmbienceTrack.RAIN)
    player.select(AmbienceTrack.SILENT)
    assert factory.live == []
    assert not player.is_playing

    player.select(AmbienceTrack.CAFE)
    player.teardown()
    assert factory.live == []
    assert player.track == AmbienceTrack.SILENT


def test_unavailable_track_falls_back_to_silent():
    player, factory = make_player(unavailable={AmbienceTrack.FIRE})
    failures = []
    player.playback_unavailable.connect(lambda track, message: failures.append((track, message)))

    player.select(AmbienceTrack.RAIN)
    player.select(AmbienceTrack.FIRE)

    assert player.track == AmbienceTrack.SILENT
    assert factory.live == []
    assert failures == [(AmbienceTrack.FIRE, "blocked by platform policy")]


def test_async_player_error_releases_handle():
    player, factory = make_player()
    failures = []
    player.playback_unavailable.connect(lambda track, message: failures.append(track))

    player.select(AmbienceTrack.CAFE)
    factory.live[0].on_error("network unreachable")

    assert factory.live == []
    assert player.track == AmbienceTrack.SILENT
    assert failures == [AmbienceTrack.CAFE]


def test_error_from_released_handle_is_ignored():
    player, factory = make_player()
    player.select(AmbienceTrack.RAIN)
    stale = factory.handles[0]
    player.select(AmbienceTrack.CAFE)

    stale.on_error("late failure")
    assert player.track == AmbienceTrack.CAFE
    assert len(factory.live) == 1
