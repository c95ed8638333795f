"""
Ambience player for the StudyFlow study session.
Plays at most one looping background track at a time.
Ambience is cosmetic: failures are reported, never raised.
"""

import logging
from typing import Callable, Optional
from PySide6.QtCore import QObject, QUrl, Signal

from .errors import PlaybackUnavailable
from .models import AMBIENCE_CATALOG, AmbienceTrack

logger = logging.getLogger(__name__)


def clamp_volume(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class QtPlaybackHandle:
    """
    One looping QMediaPlayer with its audio output.
    Owns the OS audio resources until release() is called.
    """

    def __init__(self, url: str, volume: float, on_error: Callable[[str], None]):
        # Imported lazily so the engine works without a multimedia backend
        from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer

        self._audio = QAudioOutput()
        self._audio.setVolume(volume)

        self._player = QMediaPlayer()
        self._player.setAudioOutput(self._audio)
        self._player.setLoops(QMediaPlayer.Loops.Infinite)
        self._player.errorOccurred.connect(
            lambda error, message: on_error(message or str(error))
        )
        self._player.setSource(QUrl(url))

    def play(self):
        self._player.play()

    def set_volume(self, volume: float):
        self._audio.setVolume(volume)

    def release(self):
        self._player.stop()
        self._player.setSource(QUrl())
        self._player.deleteLater()
        self._audio.deleteLater()


def create_qt_handle(track: AmbienceTrack, volume: float, on_error: Callable[[str], None]):
    """Default handle factory: stream the catalog URL through Qt Multimedia."""
    url = AMBIENCE_CATALOG.get(track)
    if url is None:
        raise PlaybackUnavailable(f"No recording for {track.label}")
    return QtPlaybackHandle(url, volume, on_error)


class AmbiencePlayer(QObject):
    """
    Scoped owner of a single playback handle.

    The current handle is released before a new one is acquired, on
    every switch and on teardown. If a track cannot play, the player
    falls back to SILENT and emits ``playback_unavailable``.

    Signals:
        track_changed: Emitted with the AmbienceTrack now selected
        playback_unavailable: Emitted with (track, message) on failure
    """

    track_changed = Signal(object)
    playback_unavailable = Signal(object, str)

    def __init__(
        self,
        volume: float = 0.5,
        handle_factory: Optional[Callable] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self._handle_factory = handle_factory or create_qt_handle
        self._handle = None
        self._track = AmbienceTrack.SILENT
        self._volume = clamp_volume(volume)
        # Bumped on every acquisition so stale error callbacks are ignored
        self._generation = 0
        self._failure: Optional[str] = None

    @property
    def track(self) -> AmbienceTrack:
        return self._track

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def is_playing(self) -> bool:
        return self._handle is not None

    def select(self, track: AmbienceTrack):
        """Switch to ``track``; SILENT just releases the current one."""
        self._release()

        if track == AmbienceTrack.SILENT:
            self._set_track(AmbienceTrack.SILENT)
            return

        self._generation += 1
        generation = self._generation
        self._failure = None

        try:
            handle = self._handle_factory(
                track,
                self._volume,
                lambda message: self._on_playback_error(generation, track, message)
            )
        except Exception as e:
            self._fall_back(track, str(e))
            return

        self._handle = handle
        try:
            handle.play()
        except Exception as e:
            self._failure = str(e)

        if self._handle is not handle:
            # Error callback already fell back during play()
            return
        if self._failure is not None:
            self._fall_back(track, self._failure)
            return

        self._set_track(track)

    def set_volume(self, volume: float):
        """Clamp to [0, 1] and apply to the live handle, if any."""
        self._volume = clamp_volume(volume)
        if self._handle is not None:
            try:
                self._handle.set_volume(self._volume)
            except Exception as e:
                logger.warning("Could not change ambience volume: %s", e)

    def teardown(self):
        """Stop playback. Called whenever the session leaves ACTIVE."""
        self.select(AmbienceTrack.SILENT)

    def _on_playback_error(self, generation: int, track: AmbienceTrack, message: str):
        if generation != self._generation:
            return
        if self._handle is None:
            # Raised while the handle was still being set up
            self._failure = message
            return
        self._fall_back(track, message)

    def _fall_back(self, track: AmbienceTrack, message: str):
        logger.warning("Ambience %s unavailable: %s", track.label, message)
        self._release()
        self._set_track(AmbienceTrack.SILENT)
        self.playback_unavailable.emit(track, message)

    def _release(self):
        handle, self._handle = self._handle, None
        if handle is None:
            return
        self._generation += 1
        try:
            handle.release()
        except Exception as e:
            logger.warning("Could not release ambience handle: %s", e)

    def _set_track(self, track: AmbienceTrack):
        changed = track != self._track
        self._track = track
        if changed:
            self.track_changed.emit(track)
