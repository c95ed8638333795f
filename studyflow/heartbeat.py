"""
Session heartbeat.
Publishes a condensed projection of the running session so that any
screen can show a floating summary without reaching into the engine.
"""

from typing import Optional
from PySide6.QtCore import QObject, Signal, Slot

from .models import EngineMode, HeartbeatProjection, TimerSnapshot
from .timer_engine import TimerEngine


class SessionHeartbeat(QObject):
    """
    Turns engine snapshots into HeartbeatProjection values.

    ``updated`` carries a projection, or None when no session is
    running. Listeners decide for themselves whether to render it.
    """

    updated = Signal(object)

    PAUSED_SUFFIX = " (Paused)"

    def __init__(self, engine: TimerEngine, parent: Optional[QObject] = None):
        super().__init__(parent)

        self._engine = engine
        self._topic = ""
        self._latest: Optional[HeartbeatProjection] = None

        engine.changed.connect(self._on_engine_changed)
        engine.stopped.connect(self._on_engine_stopped)

    @property
    def topic(self) -> str:
        return self._topic

    @topic.setter
    def topic(self, value: str):
        self._topic = value

    @property
    def latest(self) -> Optional[HeartbeatProjection]:
        return self._latest

    def subscribe(self, listener):
        """Register an object exposing ``on_heartbeat(projection)``."""
        self.updated.connect(listener.on_heartbeat)
        listener.on_heartbeat(self._latest)

    def unsubscribe(self, listener):
        self.updated.disconnect(listener.on_heartbeat)

    def clear(self):
        """Tell listeners that no session is running."""
        self._publish(None)

    def project(self, snapshot: TimerSnapshot) -> Optional[HeartbeatProjection]:
        if snapshot.mode not in (EngineMode.ACTIVE, EngineMode.QUIZ):
            return None

        in_quiz = snapshot.mode == EngineMode.QUIZ
        paused = not snapshot.running
        return HeartbeatProjection(
            is_active=True,
            topic=self._topic + (self.PAUSED_SUFFIX if paused else ""),
            display_seconds=(
                snapshot.cumulative_focus_seconds if in_quiz
                else snapshot.current_phase_seconds
            ),
            is_break=snapshot.is_break,
            is_paused=paused,
        )

    @Slot(object)
    def _on_engine_changed(self, snapshot: TimerSnapshot):
        self._publish(self.project(snapshot))

    @Slot(object)
    def _on_engine_stopped(self, _totals):
        self._publish(None)

    def _publish(self, projection: Optional[HeartbeatProjection]):
        self._latest = projection
        self.updated.emit(projection)
