"""
One-second tick source for the study session.
The only place the engine depends on wall-clock time.
"""

from typing import Optional
from PySide6.QtCore import QObject, QTimer, Qt, Signal


class ClockSource(QObject):
    """
    Emits ``ticked`` once per second while started.

    The timer keeps firing while the session is paused; the engine
    decides whether a tick counts.
    """

    ticked = Signal()

    TICK_INTERVAL_MS = 1000

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)

        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(self.TICK_INTERVAL_MS)
        self._qt_timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._qt_timer.timeout.connect(self.ticked)

    @property
    def is_active(self) -> bool:
        return self._qt_timer.isActive()

    def start(self):
        if not self._qt_timer.isActive():
            self._qt_timer.start()

    def stop(self):
        self._qt_timer.stop()
