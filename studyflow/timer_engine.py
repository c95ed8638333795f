"""
Timer engine for the StudyFlow study session.
Implements the focus/break state machine with pause and overtime.
Counts discrete ticks rather than timestamps so that pause time never
leaks into the totals.
"""

import logging
from dataclasses import replace
from typing import Optional
from PySide6.QtCore import QObject, Signal

from .errors import InvalidConfiguration
from .models import EngineMode, Phase, TimerSnapshot, TimerState, TimerTotals

logger = logging.getLogger(__name__)


class TimerEngine(QObject):
    """
    Focus/break timer driven by an external one-second tick.

    Modes:
        IDLE: Never started
        ACTIVE: Focus or break being timed (running or paused)
        QUIZ: Phase frozen, every counted tick is focus time
        STOPPED: Inert until start() is called again

    Phase switches are always manual. The countdown is a guideline:
    a phase can run past its target (overtime) or be cut short.

    Signals:
        changed: Emitted with a TimerSnapshot after every state change
        phase_changed: Emitted on toggle_phase (old_phase, new_phase)
        stopped: Emitted with the final TimerTotals
    """

    changed = Signal(object)
    phase_changed = Signal(object, object)
    stopped = Signal(object)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)

        self._state = TimerState()
        self._mode = EngineMode.IDLE

    @property
    def state(self) -> TimerState:
        """Copy of the current state."""
        return replace(self._state)

    @property
    def mode(self) -> EngineMode:
        return self._mode

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def is_live(self) -> bool:
        """True while ticks can still count (ACTIVE or QUIZ)."""
        return self._mode in (EngineMode.ACTIVE, EngineMode.QUIZ)

    def start(self, target_focus_seconds: int, target_break_seconds: int):
        """
        Begin a new session in FOCUS phase with all counters at zero.

        Raises:
            InvalidConfiguration: If either target is not positive.
        """
        for name, value in (
            ("focus", target_focus_seconds),
            ("break", target_break_seconds),
        ):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfiguration(
                    f"Target {name} duration must be a positive number of seconds, got {value!r}"
                )

        self._state = TimerState(
            phase=Phase.FOCUS,
            running=True,
            target_focus_seconds=target_focus_seconds,
            target_break_seconds=target_break_seconds,
        )
        self._mode = EngineMode.ACTIVE
        logger.debug(
            "Timer started: focus=%ss break=%ss",
            target_focus_seconds, target_break_seconds
        )
        self._emit_changed()

    def tick(self):
        """Count one second. Ignored while paused or inert."""
        if not self.is_live or not self._state.running:
            return

        if self._mode == EngineMode.QUIZ:
            self._state.cumulative_focus_seconds += 1
        else:
            self._state.current_phase_seconds += 1
            if self._state.phase == Phase.BREAK:
                self._state.cumulative_break_seconds += 1
            else:
                self._state.cumulative_focus_seconds += 1

        self._emit_changed()

    def toggle_phase(self):
        """Switch between FOCUS and BREAK and restart the phase counter."""
        if self._mode != EngineMode.ACTIVE:
            return

        old_phase = self._state.phase
        new_phase = Phase.BREAK if old_phase == Phase.FOCUS else Phase.FOCUS
        self._state.phase = new_phase
        self._state.current_phase_seconds = 0

        self.phase_changed.emit(old_phase, new_phase)
        self._emit_changed()

    def toggle_pause(self):
        """Pause or resume. Counters are untouched."""
        if not self.is_live:
            return

        self._state.running = not self._state.running
        self._emit_changed()

    def remaining(self) -> int:
        """Seconds left in the current phase; negative in overtime."""
        return self._state.target_seconds - self._state.current_phase_seconds

    def is_overtime(self) -> bool:
        return self.remaining() < 0

    def progress_fraction(self) -> float:
        target = self._state.target_seconds
        if target <= 0:
            return 0.0
        return min(1.0, self._state.current_phase_seconds / target)

    def enter_quiz_mode(self):
        """Freeze the phase; from now on every counted tick is focus time."""
        if not self.is_live:
            return

        self._mode = EngineMode.QUIZ
        self._state.running = True
        logger.debug(
            "Quiz mode entered at focus=%ss break=%ss",
            self._state.cumulative_focus_seconds,
            self._state.cumulative_break_seconds
        )
        self._emit_changed()

    def stop(self) -> TimerTotals:
        """Stop counting and return the final cumulative values."""
        self._state.running = False
        totals = TimerTotals(
            focus_seconds=self._state.cumulative_focus_seconds,
            break_seconds=self._state.cumulative_break_seconds,
        )
        if self._mode != EngineMode.STOPPED and self._mode != EngineMode.IDLE:
            self._mode = EngineMode.STOPPED
            self.stopped.emit(totals)
        return totals

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(
            mode=self._mode,
            phase=self._state.phase,
            running=self._state.running,
            current_phase_seconds=self._state.current_phase_seconds,
            cumulative_focus_seconds=self._state.cumulative_focus_seconds,
            cumulative_break_seconds=self._state.cumulative_break_seconds,
            target_seconds=self._state.target_seconds,
            remaining=self.remaining(),
            progress=self.progress_fraction(),
        )

    def _emit_changed(self):
        self.changed.emit(self.snapshot())
