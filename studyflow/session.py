"""
Study session controller.
Drives one session through SETUP -> GENERATING -> ACTIVE -> QUIZ ->
RESULT -> SETUP, wiring the clock, timer engine, heartbeat, ambience
player and record builder together.
"""

import logging
from typing import List, Optional, Sequence
from PySide6.QtCore import QObject, Signal, Slot

from .ambience import AmbiencePlayer
from .clock import ClockSource
from .content import ContentGenerator, score_quiz
from .errors import GenerationFailure, InvalidConfiguration
from .heartbeat import SessionHeartbeat
from .models import (
    MAX_ATTACHMENT_BYTES, STUDY_DEPTHS, AmbienceTrack, AppSettings, Phase,
    QuizQuestion, SessionRecord, SessionSetup, SessionStep
)
from .recorder import PersistenceGateway, SessionRecorder
from .timer_engine import TimerEngine

logger = logging.getLogger(__name__)


class StudySessionController(QObject):
    """
    Owns the live study session.

    Lives for the whole application, not for one screen: navigating
    away keeps the clock ticking until the session is finished or
    ended explicitly.

    Signals:
        step_changed: Emitted with the new SessionStep
        generation_failed: Emitted with a user-facing message
        result_ready: Emitted with the final SessionRecord
    """

    step_changed = Signal(object)
    generation_failed = Signal(str)
    result_ready = Signal(object)

    def __init__(
        self,
        generator: ContentGenerator,
        gateway: PersistenceGateway,
        settings: Optional[AppSettings] = None,
        clock: Optional[ClockSource] = None,
        ambience: Optional[AmbiencePlayer] = None,
        recorder: Optional[SessionRecorder] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self.settings = settings or AppSettings()
        self.generator = generator
        self.engine = TimerEngine(self)
        self.heartbeat = SessionHeartbeat(self.engine, self)
        self.clock = clock or ClockSource(self)
        self.ambience = ambience or AmbiencePlayer(self.settings.ambience_volume, parent=self)
        self.recorder = recorder or SessionRecorder(gateway, parent=self)

        self._step = SessionStep.SETUP
        self._setup: Optional[SessionSetup] = None
        self._notes = ""
        self._quiz: List[QuizQuestion] = []
        self._seconds_since_checkpoint = 0
        self._result: Optional[SessionRecord] = None

        self.clock.ticked.connect(self._on_clock_tick)
        self.engine.phase_changed.connect(self._on_phase_changed)

    @property
    def step(self) -> SessionStep:
        return self._step

    @property
    def topic(self) -> str:
        return self.heartbeat.topic

    @property
    def notes(self) -> str:
        return self._notes

    @property
    def quiz(self) -> List[QuizQuestion]:
        return list(self._quiz)

    @property
    def result(self) -> Optional[SessionRecord]:
        return self._result

    @property
    def is_in_progress(self) -> bool:
        return self._step in (SessionStep.ACTIVE, SessionStep.QUIZ)

    # ----- Setup and generation -----

    def begin(self, setup: SessionSetup) -> SessionRecord:
        """
        Generate content for ``setup`` and start timing.

        Raises:
            InvalidConfiguration: If the setup is rejected.
            GenerationFailure: If the content collaborator fails.
        """
        if self._step != SessionStep.SETUP:
            raise InvalidConfiguration("A session is already in progress")
        self.validate(setup)
        topic = setup.effective_topic

        self._set_step(SessionStep.GENERATING)
        try:
            notes = self.generator.generate_study_material(
                topic,
                setup.reference_link or None,
                setup.attachment,
                setup.instructions or None,
                setup.depth
            )
            quiz = list(self.generator.generate_quiz(topic, notes) or [])
        except Exception as e:
            logger.error("Content generation failed for %r: %s", topic, e)
            self._set_step(SessionStep.SETUP)
            message = f"Could not generate study material: {e}"
            self.generation_failed.emit(message)
            raise GenerationFailure(message) from e

        self._setup = setup
        self._notes = notes
        self._quiz = quiz
        self._result = None
        self._seconds_since_checkpoint = 0

        record = self.recorder.open(topic, setup.reference_link, notes, quiz)
        self.heartbeat.topic = topic
        self.engine.start(setup.target_focus_seconds, setup.target_break_seconds)
        self.clock.start()
        self._set_step(SessionStep.ACTIVE)
        return record

    @staticmethod
    def validate(setup: SessionSetup):
        """Reject a setup before any session state is created."""
        for name, minutes in (("Focus", setup.focus_minutes), ("Break", setup.break_minutes)):
            if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
                raise InvalidConfiguration(f"{name} duration must be at least one minute")
        if not setup.effective_topic:
            raise InvalidConfiguration("Enter a topic or attach a file")
        if setup.attachment is not None and len(setup.attachment.data) > MAX_ATTACHMENT_BYTES:
            raise InvalidConfiguration("Attachment is too large (10 MB maximum)")
        if setup.depth not in STUDY_DEPTHS:
            raise InvalidConfiguration(f"Unknown study depth {setup.depth!r}")

    # ----- Active session events -----

    def toggle_phase(self):
        if self._step == SessionStep.ACTIVE:
            self.engine.toggle_phase()

    def toggle_pause(self):
        if self.is_in_progress:
            self.engine.toggle_pause()

    def select_ambience(self, track: AmbienceTrack):
        if self._step != SessionStep.ACTIVE and track != AmbienceTrack.SILENT:
            logger.info("Ambience only plays during an active session")
            return
        self.ambience.select(track)

    def set_volume(self, volume: float):
        self.ambience.set_volume(volume)
        self.settings.ambience_volume = self.ambience.volume

    def finish_reading(self):
        """End the focus/break loop; move on to the quiz if there is one."""
        if self._step != SessionStep.ACTIVE:
            return

        self.ambience.teardown()
        self._checkpoint()

        if self._quiz:
            self.engine.enter_quiz_mode()
            self._set_step(SessionStep.QUIZ)
        else:
            self._complete(None)

    def submit_quiz(self, answers: Sequence[int]) -> int:
        """Score the answers and finish the session."""
        if self._step != SessionStep.QUIZ:
            raise InvalidConfiguration("No quiz is waiting for answers")
        score = score_quiz(self._quiz, answers)
        self._complete(score)
        return score

    def end_session(self):
        """Finish early, without a quiz score."""
        if self.is_in_progress:
            self._complete(None)

    def reset(self):
        """Return to SETUP once a session has finished."""
        if self.is_in_progress:
            raise InvalidConfiguration("End the running session first")
        # Give a final save that failed another chance
        self.recorder.retry()
        self.heartbeat.clear()
        self._set_step(SessionStep.SETUP)

    def shutdown(self):
        """End any running session and wait for its saves."""
        self.end_session()
        self.clock.stop()
        self.ambience.teardown()
        self.recorder.shutdown()

    # ----- Internals -----

    @Slot()
    def _on_clock_tick(self):
        before = self.engine.state.total_seconds
        self.engine.tick()
        if self.engine.state.total_seconds == before:
            return

        self._seconds_since_checkpoint += 1
        interval = self.settings.autosave_interval_seconds
        if interval > 0 and self._seconds_since_checkpoint >= interval:
            self._checkpoint()

    @Slot(object, object)
    def _on_phase_changed(self, _old: Phase, new: Phase):
        logger.info("Switched to %s", new.value)
        self._checkpoint()

    def _complete(self, quiz_score: Optional[int]):
        self.engine.stop()
        self.clock.stop()
        self.ambience.teardown()

        state = self.engine.state
        self.recorder.checkpoint(state)
        self._result = self.recorder.finalize(quiz_score, state)
        self.heartbeat.clear()

        self._set_step(SessionStep.RESULT)
        self.result_ready.emit(self._result)

    def _checkpoint(self):
        self._seconds_since_checkpoint = 0
        self.recorder.checkpoint(self.engine.state)

    def _set_step(self, step: SessionStep):
        if step == self._step:
            return
        logger.info("Session step %s -> %s", self._step.name, step.name)
        self._step = step
        self.step_changed.emit(step)
