"""Tests for the top level study session controller."""

import pytest

from studyflow.ambience import AmbiencePlayer
from studyflow.content import OfflineMaterialGenerator, score_quiz
from studyflow.errors import GenerationFailure, InvalidConfiguration
from studyflow.models import (
    AmbienceTrack, AppSettings, Attachment, EngineMode, SessionSetup, SessionStatus,
    SessionStep
)
from studyflow.recorder import SessionRecorder
from studyflow.session import StudySessionController

from conftest import FakeGateway, FakeGenerator, FakeHandleFactory, InlineExecutor


@pytest.fixture
def handles():
    return FakeHandleFactory()


def make_controller(generator=None, gateway=None, handles=None, settings=None):
    gateway = gateway if gateway is not None else FakeGateway()
    controller = StudySessionController(
        generator or FakeGenerator(),
        gateway,
        settings=settings or AppSettings(autosave_interval_seconds=0),
        ambience=AmbiencePlayer(handle_factory=handles or FakeHandleFactory()),
        recorder=SessionRecorder(gateway, executor=InlineExecutor()),
    )
    return controller, gateway


def tick(controller, seconds):
    for _ in range(seconds):
        controller.clock.ticked.emit()


def test_begin_generates_content_and_starts_timer():
    generator = FakeGenerator()
    controller, gateway = make_controller(generator)
    steps = []
    controller.step_changed.connect(steps.append)

    record = controller.begin(SessionSetup(topic="Photosynthesis", focus_minutes=25, break_minutes=5))

    assert steps == [SessionStep.GENERATING, SessionStep.ACTIVE]
    assert generator.calls == [("notes", "Photosynthesis", "intermediate"), ("quiz", "Photosynthesis")]
    assert controller.engine.mode == EngineMode.ACTIVE
    assert controller.engine.state.target_focus_seconds == 1500
    assert controller.clock.is_active
    assert gateway.ids == [record.id]
    assert controller.heartbeat.latest.topic == "Photosynthesis"
    controller.shutdown()


def test_topic_defaults_to_attachment_name():
    controller, _ = make_controller()
    setup = SessionSetup(attachment=Attachment("chapter-3.notes.txt", "text/plain", b"text"))
    record = controller.begin(setup)
    assert record.topic == "chapter-3.notes"
    controller.shutdown()


@pytest.mark.parametrize("setup", [
    SessionSetup(topic="  "),
    SessionSetup(topic="Math", focus_minutes=0),
    SessionSetup(topic="Math", break_minutes=-5),
    SessionSetup(topic="Math", depth="expert"),
    SessionSetup(topic="Math", attachment=Attachment("big.txt", "text/plain", b"x" * (10 * 1024 * 1024 + 1))),
])
def test_invalid_setup_is_rejected_before_generation(setup):
    generator = FakeGenerator()
    controller, gateway = make_controller(generator)
    with pytest.raises(InvalidConfiguration):
        controller.begin(setup)
    assert generator.calls == []
    assert gateway.records == []
    assert controller.step == SessionStep.SETUP
    assert controller.engine.mode == EngineMode.IDLE


def test_generation_failure_returns_to_setup():
    generator = FakeGenerator(fail_with=TimeoutError("model timed out"))
    controller, gateway = make_controller(generator)
    messages = []
    controller.generation_failed.connect(messages.append)

    with pytest.raises(GenerationFailure):
        controller.begin(SessionSetup(topic="Optics"))

    assert controller.step == SessionStep.SETUP
    assert gateway.records == []
    assert controller.engine.mode == EngineMode.IDLE
    assert not controller.clock.is_active
    assert "model timed out" in messages[0]


def test_full_session_with_quiz(sample_quiz, handles):
    controller, gateway = make_controller(FakeGenerator(quiz=sample_quiz), handles=handles)
    results = []
    controller.result_ready.connect(results.append)
    record = controller.begin(SessionSetup(topic="Science"))

    controller.select_ambience(AmbienceTrack.RAIN)
    tick(controller, 300)
    controller.toggle_phase()
    tick(controller, 60)
    controller.finish_reading()

    assert controller.step == SessionStep.QUIZ
    assert handles.live == []
    assert gateway.records[-1].focus_minutes == 5
    assert gateway.records[-1].break_minutes == 1

    tick(controller, 45)
    assert controller.engine.state.cumulative_focus_seconds == 345
    assert controller.heartbeat.latest.display_seconds == 345

    score = controller.submit_quiz([1, 1, 1])
    assert score == 67
    assert controller.step == SessionStep.RESULT
    assert controller.heartbeat.latest is None
    assert not controller.clock.is_active

    final = gateway.records[-1]
    assert final.id == record.id
    assert final.quiz_score == 67
    assert final.focus_minutes == 6
    assert final.is_closed
    assert results[0].quiz_score == 67
    assert set(gateway.ids) == {record.id}

    controller.reset()
    assert controller.step == SessionStep.SETUP
    controller.shutdown()


def test_finish_without_quiz_completes_session():
    controller, gateway = make_controller(FakeGenerator(quiz=[]))
    controller.begin(SessionSetup(topic="Poetry"))
    tick(controller, 10)
    controller.finish_reading()

    assert controller.step == SessionStep.RESULT
    assert gateway.records[-1].quiz_score is None
    assert gateway.records[-1].focus_minutes == 1
    assert gateway.records[-1].is_closed


def test_pause_through_controller():
    controller, _ = make_controller()
    controller.begin(SessionSetup(topic="Latin", focus_minutes=1, break_minutes=1))
    tick(controller, 10)
    controller.toggle_pause()
    tick(controller, 1000)
    controller.toggle_pause()
    tick(controller, 5)
    assert controller.engine.state.cumulative_focus_seconds == 15
    controller.shutdown()


def test_periodic_autosave():
    controller, gateway = make_controller(settings=AppSettings(autosave_interval_seconds=60))
    controller.begin(SessionSetup(topic="Geography"))
    tick(controller, 150)
    assert [r.focus_minutes for r in gateway.records] == [0, 1, 2]
    controller.shutdown()


def test_persistence_failures_never_stop_the_timer(sample_quiz):
    gateway = FakeGateway(failures=3)
    controller, _ = make_controller(FakeGenerator(quiz=sample_quiz), gateway=gateway,
                                    settings=AppSettings(autosave_interval_seconds=30))
    record = controller.begin(SessionSetup(topic="Statistics"))
    tick(controller, 90)
    controller.toggle_phase()
    tick(controller, 10)

    assert controller.engine.state.total_seconds == 100
    # open and two autosaves fail; the third autosave and the phase switch land
    assert gateway.attempts == 5
    assert gateway.records[-1].id == record.id
    controller.end_session()
    assert controller.step == SessionStep.RESULT


def test_ambience_only_during_active(handles):
    controller, _ = make_controller(handles=handles)
    controller.select_ambience(AmbienceTrack.FIRE)
    assert handles.handles == []

    controller.begin(SessionSetup(topic="Jazz"))
    controller.select_ambience(AmbienceTrack.FIRE)
    controller.set_volume(0.3)
    assert handles.live[0].volume == 0.3
    assert controller.settings.ambience_volume == 0.3

    controller.end_session()
    assert handles.live == []


def test_end_session_from_quiz(sample_quiz):
    controller, gateway = make_controller(FakeGenerator(quiz=sample_quiz))
    controller.begin(SessionSetup(topic="Logic"))
    controller.finish_reading()
    controller.end_session()
    assert controller.step == SessionStep.RESULT
    assert gateway.records[-1].quiz_score is None
    with pytest.raises(InvalidConfiguration):
        controller.submit_quiz([0])


def test_cannot_begin_twice_or_reset_mid_session():
    controller, _ = make_controller()
    controller.begin(SessionSetup(topic="Go"))
    with pytest.raises(InvalidConfiguration):
        controller.begin(SessionSetup(topic="Chess"))
    with pytest.raises(InvalidConfiguration):
        controller.reset()
    controller.shutdown()
    assert controller.step == SessionStep.RESULT


def test_score_quiz(sample_quiz):
    assert score_quiz(sample_quiz, [1, 0, 1]) == 100
    assert score_quiz(sample_quiz, [1, 0]) == 67
    assert score_quiz(sample_quiz[:2], [1, 1]) == 50
    assert score_quiz([], []) == 0


def test_offline_generator_uses_attachment_text():
    generator = OfflineMaterialGenerator()
    notes = generator.generate_study_material(
        "Cells", "https://example.com/cells",
        Attachment("cells.md", "text/markdown", "Mitochondria.".encode()),
        "Focus on organelles", "beginner"
    )
    assert notes.startswith("# Cells")
    assert "Mitochondria." in notes
    assert "https://example.com/cells" in notes
    assert generator.generate_quiz("Cells", notes) == []

    with pytest.raises(ValueError):
        generator.generate_study_material(
            "Cells", attachment=Attachment("cells.pdf", "application/pdf", b"%PDF")
        )


def test_phase_switch_saves_progress():
    controller, gateway = make_controller()
    controller.begin(SessionSetup(topic="Hydrology"))
    tick(controller, 120)
    controller.toggle_phase()

    assert len(gateway.records) == 2
    assert gateway.records[-1].focus_minutes == 2
    controller.shutdown()


def test_final_save_recovers_when_starting_over(sample_quiz):
    controller, gateway = make_controller(FakeGenerator(quiz=sample_quiz))
    record = controller.begin(SessionSetup(topic="Rhetoric"))
    tick(controller, 30)
    gateway.failures = 2
    controller.end_session()

    assert gateway.records[-1].status == SessionStatus.IN_PROGRESS.value
    assert controller.recorder.is_behind

    controller.reset()
    final = gateway.records[-1]
    assert final.id == record.id
    assert final.status == SessionStatus.COMPLETED.value
    assert not controller.recorder.is_behind
    controller.shutdown()


def test_final_save_recovers_on_shutdown():
    controller, gateway = make_controller()
    controller.begin(SessionSetup(topic="Acoustics"))
    gateway.failures = 3
    controller.end_session()
    controller.reset()

    controller.shutdown()
    assert gateway.records[-1].is_closed
