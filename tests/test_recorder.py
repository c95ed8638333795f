"""Tests for the session record builder."""

import logging
import threading
import time

from studyflow.models import SessionStatus, TimerState
from studyflow.recorder import SessionRecorder, break_minutes_for, focus_minutes_for

from conftest import FakeGateway, InlineExecutor


def state(focus=0, brk=0):
    return TimerState(
        running=True,
        cumulative_focus_seconds=focus,
        cumulative_break_seconds=brk,
        target_focus_seconds=1500,
        target_break_seconds=300,
    )


def test_minute_rounding():
    assert focus_minutes_for(0) == 1
    assert focus_minutes_for(60) == 1
    assert focus_minutes_for(61) == 2
    assert break_minutes_for(0) == 0
    assert break_minutes_for(1) == 1
    assert break_minutes_for(120) == 2


def test_open_saves_zero_minute_record(recorder, gateway, sample_quiz):
    record = recorder.open("Biology", "https://example.com", "notes", sample_quiz)

    assert record.id
    assert record.focus_minutes == 0
    assert record.break_minutes == 0
    assert record.quiz_score is None
    assert record.status == SessionStatus.IN_PROGRESS.value
    assert gateway.ids == [record.id]
    assert gateway.records[0].quiz == sample_quiz


def test_checkpoints_update_same_id(recorder, gateway):
    record = recorder.open("Algebra", "", "notes", [])

    first = recorder.checkpoint(state(focus=90))
    assert first.focus_minutes == 2

    second = recorder.checkpoint(state(focus=150))
    assert second.focus_minutes == 3

    assert gateway.ids == [record.id] * 3
    assert [r.focus_minutes for r in gateway.records] == [0, 2, 3]


def test_identical_checkpoints_are_idempotent(recorder, gateway):
    recorder.open("Algebra", "", "notes", [])
    a = recorder.checkpoint(state(focus=200, brk=30))
    b = recorder.checkpoint(state(focus=200, brk=30))

    assert (a.focus_minutes, a.break_minutes) == (b.focus_minutes, b.break_minutes) == (4, 1)
    assert len(set(gateway.ids)) == 1


def test_saved_records_are_snapshots(recorder, gateway):
    recorder.open("Algebra", "", "notes", [])
    recorder.checkpoint(state(focus=60))
    recorder.checkpoint(state(focus=600))
    assert gateway.records[1].focus_minutes == 1
    assert gateway.records[2].focus_minutes == 10


def test_finalize_closes_record(recorder, gateway):
    recorder.open("Chemistry", "", "notes", [])
    recorder.checkpoint(state(focus=300, brk=60))

    final = recorder.finalize(67)
    assert final.quiz_score == 67
    assert final.focus_minutes == 5
    assert final.break_minutes == 1
    assert final.is_closed
    assert gateway.records[-1].status == SessionStatus.COMPLETED.value

    saves = len(gateway.records)
    assert recorder.checkpoint(state(focus=900)) is None
    assert recorder.finalize(100) is None
    assert len(gateway.records) == saves


def test_finalize_without_quiz(recorder):
    recorder.open("History", "", "notes", [])
    final = recorder.finalize(None, state(focus=10))
    assert final.quiz_score is None
    assert final.focus_minutes == 1


def test_checkpoint_before_open_is_ignored(recorder, gateway):
    assert recorder.checkpoint(state(focus=60)) is None
    assert gateway.records == []


def test_failed_save_is_logged_and_retried_with_same_id(caplog):
    gateway = FakeGateway(failures=1)
    recorder = SessionRecorder(gateway, executor=InlineExecutor())
    failures = []
    recorder.save_failed.connect(lambda record_id, message: failures.append(record_id))

    with caplog.at_level(logging.WARNING, logger="studyflow.recorder"):
        record = recorder.open("Physics", "", "notes", [])

    assert gateway.records == []
    assert failures == [record.id]
    assert "database offline" in recorder.last_error
    assert "Could not save session" in caplog.text

    recorder.checkpoint(state(focus=120))
    assert gateway.ids == [record.id]
    assert gateway.records[0].focus_minutes == 2


class SlowGateway(FakeGateway):
    def upsert(self, record):
        self.started = threading.current_thread().name
        time.sleep(0.05)
        super().upsert(record)


def test_background_saves_keep_request_order():
    gateway = SlowGateway()
    recorder = SessionRecorder(gateway)
    recorder.open("Music", "", "notes", [])

    start = time.monotonic()
    for seconds in (60, 120, 180, 240):
        recorder.checkpoint(state(focus=seconds))
    # Requests return before the slow writes complete
    assert time.monotonic() - start < 0.15

    assert recorder.flush(timeout=5)
    assert [r.focus_minutes for r in gateway.records] == [0, 1, 2, 3, 4]
    assert gateway.started.startswith("session-save")
    recorder.shutdown()


def test_failed_final_save_is_retried(recorder, gateway):
    record = recorder.open("Geology", "", "notes", [])
    gateway.failures = 1
    recorder.finalize(80, state(focus=600))

    assert recorder.is_behind
    assert gateway.records[-1].status == SessionStatus.IN_PROGRESS.value

    recorder.retry()
    assert not recorder.is_behind
    assert gateway.ids == [record.id] * 2
    assert gateway.records[-1].quiz_score == 80
    assert gateway.records[-1].is_closed


def test_retry_is_skipped_once_stored(recorder, gateway):
    recorder.open("Geology", "", "notes", [])
    recorder.retry()
    assert gateway.attempts == 1


def test_flush_gives_the_final_save_another_try(recorder, gateway):
    recorder.open("Botany", "", "notes", [])
    gateway.failures = 1
    recorder.finalize(None, state(focus=60))

    assert recorder.flush()
    assert gateway.records[-1].is_closed


def test_flush_reports_a_record_that_still_cannot_be_saved(recorder, gateway):
    recorder.open("Botany", "", "notes", [])
    gateway.failures = 2
    recorder.finalize(None, state(focus=60))

    assert not recorder.flush()
    assert gateway.attempts == 3


def test_opening_next_session_saves_previous_result_first(recorder, gateway):
    first = recorder.open("Zoology", "", "notes", [])
    gateway.failures = 1
    recorder.finalize(90, state(focus=300))

    second = recorder.open("Ecology", "", "notes", [])
    assert gateway.ids == [first.id, first.id, second.id]
    assert gateway.records[1].quiz_score == 90
