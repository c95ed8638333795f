"""
Session record builder.
Keeps the persisted SessionRecord of the running session up to date
without ever making the timer wait for the database.
"""

import copy
import threading
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import List, Optional, Protocol
from PySide6.QtCore import QObject, Signal

from .models import (
    QuizQuestion, SessionRecord, SessionStatus, TimerState, ceil_minutes
)

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    """Insert-or-update store keyed by record id."""

    def upsert(self, record: SessionRecord) -> None:
        ...


def focus_minutes_for(seconds: int) -> int:
    # A session that produced material is never recorded as zero minutes
    return max(1, ceil_minutes(seconds))


def break_minutes_for(seconds: int) -> int:
    return ceil_minutes(seconds)


class SessionRecorder(QObject):
    """
    Builds and saves the SessionRecord of one session at a time.

    Saves run on a single background worker, so they execute in the
    order they were requested while the caller carries on. Each save
    receives its own copy of the record. A failed write is healed by
    the next checkpoint, or by retry() once the record is closed.

    Signals:
        saved: Emitted with the record id after a successful write
        save_failed: Emitted with (record id, message) when a write fails
    """

    saved = Signal(str)
    save_failed = Signal(str, str)

    def __init__(
        self,
        gateway: PersistenceGateway,
        executor: Optional[ThreadPoolExecutor] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self._gateway = gateway
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="session-save"
        )
        self._record: Optional[SessionRecord] = None
        self._last_state: Optional[TimerState] = None
        self._pending: List[Future] = []
        # Newest snapshot handed to the worker, with request and save counters
        self._latest: Optional[SessionRecord] = None
        self._requested = 0
        self._saved_up_to = 0
        self._lock = threading.Lock()
        self.last_error: Optional[str] = None

    @property
    def record(self) -> Optional[SessionRecord]:
        """Copy of the record being built."""
        if self._record is None:
            return None
        return copy.deepcopy(self._record)

    @property
    def is_open(self) -> bool:
        return self._record is not None and not self._record.is_closed

    def open(
        self,
        topic: str,
        reference_link: str,
        notes: str,
        quiz: List[QuizQuestion]
    ) -> SessionRecord:
        """Start a new record with a fresh id and save it immediately."""
        # A previous record whose last write failed gets one more try first
        self.retry()
        self._record = SessionRecord(
            id=uuid.uuid4().hex,
            topic=topic,
            reference_link=reference_link or "",
            notes=notes,
            quiz=list(quiz),
        )
        self._last_state = None
        logger.info("Session %s opened for topic %r", self._record.id, topic)
        self._request_save()
        return self.record

    def checkpoint(self, state: TimerState) -> Optional[SessionRecord]:
        """Recompute minutes from ``state`` and save under the same id."""
        if not self.is_open:
            logger.warning("Checkpoint ignored: no open session record")
            return None

        self._apply_state(state)
        self._request_save()
        return self.record

    def finalize(
        self,
        quiz_score: Optional[int],
        state: Optional[TimerState] = None
    ) -> Optional[SessionRecord]:
        """
        Record the quiz score, close the record and save it one last time.
        ``state`` defaults to the last checkpointed timer state.
        """
        if not self.is_open:
            logger.warning("Finalize ignored: no open session record")
            return None

        state = state or self._last_state
        if state is not None:
            self._apply_state(state)
        self._record.quiz_score = quiz_score
        self._record.status = SessionStatus.COMPLETED.value
        logger.info(
            "Session %s finalized: %s focus min, %s break min, score %s",
            self._record.id,
            self._record.focus_minutes,
            self._record.break_minutes,
            quiz_score
        )
        self._request_save()
        return self.record

    def retry(self):
        """
        Queue one more write of the newest snapshot. The worker skips it
        if that snapshot, or a later one, has been stored meanwhile.
        """
        with self._lock:
            record, seq = self._latest, self._requested
        if record is None:
            return
        self._track(self._executor.submit(self._save_if_behind, seq, record))

    @property
    def is_behind(self) -> bool:
        """True while the newest snapshot has not been stored."""
        with self._lock:
            return self._saved_up_to < self._requested

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for outstanding saves, giving a failed newest snapshot one
        more try. Returns True once the newest snapshot is stored.
        """
        if not self._wait(timeout):
            return False
        if self.is_behind:
            self.retry()
            if not self._wait(timeout):
                return False
        return not self.is_behind

    def shutdown(self):
        if not self.flush():
            logger.error("Session %s could not be saved before exit", self._latest.id)
        self._executor.shutdown(wait=True)

    def _wait(self, timeout: Optional[float]) -> bool:
        pending, self._pending = self._pending, []
        _done, not_done = wait(pending, timeout=timeout)
        self._pending.extend(not_done)
        return not not_done

    def _apply_state(self, state: TimerState):
        self._last_state = replace(state)
        self._record.focus_minutes = focus_minutes_for(state.cumulative_focus_seconds)
        self._record.break_minutes = break_minutes_for(state.cumulative_break_seconds)

    def _request_save(self):
        snapshot = copy.deepcopy(self._record)
        with self._lock:
            self._requested += 1
            seq = self._requested
            self._latest = snapshot
        self._track(self._executor.submit(self._save, seq, snapshot))

    def _track(self, future: Future):
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(future)

    def _save_if_behind(self, seq: int, record: SessionRecord) -> bool:
        with self._lock:
            if self._saved_up_to >= seq:
                return True
        logger.info("Retrying save of session %s", record.id)
        return self._save(seq, record)

    def _save(self, seq: int, record: SessionRecord) -> bool:
        try:
            self._gateway.upsert(record)
        except Exception as e:
            self.last_error = str(e)
            logger.warning("Could not save session %s: %s", record.id, e)
            self.save_failed.emit(record.id, str(e))
            return False

        with self._lock:
            self._saved_up_to = max(self._saved_up_to, seq)
        logger.debug(
            "Session %s saved (%s/%s min)",
            record.id, record.focus_minutes, record.break_minutes
        )
        self.saved.emit(record.id)
        return True
