import os
import threading
from concurrent.futures import Future

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtWidgets import QApplication

from studyflow.models import QuizQuestion
from studyflow.recorder import SessionRecorder
from studyflow.storage import Storage


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / "studyflow.db"))


class InlineExecutor:
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True):
        pass


class FakeGateway:
    def __init__(self, failures=0):
        self.records = []
        self.failures = failures
        self.attempts = 0
        self._lock = threading.Lock()

    def upsert(self, record):
        with self._lock:
            self.attempts += 1
            if self.failures > 0:
                self.failures -= 1
                raise ConnectionError("database offline")
            self.records.append(record)

    @property
    def ids(self):
        return [r.id for r in self.records]


class FakeGenerator:
    def __init__(self, quiz=None, fail_with=None):
        self.quiz = quiz if quiz is not None else []
        self.fail_with = fail_with
        self.calls = []

    def generate_study_material(self, topic, reference_link=None, attachment=None,
                                instructions=None, depth="intermediate"):
        self.calls.append(("notes", topic, depth))
        if self.fail_with is not None:
            raise self.fail_with
        return f"# {topic}\n\nNotes."

    def generate_quiz(self, topic, notes=None):
        self.calls.append(("quiz", topic))
        return list(self.quiz)


class FakeHandle:
    def __init__(self, track, volume, on_error, log):
        self.track = track
        self.volume = volume
        self.on_error = on_error
        self.log = log
        self.released = False
        self.playing = False

    def play(self):
        self.playing = True

    def set_volume(self, volume):
        self.volume = volume

    def release(self):
        self.released = True
        self.playing = False
        self.log.append(("release", self.track))


class FakeHandleFactory:
    def __init__(self, unavailable=()):
        self.unavailable = set(unavailable)
        self.log = []
        self.handles = []

    def __call__(self, track, volume, on_error):
        if track in self.unavailable:
            raise RuntimeError("blocked by platform policy")
        self.log.append(("acquire", track))
        handle = FakeHandle(track, volume, on_error, self.log)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if not h.released]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def recorder(gateway):
    return SessionRecorder(gateway, executor=InlineExecutor())


@pytest.fixture
def sample_quiz():
    return [
        QuizQuestion("2 + 2?", ["3", "4", "5"], 1, "Basic sum"),
        QuizQuestion("Capital of France?", ["Paris", "Rome"], 0, ""),
        QuizQuestion("H2O is?", ["Salt", "Water"], 1, ""),
    ]
