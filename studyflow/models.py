"""
Data models for the StudyFlow study session engine.
Uses dataclasses for clean, type-annotated data structures.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import List, Optional
import os


class Phase(Enum):
    """Timed sub-modes of an active session."""
    FOCUS = "focus"
    BREAK = "break"


class EngineMode(Enum):
    """Lifecycle of the timer engine."""
    IDLE = auto()
    ACTIVE = auto()
    QUIZ = auto()
    STOPPED = auto()


class SessionStep(Enum):
    """Top level steps of a study session as seen by the screens."""
    SETUP = auto()
    GENERATING = auto()
    ACTIVE = auto()
    QUIZ = auto()
    RESULT = auto()


class SessionStatus(Enum):
    """Status of a persisted session record."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AmbienceTrack(Enum):
    """Looping background tracks, plus silence."""
    SILENT = "silent"
    RAIN = "rain"
    CAFE = "cafe"
    FIRE = "fire"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# Remote recordings streamed by the ambience player
AMBIENCE_CATALOG = {
    AmbienceTrack.RAIN: (
        "https://cdn.pixabay.com/download/audio/2022/07/04/"
        "audio_34d193f412.mp3?filename=rain-and-thunder-16705.mp3"
    ),
    AmbienceTrack.CAFE: (
        "https://cdn.pixabay.com/download/audio/2021/08/09/"
        "audio_03d6f14068.mp3?filename=people-talking-in-a-small-room-6225.mp3"
    ),
    AmbienceTrack.FIRE: (
        "https://cdn.pixabay.com/download/audio/2021/08/09/"
        "audio_8848243f77.mp3?filename=fireplace-sound-effect-with-crackling-fire-sounds-8628.mp3"
    ),
}

STUDY_DEPTHS = ("beginner", "intermediate", "advanced")
DEFAULT_DEPTH = "intermediate"

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


def ceil_minutes(seconds: int) -> int:
    """Round a second count up to whole minutes."""
    return -(-max(0, seconds) // 60)


def format_elapsed(seconds: int) -> str:
    """Format seconds as M:SS (sign dropped, minutes unpadded)."""
    seconds = abs(int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


@dataclass
class TimerState:
    """
    Mutable timer state. Owned by the TimerEngine; everyone else
    gets a copy.
    """
    phase: Phase = Phase.FOCUS
    running: bool = False
    cumulative_focus_seconds: int = 0
    cumulative_break_seconds: int = 0
    current_phase_seconds: int = 0
    target_focus_seconds: int = 0
    target_break_seconds: int = 0

    @property
    def target_seconds(self) -> int:
        """Target of the phase currently being timed."""
        if self.phase == Phase.BREAK:
            return self.target_break_seconds
        return self.target_focus_seconds

    @property
    def total_seconds(self) -> int:
        return self.cumulative_focus_seconds + self.cumulative_break_seconds


@dataclass(frozen=True)
class TimerTotals:
    """Final cumulative values handed back by TimerEngine.stop()."""
    focus_seconds: int = 0
    break_seconds: int = 0


@dataclass(frozen=True)
class TimerSnapshot:
    """Read-only view of the engine used to drive displays."""
    mode: EngineMode
    phase: Phase
    running: bool
    current_phase_seconds: int
    cumulative_focus_seconds: int
    cumulative_break_seconds: int
    target_seconds: int
    remaining: int
    progress: float

    @property
    def is_overtime(self) -> bool:
        return self.remaining < 0

    @property
    def is_break(self) -> bool:
        return self.mode == EngineMode.ACTIVE and self.phase == Phase.BREAK

    def format_remaining(self) -> str:
        """Countdown text; overtime is prefixed with '+'."""
        text = format_elapsed(self.remaining)
        return f"+{text}" if self.is_overtime else text


@dataclass(frozen=True)
class HeartbeatProjection:
    """Compact summary of a running session for secondary screens."""
    is_active: bool
    topic: str
    display_seconds: int
    is_break: bool
    is_paused: bool = False

    def format_elapsed(self) -> str:
        return format_elapsed(self.display_seconds)


@dataclass
class QuizQuestion:
    """Multiple-choice question produced by the content collaborator."""
    question: str
    options: List[str] = field(default_factory=list)
    correct_answer_index: int = 0
    explanation: str = ""

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "options": list(self.options),
            "correctAnswerIndex": self.correct_answer_index,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuizQuestion":
        return cls(
            question=data.get("question", ""),
            options=list(data.get("options", [])),
            correct_answer_index=int(data.get("correctAnswerIndex", 0)),
            explanation=data.get("explanation", ""),
        )


@dataclass(frozen=True)
class Attachment:
    """File supplied by the user as study material."""
    name: str
    mime_type: str
    data: bytes

    @property
    def stem(self) -> str:
        """File name without its extension."""
        stem, _, _ = self.name.rpartition(".")
        return stem or self.name


@dataclass
class SessionSetup:
    """Everything the user chooses before content is generated."""
    topic: str = ""
    reference_link: str = ""
    attachment: Optional[Attachment] = None
    instructions: str = ""
    depth: str = DEFAULT_DEPTH
    focus_minutes: int = 25
    break_minutes: int = 5

    @property
    def effective_topic(self) -> str:
        topic = self.topic.strip()
        if not topic and self.attachment is not None:
            return self.attachment.stem
        return topic

    @property
    def target_focus_seconds(self) -> int:
        return int(self.focus_minutes) * 60

    @property
    def target_break_seconds(self) -> int:
        return int(self.break_minutes) * 60


@dataclass
class SessionRecord:
    """
    Persistable snapshot of one study session.
    Saved repeatedly under the same id while the session runs.
    """
    id: str
    topic: str
    reference_link: str = ""
    started_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    focus_minutes: int = 0
    break_minutes: int = 0
    notes: str = ""
    quiz: List[QuizQuestion] = field(default_factory=list)
    quiz_score: Optional[int] = None
    status: str = SessionStatus.IN_PROGRESS.value

    @property
    def date(self) -> str:
        """ISO date the session started on."""
        return self.started_at[:10]

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.COMPLETED.value


@dataclass
class UserProgress:
    """Aggregate numbers shown on the history page."""
    total_sessions: int = 0
    topics_learned: int = 0
    average_quiz_score: float = 0.0


@dataclass
class AppSettings:
    """Application settings stored in the database."""
    default_focus_minutes: int = 25
    default_break_minutes: int = 5
    ambience_volume: float = 0.5
    autosave_interval_seconds: int = 60
    default_depth: str = DEFAULT_DEPTH


def default_db_path() -> Optional[str]:
    """Database path override taken from the environment, if any."""
    return os.environ.get("STUDYFLOW_DB") or None
