from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config import ExamConfig

OPTIONS_PER_QUESTION = 4


# --- Enums ---
class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class TestMode(str, Enum):
    __test__ = False

    FIXED = "FIXED"
    UNBOUNDED = "UNBOUNDED"


class TimerMode(str, Enum):
    COUNTDOWN = "COUNTDOWN"
    COUNT_UP = "COUNT_UP"


class SessionPhase(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    ACTIVE = "ACTIVE"
    SUBMITTING = "SUBMITTING"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class AttemptStatus(str, Enum):
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class PaletteStatus(str, Enum):
    CURRENT = "CURRENT"
    ANSWERED = "ANSWERED"
    FLAGGED = "FLAGGED"
    SKIPPED = "SKIPPED"
    UNREACHED = "UNREACHED"


# --- Entities ---
class Option(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    is_correct: bool = False


class Question(BaseModel):
    """
    A single multiple-choice item. Frozen: once a Question is built its
    content (and its correct option) can never change.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    options: tuple[Option, ...]
    subject: str = "General"
    difficulty: Difficulty = Difficulty.MEDIUM
    positive_marks: Decimal = ExamConfig.DEFAULT_POSITIVE_MARKS
    negative_marks: Decimal = ExamConfig.DEFAULT_NEGATIVE_MARKS
    explanation: str | None = None

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if len(self.options) != OPTIONS_PER_QUESTION:
            raise ValueError(
                f"expected {OPTIONS_PER_QUESTION} options, got {len(self.options)}"
            )
        if sum(1 for o in self.options if o.is_correct) != 1:
            raise ValueError("exactly one option must be correct")
        if len({o.id for o in self.options}) != len(self.options):
            raise ValueError("option ids must be unique within a question")
        if self.positive_marks < 0 or self.negative_marks < 0:
            raise ValueError("marks must be non-negative")
        return self

    @property
    def correct_option(self) -> Option:
        return next(o for o in self.options if o.is_correct)

    def has_option(self, option_id: str) -> bool:
        return any(o.id == option_id for o in self.options)

    def with_id(self, new_id: str) -> "Question":
        """Clone under a new id (used when the curated pool runs dry)."""
        return self.model_copy(update={"id": new_id})


class TestDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)
    __test__ = False

    id: str
    title: str = ""
    duration_seconds: int = 0  # 0 = unbounded
    question_count: int = -1  # -1 = unbounded
    mode: TestMode = TestMode.FIXED
    category: str = "General"
    subjects: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_mode(self) -> "TestDefinition":
        if self.mode == TestMode.FIXED:
            if self.duration_seconds <= 0 or self.question_count <= 0:
                raise ValueError("fixed tests need a positive duration and count")
        elif self.question_count != -1:
            raise ValueError("unbounded tests must have question_count == -1")
        return self

    @property
    def is_unbounded(self) -> bool:
        return self.mode == TestMode.UNBOUNDED

    @property
    def timer_mode(self) -> TimerMode:
        return TimerMode.COUNT_UP if self.is_unbounded else TimerMode.COUNTDOWN


# --- (Data Transfer Objects) ---
class BatchContext(BaseModel):
    """What the Question Source needs to know about the batch being asked for."""

    test_id: str
    subjects: tuple[str, ...] = ()
    is_initial: bool = True
    already_loaded: int = 0


class MistakeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    selected_option_id: str | None
    attempt_timestamp: datetime
    correct_option_id: str
    attempt_id: str = ""
    user_id: str = ""
    test_id: str = ""
    # Snapshot of the question exactly as shown during the attempt.
    question: Question | None = None


class SubjectScore(BaseModel):
    subject: str
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0
    score: Decimal = Decimal("0")


class ScoreReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: Decimal
    accuracy: Decimal
    correct_count: int
    incorrect_count: int
    answered_count: int
    unanswered_count: int
    mistakes: tuple[MistakeRecord, ...] = ()
    subjects: tuple[SubjectScore, ...] = ()


class Attempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    test_id: str
    user_id: str
    score: Decimal
    accuracy: Decimal
    start_time: datetime
    end_time: datetime
    status: AttemptStatus = AttemptStatus.COMPLETED
    focus_loss_count: int = 0


class SessionSnapshot(BaseModel):
    """Read-only view of a running session, for rendering."""

    phase: SessionPhase
    test_id: str
    cursor: int
    total_loaded: int
    is_unbounded: bool
    timer_mode: TimerMode
    clock_seconds: int
    formatted_clock: str
    is_low_time: bool = False
    answered_ids: frozenset[str] = Field(default_factory=frozenset)
    flagged_ids: frozenset[str] = Field(default_factory=frozenset)
    palette: tuple[PaletteStatus, ...] = ()
    is_fetching: bool = False
    focus_loss_count: int = 0
