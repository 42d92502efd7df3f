import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from src.config import ExamConfig
from src.exam.application.pagination import PaginationController
from src.exam.application.sources import QuestionSource
from src.exam.domain.errors import (
    FetchFailed,
    InvalidAnswer,
    NavigationBlocked,
    SessionClosed,
    SourceUnavailable,
)
from src.exam.domain.models import (
    Attempt,
    BatchContext,
    Question,
    ScoreReport,
    SessionPhase,
    SessionSnapshot,
    TestDefinition,
)
from src.exam.domain.navigation import NavigationState
from src.exam.domain.ports import IAttemptRepository
from src.exam.domain.question_cache import SessionQuestionCache
from src.exam.domain.scoring import score_session
from src.exam.domain.timer import SessionTimer
from src.fsm import SessionAction, SessionStateMachine
from src.shared.telemetry import Telemetry, measure_time


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmitTrigger(str, Enum):
    USER = "USER"
    TIMER = "TIMER"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for timer-forced submissions."""

    max_attempts: int = ExamConfig.SUBMIT_MAX_ATTEMPTS
    base_delay: float = ExamConfig.SUBMIT_RETRY_BASE_DELAY

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2**attempt)


class SessionController:
    """
    Owns one exam attempt from start to submission: the question cache,
    navigation state, timer, pagination and the phase machine.

    All mutations happen on the event loop thread; blocking collaborators
    run through asyncio.to_thread. A controller is the SessionHandle given
    to the UI layer and is never shared between sessions.
    """

    def __init__(
        self,
        test: TestDefinition,
        user_id: str,
        source: QuestionSource,
        repo: IAttemptRepository,
        retry_policy: RetryPolicy | None = None,
        page_size: int = ExamConfig.PAGE_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.test = test
        self.user_id = user_id
        self.source = source
        self.repo = repo
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock

        self.session_id = uuid.uuid4().hex
        # Minted once so every retry rewrites the same persisted unit.
        self.attempt_id = uuid.uuid4().hex[:12]

        self.fsm = SessionStateMachine()
        self.cache = SessionQuestionCache()
        self.navigation = NavigationState()
        self.timer = SessionTimer(
            test.timer_mode, test.duration_seconds, on_expire=self._on_expire
        )
        self.pagination = PaginationController(
            test,
            source,
            self.cache,
            self.navigation,
            is_live=lambda: self.phase == SessionPhase.ACTIVE,
            page_size=page_size,
        )

        self.focus_loss_count = 0
        self.start_time: datetime | None = None
        self.attempt: Attempt | None = None
        self.report: ScoreReport | None = None
        self.last_error: Exception | None = None
        self._expiry_pending = False
        self._ticker: asyncio.Task | None = None
        self._auto_tick = False
        self.telemetry = Telemetry("SessionController")

    # --- Properties ---
    @property
    def phase(self) -> SessionPhase:
        return self.fsm.current_state

    @property
    def cursor(self) -> int:
        return self.navigation.cursor

    @property
    def order(self) -> list[str]:
        return list(self.navigation.order)

    # --- Lifecycle ---
    @measure_time("session_start")
    async def start(self, run_clock: bool = True) -> "SessionController":
        """
        Fetches the initial batch and goes ACTIVE. On failure the phase stays
        NOT_STARTED and SourceUnavailable is raised; start may be retried.
        """
        if self.phase != SessionPhase.NOT_STARTED:
            raise SessionClosed(f"Session already {self.phase.value}")

        Telemetry.start_trace()
        count = (
            ExamConfig.INITIAL_UNBOUNDED_BATCH
            if self.test.is_unbounded
            else self.test.question_count
        )
        context = BatchContext(test_id=self.test.id, subjects=self.test.subjects)
        try:
            batch = await asyncio.to_thread(self.source.fetch_batch, context, count)
        except SourceUnavailable:
            raise
        except Exception as e:
            raise SourceUnavailable(f"Question source failed: {e}") from e

        accepted = self.cache.put(batch)
        if not accepted:
            raise SourceUnavailable("Initial batch was empty")
        self.navigation.extend([q.id for q in accepted])

        self.start_time = self.clock()
        self.fsm.transition(SessionAction.LOAD_SUCCESS)
        self.timer.start()
        self._auto_tick = run_clock
        if run_clock:
            self._ticker = asyncio.create_task(self._run_clock())

        self.telemetry.log_info(
            "Session started",
            test_id=self.test.id,
            user_id=self.user_id,
            loaded=len(accepted),
            timer=self.timer.mode.value,
        )
        return self

    async def _run_clock(self) -> None:
        while self.phase == SessionPhase.ACTIVE and self.timer.is_running:
            await asyncio.sleep(ExamConfig.TICK_SECONDS)
            await self.tick()

    def _stop_clock(self) -> None:
        self.timer.suspend()
        ticker, self._ticker = self._ticker, None
        if ticker and not ticker.done() and ticker is not asyncio.current_task():
            ticker.cancel()

    def _resume_clock(self) -> None:
        self.timer.start()
        # Without a ticker task, ticks are driven by the caller.
        if self._auto_tick and self.timer.is_running and self._ticker is None:
            self._ticker = asyncio.create_task(self._run_clock())

    async def tick(self) -> None:
        """One timer tick. Expiry turns into a forced, retried submission."""
        if self.phase != SessionPhase.ACTIVE:
            return
        self.timer.tick()
        if not self._expiry_pending:
            return
        self._expiry_pending = False
        try:
            await self._persist_submission(SubmitTrigger.TIMER)
        except FetchFailed as e:
            self.last_error = e
            self.telemetry.log_warning("Forced submission pending manual retry")

    def _on_expire(self) -> None:
        self.telemetry.log_info("⏰ Time up", test_id=self.test.id)
        if self._begin_submission(SessionAction.TIME_UP):
            self._expiry_pending = True

    def abandon(self) -> bool:
        if not self.fsm.transition(SessionAction.ABANDON):
            return False
        self._stop_clock()
        self.telemetry.log_info(
            "Session abandoned", answered=len(self.navigation.answers)
        )
        return True

    async def close(self) -> None:
        """Releases the clock task. Safe to call in any phase."""
        ticker, self._ticker = self._ticker, None
        if ticker and not ticker.done():
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass

    # --- Answers ---
    def _require_active(self) -> None:
        if self.phase != SessionPhase.ACTIVE:
            raise SessionClosed(f"Session is {self.phase.value}")

    def _require_editable(self) -> None:
        self._require_active()
        if self.timer.is_expired:
            raise SessionClosed("Time is up; only submission is allowed")

    def select_answer(self, question_id: str, option_id: str) -> None:
        self._require_editable()
        question = self.cache.get(question_id)
        if not question.has_option(option_id):
            raise InvalidAnswer(f"Option {option_id} does not belong to {question_id}")
        self.navigation.select_answer(question_id, option_id)

    def clear_answer(self, question_id: str) -> None:
        self._require_editable()
        self.cache.get(question_id)
        self.navigation.clear_answer(question_id)

    def toggle_flag(self, question_id: str) -> bool:
        self._require_editable()
        self.cache.get(question_id)
        return self.navigation.toggle_flag(question_id)

    def record_focus_loss(self) -> int:
        if self.phase == SessionPhase.ACTIVE:
            self.focus_loss_count += 1
            self.telemetry.log_warning("Focus lost", count=self.focus_loss_count)
        return self.focus_loss_count

    # --- Navigation ---
    def get_current_question(self) -> Question | None:
        current = self.navigation.current_id
        return self.cache.find(current) if current else None

    async def move_to(self, index: int) -> None:
        self._require_active()
        if self.pagination.is_fetching and index > self.navigation.cursor:
            raise NavigationBlocked("Wait for the next page to load")

        if self.test.is_unbounded and index == len(self.navigation.order):
            first_new = await self.pagination.load_next_page()
            if first_new is None:
                return
            self.navigation.move_to(index)
            return

        self.navigation.move_to(index)

    async def move_next(self) -> bool:
        """Returns False at the end of a fixed test."""
        target = self.navigation.cursor + 1
        if not self.test.is_unbounded and target >= len(self.navigation.order):
            return False
        await self.move_to(target)
        return self.navigation.cursor == target

    async def move_prev(self) -> bool:
        if self.navigation.cursor == 0:
            return False
        await self.move_to(self.navigation.cursor - 1)
        return True

    # --- Submission ---
    def _begin_submission(self, action: SessionAction) -> bool:
        if not self.fsm.transition(action):
            return False
        self._stop_clock()
        return True

    @measure_time("session_submit")
    async def submit(self) -> Attempt | None:
        """
        Scores and persists the attempt. Returns None when a submission is
        already in flight (or done); raises FetchFailed when the write fails,
        in which case the session is ACTIVE again with every answer intact.
        """
        if self.phase in (SessionPhase.SUBMITTING, SessionPhase.COMPLETED):
            self.telemetry.log_info("Double submit ignored", phase=self.phase.value)
            return None
        self._require_active()
        self._begin_submission(SessionAction.SUBMIT)
        return await self._persist_submission(SubmitTrigger.USER)

    async def _persist_submission(self, trigger: SubmitTrigger) -> Attempt:
        ended = self.clock()
        report = score_session(
            self.navigation.answers,
            self.cache,
            self.navigation.order,
            attempted_at=ended,
            attempt_id=self.attempt_id,
            user_id=self.user_id,
            test_id=self.test.id,
        )
        attempt = Attempt(
            id=self.attempt_id,
            test_id=self.test.id,
            user_id=self.user_id,
            score=report.score,
            accuracy=report.accuracy,
            start_time=self.start_time or ended,
            end_time=ended,
            focus_loss_count=self.focus_loss_count,
        )
        mistakes = list(report.mistakes)

        tries = self.retry_policy.max_attempts if trigger == SubmitTrigger.TIMER else 1
        try:
            for n in range(tries):
                try:
                    await asyncio.to_thread(self.repo.save_submission, attempt, mistakes)
                    break
                except Exception as e:
                    self.last_error = e
                    self.telemetry.log_error(
                        "Submission write failed", e, try_no=n + 1, trigger=trigger.value
                    )
                    if n + 1 < tries:
                        await asyncio.sleep(self.retry_policy.delay_for(n))
            else:
                self.fsm.transition(SessionAction.PERSIST_FAILED)
                self._resume_clock()
                raise FetchFailed("Submission could not be saved") from self.last_error
        except asyncio.CancelledError:
            # The write may still land; a later submit rewrites the same attempt id.
            self.telemetry.log_warning("Submission cancelled", trigger=trigger.value)
            self.fsm.transition(SessionAction.PERSIST_FAILED)
            self._resume_clock()
            raise

        self.attempt = attempt
        self.report = report
        self.last_error = None
        self.fsm.transition(SessionAction.PERSIST_SUCCESS)
        self.telemetry.log_info(
            "Attempt saved",
            attempt_id=attempt.id,
            score=str(attempt.score),
            accuracy=str(attempt.accuracy),
            mistakes=len(mistakes),
            trigger=trigger.value,
            focus_losses=self.focus_loss_count,
        )
        return attempt

    # --- Read-only accessors ---
    def should_warn_before_leave(self) -> bool:
        return (
            self.phase in (SessionPhase.ACTIVE, SessionPhase.SUBMITTING)
            and len(self.navigation.order) > 0
        )

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self.phase,
            test_id=self.test.id,
            cursor=self.navigation.cursor,
            total_loaded=len(self.navigation.order),
            is_unbounded=self.test.is_unbounded,
            timer_mode=self.timer.mode,
            clock_seconds=self.timer.seconds,
            formatted_clock=ExamConfig.format_clock(self.timer.seconds),
            is_low_time=self.timer.is_low_time,
            answered_ids=frozenset(self.navigation.answers),
            flagged_ids=frozenset(self.navigation.flagged),
            palette=tuple(self.navigation.palette()),
            is_fetching=self.pagination.is_fetching,
            focus_loss_count=self.focus_loss_count,
        )
