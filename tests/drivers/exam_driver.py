import random

from src.exam.application.session import RetryPolicy, SessionController
from src.exam.application.sources import build_question_source
from src.exam.domain.models import SessionPhase, TestDefinition
from src.exam.domain.ports import IAttemptRepository
from tests.drivers.factories import make_bank


def make_session(
    test: TestDefinition,
    repo: IAttemptRepository,
    bank=None,
    capability=None,
    retry_policy: RetryPolicy | None = None,
    page_size: int = 10,
    user_id: str = "student",
) -> SessionController:
    """Builds a NOT_STARTED controller over a seeded curated pool."""
    source = build_question_source(
        bank if bank is not None else make_bank(60), capability, random.Random(7)
    )
    return SessionController(
        test,
        user_id,
        source,
        repo,
        retry_policy=retry_policy or RetryPolicy(max_attempts=3, base_delay=0),
        page_size=page_size,
    )


class ExamDriver:
    """Fluent wrapper that plays the student's side of a session."""

    def __init__(self, session: SessionController):
        self.session = session

    @property
    def current(self):
        return self.session.get_current_question()

    def assert_phase(self, phase: SessionPhase):
        assert self.session.phase == phase, (
            f"Expected phase '{phase.value}', but got '{self.session.phase.value}'"
        )
        return self

    def answer_correctly(self):
        q = self.current
        self.session.select_answer(q.id, q.correct_option.id)
        return self

    def answer_wrongly(self):
        q = self.current
        wrong = next(o for o in q.options if not o.is_correct)
        self.session.select_answer(q.id, wrong.id)
        return self

    def flag(self):
        self.session.toggle_flag(self.current.id)
        return self

    async def next(self):
        await self.session.move_next()
        return self

    async def go_to(self, index: int):
        await self.session.move_to(index)
        return self

    async def run_clock(self, seconds: int):
        for _ in range(seconds):
            await self.session.tick()
        return self

    async def submit(self):
        return await self.session.submit()
