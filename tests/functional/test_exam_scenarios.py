# ==============================================================================
# ARCHITECTURE: FUNCTIONAL TEST (USER FLOWS)
# ------------------------------------------------------------------------------
# GOAL: Verify end-to-end student scenarios via ExamService.
# CONSTRAINTS:
#   1. SERVICE: Use 'src.exam.application.service.ExamService'.
#   2. I/O: Real in-memory SQLite store; generation capability is a Mock.
# ==============================================================================
import random
from decimal import Decimal
from unittest.mock import Mock

import pytest

from src.exam.adapters.memory import InMemoryTestCatalog
from src.exam.adapters.question_bank import load_question_bank
from src.exam.application.review import MistakeReviewService
from src.exam.application.service import ExamService
from src.exam.application.session import RetryPolicy
from src.exam.domain.models import SessionPhase
from tests.drivers.exam_driver import ExamDriver
from tests.drivers.factories import generated_item


@pytest.fixture
def service(sqlite_repo):
    return ExamService(
        InMemoryTestCatalog(),
        sqlite_repo,
        load_question_bank().questions,
        retry_policy=RetryPolicy(max_attempts=2, base_delay=0),
        rng=random.Random(11),
    )


@pytest.mark.asyncio
async def test_student_completes_quick_mock_and_reviews_mistakes(service, sqlite_repo):
    """
    GIVEN the 10-question quick mock from the curated bank
    WHEN the student answers 6 right, 2 wrong, skips 2 and submits
    THEN the attempt scores 11 with 75% accuracy
    AND both mistakes are reviewable with an offline explanation.
    """
    session = await service.start_session("mock_10", "asha", run_clock=False)
    driver = ExamDriver(session)

    for i in range(10):
        if i < 6:
            driver.answer_correctly()
        elif i < 8:
            driver.answer_wrongly()
        await driver.next()

    attempt = await driver.submit()

    driver.assert_phase(SessionPhase.COMPLETED)
    assert attempt.score == Decimal("11")
    assert attempt.accuracy == Decimal("75.00")
    assert service.load_attempt_history("asha")[0].id == attempt.id

    review = MistakeReviewService(sqlite_repo)
    mistakes = review.list_mistakes("asha")
    assert len(mistakes) == 2
    assert all(m.attempt_id == attempt.id for m in mistakes)
    assert "**Correct answer**" in review.explain(mistakes[0])


@pytest.mark.asyncio
async def test_time_runs_out_mid_test(service):
    session = await service.start_session("mock_10", "ravi", run_clock=False)
    driver = ExamDriver(session)
    driver.answer_correctly().flag()

    await driver.run_clock(15 * 60)

    driver.assert_phase(SessionPhase.COMPLETED)
    assert session.attempt.score == Decimal("2")
    assert session.report.unanswered_count == 9


@pytest.mark.asyncio
async def test_practice_arena_pages_forever(service):
    session = await service.start_session("unlimited_1", "meera", run_clock=False)
    driver = ExamDriver(session)

    await driver.go_to(19)
    for _ in range(15):
        driver.answer_correctly()
        await driver.next()
    await driver.run_clock(42)

    assert len(session.order) >= 35
    assert len(set(session.order)) == len(session.order)
    assert session.snapshot().formatted_clock == "00:42"

    attempt = await driver.submit()
    assert attempt.score == Decimal("30")


@pytest.mark.asyncio
async def test_generated_questions_mixed_with_curated(sqlite_repo):
    capability = Mock()
    capability.generate.return_value = {
        "questions": [generated_item(f"Q{i}") for i in range(4)] + [generated_item(options=["x"])]
    }
    service = ExamService(
        InMemoryTestCatalog(),
        sqlite_repo,
        load_question_bank().questions,
        capability=capability,
        rng=random.Random(3),
    )

    session = await service.start_session("mock_10", "kiran", run_clock=False)

    ids = session.order
    assert len(ids) == 10
    assert sum(i.startswith("gen_") for i in ids) == 4
    assert sum(i.startswith("pool_q") for i in ids) == 6


@pytest.mark.asyncio
async def test_leaving_mid_test_abandons_without_saving(service, sqlite_repo):
    session = await service.start_session("mock_25", "dev", run_clock=False)
    ExamDriver(session).answer_correctly()

    assert session.should_warn_before_leave()
    session.abandon()

    driver = ExamDriver(session)
    driver.assert_phase(SessionPhase.ABANDONED)
    assert sqlite_repo.load_attempt_history("dev") == []
