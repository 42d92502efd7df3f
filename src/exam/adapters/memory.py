import threading

from src.exam.domain.errors import PersistenceError, TestNotFound
from src.exam.domain.models import Attempt, MistakeRecord, TestDefinition, TestMode
from src.exam.domain.ports import IAttemptRepository, ITestCatalog
from src.shared.telemetry import Telemetry

QUICK_TEST_IDS = ("mock_10", "mock_25", "unlimited_1")

DEFAULT_TESTS: list[TestDefinition] = [
    TestDefinition(
        id="mock_10", title="⚡ Quick Mock (10 Qs)", duration_seconds=15 * 60,
        question_count=10, category="1",
    ),
    TestDefinition(
        id="mock_25", title="🏆 Standard Mock (25 Qs)", duration_seconds=30 * 60,
        question_count=25, category="1",
    ),
    TestDefinition(
        id="unlimited_1", title="∞ Infinite Practice Arena", mode=TestMode.UNBOUNDED,
        category="1",
    ),
    TestDefinition(
        id="t1", title="SSC CGL Tier-1 Full Mock", duration_seconds=60 * 60,
        question_count=25, category="1",
    ),
    TestDefinition(
        id="t2", title="SBI PO Prelims Speed Test", duration_seconds=60 * 60,
        question_count=25, category="2",
        subjects=("Quantitative Aptitude", "English", "General Intelligence"),
    ),
]


class InMemoryTestCatalog(ITestCatalog):
    __test__ = False

    def __init__(self, tests: list[TestDefinition] | None = None) -> None:
        self._tests = {t.id: t for t in (DEFAULT_TESTS if tests is None else tests)}

    def get_test(self, test_id: str) -> TestDefinition:
        try:
            return self._tests[test_id]
        except KeyError:
            raise TestNotFound(f"Unknown test: {test_id}") from None

    def list_tests(self, category: str | None = None) -> list[TestDefinition]:
        if category is None:
            return list(self._tests.values())
        # Quick mocks and the practice arena are offered in every category.
        return [
            t for t in self._tests.values()
            if t.category == category or t.id in QUICK_TEST_IDS
        ]


class InMemoryAttemptRepository(IAttemptRepository):
    """
    Single-process store. Submissions are applied under one lock so a
    reader never sees an attempt without its mistakes.
    """

    def __init__(self) -> None:
        self._attempts: dict[str, Attempt] = {}
        self._mistakes: dict[str, list[MistakeRecord]] = {}
        self._lock = threading.Lock()
        self.telemetry = Telemetry("InMemoryRepository")

    def save_attempt(self, attempt: Attempt) -> None:
        with self._lock:
            self._attempts[attempt.id] = attempt

    def save_mistakes(self, mistakes: list[MistakeRecord]) -> None:
        with self._lock:
            for attempt_id in {m.attempt_id for m in mistakes}:
                self._mistakes[attempt_id] = [m for m in mistakes if m.attempt_id == attempt_id]

    def save_submission(self, attempt: Attempt, mistakes: list[MistakeRecord]) -> None:
        if any(m.attempt_id != attempt.id for m in mistakes):
            raise PersistenceError("Mistake records belong to a different attempt")
        with self._lock:
            self._attempts[attempt.id] = attempt
            self._mistakes[attempt.id] = list(mistakes)
        self.telemetry.log_info("Submission stored", attempt_id=attempt.id)

    def load_attempt_history(self, user_id: str) -> list[Attempt]:
        with self._lock:
            history = [a for a in self._attempts.values() if a.user_id == user_id]
        return sorted(history, key=lambda a: a.end_time, reverse=True)

    def load_mistakes(self, user_id: str) -> list[MistakeRecord]:
        with self._lock:
            records = [m for ms in self._mistakes.values() for m in ms if m.user_id == user_id]
        return sorted(records, key=lambda m: m.attempt_timestamp, reverse=True)
