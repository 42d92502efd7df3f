import random

from src.exam.application.session import RetryPolicy, SessionController
from src.exam.application.sources import build_question_source
from src.exam.domain.models import Attempt, Question, TestDefinition
from src.exam.domain.ports import IAttemptRepository, IGenerationCapability, ITestCatalog
from src.shared.telemetry import Telemetry, measure_time


class ExamService:
    def __init__(
        self,
        catalog: ITestCatalog,
        repo: IAttemptRepository,
        bank: list[Question],
        capability: IGenerationCapability | None = None,
        retry_policy: RetryPolicy | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog = catalog
        self.repo = repo
        self.bank = bank
        self.capability = capability
        self.retry_policy = retry_policy
        self.rng = rng
        self.telemetry = Telemetry("ExamService")

    @property
    def repository(self) -> IAttemptRepository:
        return self.repo

    def list_tests(self, category: str | None = None) -> list[TestDefinition]:
        return self.catalog.list_tests(category)

    @measure_time("start_session")
    async def start_session(
        self, test_id: str, user_id: str, run_clock: bool = True
    ) -> SessionController:
        """
        Resolves the test and returns an ACTIVE session handle.
        Raises TestNotFound or SourceUnavailable; nothing is started on failure.
        """
        test = self.catalog.get_test(test_id)
        source = build_question_source(self.bank, self.capability, self.rng)
        session = SessionController(
            test, user_id, source, self.repo, retry_policy=self.retry_policy
        )
        if self.capability is None:
            self.telemetry.log_info("No generation capability; curated only", test_id=test_id)
        return await session.start(run_clock=run_clock)

    def load_attempt_history(self, user_id: str) -> list[Attempt]:
        return self.repo.load_attempt_history(user_id)
