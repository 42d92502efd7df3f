from abc import ABC, abstractmethod
from typing import Any

from src.exam.domain.models import Attempt, BatchContext, MistakeRecord, Question, TestDefinition


class ITestCatalog(ABC):
    @abstractmethod
    def get_test(self, test_id: str) -> TestDefinition:
        """Raises TestNotFound for unknown ids."""
        pass

    @abstractmethod
    def list_tests(self, category: str | None = None) -> list[TestDefinition]:
        pass


class IGenerationCapability(ABC):
    """
    Opaque text-generation provider. Returns the provider's structured JSON
    (already decoded, or as a JSON string). Raises on any transport failure.
    """

    @abstractmethod
    def generate(self, prompt: str, schema: dict[str, Any]) -> Any:
        pass


class ISourcingStrategy(ABC):
    """One link of the Question Source chain."""

    name: str = "strategy"

    @abstractmethod
    def supply(self, context: BatchContext, count: int) -> list[Question] | None:
        """
        Returns validated questions (possibly fewer than `count`), or None to
        decline the batch entirely.
        """
        pass


class IAttemptRepository(ABC):
    @abstractmethod
    def save_attempt(self, attempt: Attempt) -> None:
        pass

    @abstractmethod
    def save_mistakes(self, mistakes: list[MistakeRecord]) -> None:
        pass

    @abstractmethod
    def save_submission(self, attempt: Attempt, mistakes: list[MistakeRecord]) -> None:
        """
        Persists the attempt and its mistakes as one unit: both are written
        or neither is. Rewriting the same attempt id must be idempotent.
        """
        pass

    @abstractmethod
    def load_attempt_history(self, user_id: str) -> list[Attempt]:
        """Newest first."""
        pass

    @abstractmethod
    def load_mistakes(self, user_id: str) -> list[MistakeRecord]:
        """Newest first."""
        pass
