import pytest

from src.exam.adapters.db_manager import DatabaseManager
from src.exam.adapters.memory import InMemoryAttemptRepository, InMemoryTestCatalog
from src.exam.adapters.sqlite_repository import SQLiteAttemptRepository
from src.exam.domain.models import TestDefinition, TestMode
from tests.drivers.factories import make_question


@pytest.fixture
def sample_question():
    return make_question("Q1", correct="o3")


@pytest.fixture
def fixed_test():
    return TestDefinition(id="fx", title="Fixed", duration_seconds=900, question_count=5)


@pytest.fixture
def unbounded_test():
    return TestDefinition(id="inf", title="Arena", mode=TestMode.UNBOUNDED)


@pytest.fixture
def memory_repo():
    """Returns a clean, empty in-memory attempt store."""
    return InMemoryAttemptRepository()


@pytest.fixture
def catalog():
    return InMemoryTestCatalog()


@pytest.fixture
def db_manager():
    manager = DatabaseManager(":memory:")
    yield manager
    manager.close()


@pytest.fixture
def sqlite_repo(db_manager):
    return SQLiteAttemptRepository(db_manager)
