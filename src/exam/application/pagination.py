import asyncio
from collections.abc import Callable
from enum import Enum, auto

from src.config import ExamConfig
from src.exam.application.sources import QuestionSource
from src.exam.domain.errors import FetchFailed, NavigationBlocked
from src.exam.domain.models import BatchContext, TestDefinition
from src.exam.domain.navigation import NavigationState
from src.exam.domain.question_cache import SessionQuestionCache
from src.shared.telemetry import Telemetry, measure_time


class PaginationState(Enum):
    IDLE = auto()
    FETCHING = auto()


class PaginationController:
    """
    Loads the next page of an unbounded session. One fetch at a time: a
    request made while FETCHING is rejected, never queued.
    """

    def __init__(
        self,
        test: TestDefinition,
        source: QuestionSource,
        cache: SessionQuestionCache,
        navigation: NavigationState,
        is_live: Callable[[], bool],
        page_size: int = ExamConfig.PAGE_SIZE,
    ) -> None:
        self.test = test
        self.source = source
        self.cache = cache
        self.navigation = navigation
        self.is_live = is_live
        self.page_size = page_size
        self.state = PaginationState.IDLE
        self.telemetry = Telemetry("PaginationController")

    @property
    def is_fetching(self) -> bool:
        return self.state == PaginationState.FETCHING

    @measure_time("load_next_page")
    async def load_next_page(self) -> int | None:
        """
        Fetches and appends one page. Returns the index of the first new
        question, or None if the session closed while the fetch was in flight
        (the late batch is dropped).
        """
        if self.is_fetching:
            raise NavigationBlocked("A page is already being fetched")

        self.state = PaginationState.FETCHING
        loaded = len(self.navigation.order)
        context = BatchContext(
            test_id=self.test.id,
            subjects=self.test.subjects,
            is_initial=False,
            already_loaded=loaded,
        )
        try:
            batch = await asyncio.to_thread(self.source.fetch_batch, context, self.page_size)
        except Exception as e:
            self.telemetry.log_error("Page fetch failed", e, loaded=loaded)
            raise FetchFailed("Could not load more questions") from e
        finally:
            # Cancellation included: a fetch never leaves the controller blocked.
            self.state = PaginationState.IDLE

        if not self.is_live():
            self.telemetry.log_warning("Discarded stale page", size=len(batch))
            return None

        accepted = self.cache.put(batch)
        if not accepted:
            raise FetchFailed("Fetched page contained no new questions")
        first_index = len(self.navigation.order)
        self.navigation.extend([q.id for q in accepted])
        self.telemetry.log_info("Page appended", added=len(accepted), total=len(self.navigation.order))
        return first_index
