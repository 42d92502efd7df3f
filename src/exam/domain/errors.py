class ExamError(Exception):
    """Base class for every error raised by the exam engine."""


class SourceUnavailable(ExamError):
    """Neither the generative nor the curated source could produce a batch."""


class RetryableError(ExamError):
    """The operation failed but session state is intact; the caller may retry."""


class FetchFailed(RetryableError):
    """A pagination batch or a submission write failed."""


class NavigationBlocked(RetryableError):
    """Forward navigation requested while a page fetch is in flight."""


class MalformedContent(ExamError):
    """Generated content violated the question invariants. Never leaves the source."""


class NavigationError(ExamError, IndexError):
    """A move targeted an index outside the loaded order."""


class InvalidAnswer(ExamError, ValueError):
    """Unknown question id, or an option id that does not belong to the question."""


class SessionClosed(ExamError):
    """Input arrived while the session phase does not accept it."""


class TestNotFound(ExamError, LookupError):
    __test__ = False


class PersistenceError(ExamError):
    """A storage adapter failed to read or write."""
