from collections.abc import Iterable, Iterator

from src.exam.domain.errors import InvalidAnswer
from src.exam.domain.models import Question
from src.shared.telemetry import Telemetry


class SessionQuestionCache:
    """
    Append-only, per-attempt store of every question shown to the student.
    There is no update or delete: the first content seen under an id is the
    content graded for the rest of the session.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Question] = {}
        self.telemetry = Telemetry("SessionQuestionCache")

    def put(self, batch: Iterable[Question]) -> list[Question]:
        """Appends unseen ids and returns the accepted questions, in order."""
        accepted: list[Question] = []
        for question in batch:
            if question.id in self._entries:
                self.telemetry.log_warning(
                    "Duplicate question id rejected", question_id=question.id
                )
                continue
            self._entries[question.id] = question
            accepted.append(question)
        return accepted

    def get(self, question_id: str) -> Question:
        try:
            return self._entries[question_id]
        except KeyError:
            raise InvalidAnswer(f"Question not in session: {question_id}") from None

    def find(self, question_id: str) -> Question | None:
        return self._entries.get(question_id)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._entries.values())
