from src.exam.domain.errors import NavigationError
from src.exam.domain.models import PaletteStatus


class NavigationState:
    """
    Pure answer/flag/cursor state for one session. No I/O; every operation
    is synchronous. Validating ids against the cache is the caller's job.
    """

    def __init__(self) -> None:
        self.order: list[str] = []
        self.answers: dict[str, str] = {}
        self.flagged: set[str] = set()
        self.cursor: int = 0
        # Highest index ever displayed; drives the SKIPPED palette status.
        self.furthest: int = 0

    # --- Order ---
    def extend(self, question_ids: list[str]) -> None:
        self.order.extend(question_ids)

    @property
    def current_id(self) -> str | None:
        if 0 <= self.cursor < len(self.order):
            return self.order[self.cursor]
        return None

    # --- Answers ---
    def select_answer(self, question_id: str, option_id: str) -> None:
        self.answers[question_id] = option_id

    def clear_answer(self, question_id: str) -> None:
        self.answers.pop(question_id, None)

    def toggle_flag(self, question_id: str) -> bool:
        """Returns True when the question is flagged after the toggle."""
        if question_id in self.flagged:
            self.flagged.discard(question_id)
            return False
        self.flagged.add(question_id)
        return True

    # --- Movement ---
    def move_to(self, index: int) -> None:
        if not 0 <= index < len(self.order):
            raise NavigationError(
                f"Index {index} outside loaded range 0..{len(self.order) - 1}"
            )
        self.cursor = index
        self.furthest = max(self.furthest, index)

    def palette(self) -> list[PaletteStatus]:
        statuses = []
        for idx, qid in enumerate(self.order):
            if idx == self.cursor:
                statuses.append(PaletteStatus.CURRENT)
            elif qid in self.answers:
                statuses.append(PaletteStatus.ANSWERED)
            elif qid in self.flagged:
                statuses.append(PaletteStatus.FLAGGED)
            elif idx < self.furthest:
                statuses.append(PaletteStatus.SKIPPED)
            else:
                statuses.append(PaletteStatus.UNREACHED)
        return statuses
