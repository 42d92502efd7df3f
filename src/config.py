import os
from decimal import Decimal
from enum import Enum
from typing import Final

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Subject(Enum):
    # Enum Member = ("Subject Name", "Icon")
    QUANT = ("Quantitative Aptitude", "🔢")
    AWARENESS = ("General Awareness", "🌏")
    REASONING = ("General Intelligence", "🧩")
    ENGLISH = ("English", "📖")
    COMPUTER = ("Computer Knowledge", "💻")

    def __init__(self, label: str, icon: str):
        self.label = label
        self.icon = icon

    @classmethod
    def get_icon(cls, label: str) -> str:
        """Returns the icon for a given subject label, or a default."""
        for subject in cls:
            if subject.label == label:
                return subject.icon
        return "📝"  # Default fallback

    @classmethod
    def all_labels(cls) -> list[str]:
        return [s.label for s in cls]


class ExamConfig:
    # --- Storage ---
    DB_PATH = "data/exam.db"

    # --- Curated Bank ---
    BANK_PATH: Final[str] = os.path.join(_PROJECT_ROOT, "data", "question_bank.json")
    BANK_VERSION: Final[str] = "2024.1"

    # --- Delivery ---
    INITIAL_UNBOUNDED_BATCH: Final[int] = 20
    PAGE_SIZE: Final[int] = 10

    # --- Marking ---
    DEFAULT_POSITIVE_MARKS = Decimal("2")
    DEFAULT_NEGATIVE_MARKS = Decimal("0.5")
    ACCURACY_PLACES = 2

    # --- Timing ---
    TICK_SECONDS = 1
    LOW_TIME_WARNING_SECONDS = 300

    # --- Submission Retry ---
    SUBMIT_MAX_ATTEMPTS = 3
    SUBMIT_RETRY_BASE_DELAY = 0.5

    SUBJECTS = Subject.all_labels()

    @staticmethod
    def format_clock(seconds: int) -> str:
        """Renders a second count as MM:SS (minutes are not wrapped at 60)."""
        seconds = max(0, int(seconds))
        return f"{seconds // 60:02d}:{seconds % 60:02d}"
