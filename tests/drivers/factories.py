from decimal import Decimal

from src.exam.domain.models import Option, Question


def make_question(
    qid: str,
    correct: str = "o1",
    subject: str = "General Intelligence",
    positive: str = "2",
    negative: str = "0.5",
    explanation: str | None = "Because.",
) -> Question:
    """Helper to create a minimal valid Question object."""
    return Question(
        id=qid,
        text=f"Question {qid}",
        options=tuple(
            Option(id=f"o{i}", text=f"Option {i}", is_correct=(f"o{i}" == correct))
            for i in range(1, 5)
        ),
        subject=subject,
        positive_marks=Decimal(positive),
        negative_marks=Decimal(negative),
        explanation=explanation,
    )


def make_bank(size: int, prefix: str = "pool_q") -> list[Question]:
    subjects = ["Quantitative Aptitude", "English", "General Intelligence"]
    return [
        make_question(f"{prefix}{i}", subject=subjects[i % len(subjects)])
        for i in range(1, size + 1)
    ]


def generated_item(text: str = "2 + 2 = ?", correct_index: int = 1, **overrides) -> dict:
    """One item in the shape the generation capability returns."""
    item = {
        "question": text,
        "options": ["3", "4", "5", "6"],
        "correct_index": correct_index,
        "explanation": "Basic addition.",
        "subject": "Quantitative Aptitude",
        "difficulty": "EASY",
    }
    item.update(overrides)
    return item
