import json
import os

from pydantic import BaseModel, ValidationError

from src.config import ExamConfig
from src.exam.domain.models import Question
from src.shared.telemetry import Telemetry

_telemetry = Telemetry("QuestionBank")


class QuestionBank(BaseModel):
    """The curated, hand-vetted pool. `version` changes whenever content does."""

    version: str
    questions: list[Question]


def load_question_bank(path: str = ExamConfig.BANK_PATH) -> QuestionBank:
    """
    Reads the bank JSON. Entries that fail Question validation are skipped
    and logged; a missing file yields an empty bank.
    """
    if not os.path.exists(path):
        _telemetry.log_error("Bank file NOT found", FileNotFoundError(path))
        return QuestionBank(version="missing", questions=[])

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    questions: list[Question] = []
    seen: set[str] = set()
    for raw in data.get("questions", []):
        try:
            question = Question.model_validate(raw)
        except ValidationError as e:
            _telemetry.log_error("Skipped invalid bank entry", e, entry=raw.get("id") if isinstance(raw, dict) else None)
            continue
        if question.id in seen:
            _telemetry.log_warning("Skipped duplicate bank id", entry=question.id)
            continue
        seen.add(question.id)
        questions.append(question)

    version = str(data.get("version", ExamConfig.BANK_VERSION))
    _telemetry.log_info("Loaded question bank", version=version, count=len(questions))
    return QuestionBank(version=version, questions=questions)
