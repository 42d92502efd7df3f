import json
import random
import uuid
from typing import Annotated, Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from src.config import ExamConfig
from src.exam.domain.errors import MalformedContent, SourceUnavailable
from src.exam.domain.models import (
    OPTIONS_PER_QUESTION,
    BatchContext,
    Difficulty,
    Option,
    Question,
)
from src.exam.domain.ports import IGenerationCapability, ISourcingStrategy
from src.shared.telemetry import Telemetry, measure_time

# --- Generation contract ---
GENERATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "options": {
                        "type": "array",
                        "items": {"type": "string"},
                        "minItems": OPTIONS_PER_QUESTION,
                        "maxItems": OPTIONS_PER_QUESTION,
                    },
                    "correct_index": {
                        "type": "integer",
                        "minimum": 0,
                        "maximum": OPTIONS_PER_QUESTION - 1,
                    },
                    "explanation": {"type": "string"},
                    "subject": {"type": "string"},
                    "difficulty": {"type": "string", "enum": [d.value for d in Difficulty]},
                },
                "required": ["question", "options", "correct_index", "subject"],
            },
        }
    },
    "required": ["questions"],
}


def build_generation_prompt(context: BatchContext, count: int) -> str:
    subjects = ", ".join(context.subjects) or ", ".join(ExamConfig.SUBJECTS)
    return (
        f"Write {count} original multiple-choice questions for competitive "
        f"exam practice (test '{context.test_id}').\n"
        f"Subjects: {subjects}.\n"
        f"Each question must have exactly {OPTIONS_PER_QUESTION} options and "
        f"exactly one correct option, given by its zero-based 'correct_index'.\n"
        "Include a short explanation and a difficulty of EASY, MEDIUM or HARD.\n"
        "Respond with JSON matching the provided schema and nothing else."
    )


class GeneratedQuestion(BaseModel):
    question: str = Field(min_length=1)
    options: list[Annotated[str, Field(min_length=1)]] = Field(
        min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION
    )
    correct_index: int = Field(ge=0, lt=OPTIONS_PER_QUESTION)
    explanation: str | None = None
    subject: str = "General"
    difficulty: Difficulty = Difficulty.MEDIUM

    @field_validator("options")
    @classmethod
    def _distinct_options(cls, options: list[str]) -> list[str]:
        if any(not text.strip() for text in options):
            raise ValueError("option text must not be blank")
        if len({text.strip().casefold() for text in options}) != len(options):
            raise ValueError("option texts must be distinct")
        return options

    def to_question(self, question_id: str) -> Question:
        return Question(
            id=question_id,
            text=self.question,
            options=tuple(
                Option(id=f"o{i + 1}", text=text, is_correct=(i == self.correct_index))
                for i, text in enumerate(self.options)
            ),
            subject=self.subject,
            difficulty=self.difficulty,
            explanation=self.explanation,
        )


# --- Concrete Strategies ---


class GenerativeStrategy(ISourcingStrategy):
    name = "generative"

    def __init__(self, capability: IGenerationCapability | None) -> None:
        self.capability = capability
        self.telemetry = Telemetry("Strategy.Generative")

    @staticmethod
    def _parse_item(raw: Any, question_id: str) -> Question:
        try:
            return GeneratedQuestion.model_validate(raw).to_question(question_id)
        except ValidationError as e:
            raise MalformedContent(str(e)) from e

    @measure_time("generate_batch")
    def supply(self, context: BatchContext, count: int) -> list[Question] | None:
        if self.capability is None:
            return None

        prompt = build_generation_prompt(context, count)
        try:
            payload = self.capability.generate(prompt, GENERATION_SCHEMA)
            if isinstance(payload, (str, bytes)):
                payload = json.loads(payload)
        except Exception as e:
            self.telemetry.log_error("Generation call failed", e, test_id=context.test_id)
            return None

        items = payload.get("questions") if isinstance(payload, dict) else payload
        if not isinstance(items, list) or not items:
            self.telemetry.log_warning("Generation returned no items", test_id=context.test_id)
            return None

        accepted: list[Question] = []
        for raw in items[:count]:
            try:
                accepted.append(self._parse_item(raw, f"gen_{uuid.uuid4().hex[:12]}"))
            except MalformedContent as e:
                self.telemetry.log_warning("Discarded malformed item", reason=str(e)[:120])

        self.telemetry.log_info(
            "Generated Questions", requested=count, accepted=len(accepted)
        )
        return accepted or None


class CuratedStrategy(ISourcingStrategy):
    """
    Draws from the hand-vetted pool without replacement for the lifetime of
    this instance. When the pool runs dry, the batch is padded with clones
    carrying re-minted ids, so ids never repeat within a session.
    """

    name = "curated"

    def __init__(self, pool: list[Question], rng: random.Random | None = None) -> None:
        self.pool = list(pool)
        self.rng = rng or random.Random()
        self._issued: set[str] = set()
        self._clone_seq = 0
        self.telemetry = Telemetry("Strategy.Curated")

    def _candidates(self, subjects: tuple[str, ...]) -> list[Question]:
        if subjects:
            matching = [q for q in self.pool if q.subject in subjects]
            if matching:
                return matching
        return self.pool

    @measure_time("curated_batch")
    def supply(self, context: BatchContext, count: int) -> list[Question] | None:
        candidates = self._candidates(context.subjects)
        if not candidates or count <= 0:
            return None

        fresh = [q for q in candidates if q.id not in self._issued]
        self.rng.shuffle(fresh)
        selection = fresh[:count]
        self._issued.update(q.id for q in selection)

        if len(selection) < count:
            needed = count - len(selection)
            self.telemetry.log_warning(
                "Curated pool exhausted, padding with clones",
                needed=needed,
                pool=len(candidates),
            )
            donors = list(candidates)
            self.rng.shuffle(donors)
            for i in range(needed):
                self._clone_seq += 1
                donor = donors[i % len(donors)]
                selection.append(donor.with_id(f"{donor.id}~r{self._clone_seq}"))

        return selection


# --- The Source ---


class QuestionSource:
    """
    Capability-checked chain of sourcing strategies. Each link fills what the
    previous ones left missing; a link that declines or raises is skipped.
    """

    def __init__(self, strategies: list[ISourcingStrategy]) -> None:
        self.strategies = strategies
        self.telemetry = Telemetry("QuestionSource")

    @measure_time("fetch_batch")
    def fetch_batch(self, context: BatchContext, count: int) -> list[Question]:
        collected: list[Question] = []
        seen: set[str] = set()

        for strategy in self.strategies:
            missing = count - len(collected)
            if missing <= 0:
                break
            try:
                batch = strategy.supply(context, missing)
            except Exception as e:
                self.telemetry.log_error("Strategy failed", e, strategy=strategy.name)
                continue
            if not batch:
                continue
            for question in batch[:missing]:
                if question.id not in seen:
                    seen.add(question.id)
                    collected.append(question)

        if not collected:
            raise SourceUnavailable(f"No questions available for test {context.test_id}")
        if len(collected) < count:
            self.telemetry.log_warning(
                "Short batch", requested=count, delivered=len(collected)
            )
        return collected


def build_question_source(
    bank: list[Question],
    capability: IGenerationCapability | None = None,
    rng: random.Random | None = None,
) -> QuestionSource:
    """One source per session: the curated deck state is per-attempt."""
    return QuestionSource([GenerativeStrategy(capability), CuratedStrategy(bank, rng)])
