import json
from typing import Any

from src.config import Subject
from src.exam.domain.models import MistakeRecord, Question
from src.exam.domain.ports import IAttemptRepository, IGenerationCapability
from src.shared.telemetry import Telemetry, measure_time

EXPLANATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"explanation": {"type": "string"}},
    "required": ["explanation"],
}


class MistakeReviewService:
    """
    Read side of the mistake workflow. Works only from persisted records;
    the question content comes from the snapshot stored with each mistake.
    """

    def __init__(
        self, repo: IAttemptRepository, capability: IGenerationCapability | None = None
    ) -> None:
        self.repo = repo
        self.capability = capability
        self._explanations: dict[str, str] = {}
        self.telemetry = Telemetry("MistakeReview")

    def list_mistakes(self, user_id: str) -> list[MistakeRecord]:
        return self.repo.load_mistakes(user_id)

    @staticmethod
    def offline_explanation(mistake: MistakeRecord) -> str:
        question = mistake.question
        if question is None:
            return "The question for this mistake is no longer available."

        correct = question.correct_option
        chosen = next(
            (o.text for o in question.options if o.id == mistake.selected_option_id),
            "Skipped",
        )
        lines = [
            f"**Subject**: {Subject.get_icon(question.subject)} {question.subject}",
            f"**Your answer**: {chosen}",
            f"**Correct answer**: {correct.text}",
        ]
        if question.explanation:
            lines.append(f"**Why**: {question.explanation}")
        return "\n".join(lines)

    @staticmethod
    def _build_prompt(mistake: MistakeRecord, question: Question) -> str:
        options = ", ".join(
            f"{o.text}{' (Correct)' if o.is_correct else ''}" for o in question.options
        )
        chosen = next(
            (o.text for o in question.options if o.id == mistake.selected_option_id),
            "Skipped",
        )
        return (
            "You are an exam coach for competitive government exams.\n"
            f"Subject: {question.subject}\n"
            f'Question: "{question.text}"\n'
            f"Options: {options}\n"
            f'Student\'s answer: "{chosen}" (wrong)\n'
            "Explain the concept, the step-by-step solution, and one quick "
            "exam shortcut, in Markdown."
        )

    @measure_time("explain_mistake")
    def explain(self, mistake: MistakeRecord) -> str:
        key = f"{mistake.question_id}:{mistake.selected_option_id}"
        if key in self._explanations:
            return self._explanations[key]

        if self.capability is None or mistake.question is None:
            return self.offline_explanation(mistake)

        try:
            payload = self.capability.generate(self._build_prompt(mistake, mistake.question), EXPLANATION_SCHEMA)
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            if isinstance(payload, str):
                try:
                    payload = json.loads(payload)
                except json.JSONDecodeError:
                    payload = {"explanation": payload}
            text = payload.get("explanation") if isinstance(payload, dict) else None
        except Exception as e:
            self.telemetry.log_error("Explanation generation failed", e, question_id=mistake.question_id)
            return self.offline_explanation(mistake)

        if not text:
            return self.offline_explanation(mistake)
        self._explanations[key] = text
        return text
