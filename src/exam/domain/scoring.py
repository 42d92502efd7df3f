from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from src.config import ExamConfig
from src.exam.domain.models import MistakeRecord, ScoreReport, SubjectScore
from src.exam.domain.question_cache import SessionQuestionCache


def _accuracy(correct: int, answered: int) -> Decimal:
    if answered == 0:
        return Decimal("0")
    quantum = Decimal(1).scaleb(-ExamConfig.ACCURACY_PLACES)
    value = Decimal(correct) / Decimal(answered) * 100
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def score_session(
    answers: Mapping[str, str],
    cache: SessionQuestionCache,
    order: Sequence[str],
    attempted_at: datetime,
    attempt_id: str = "",
    user_id: str = "",
    test_id: str = "",
) -> ScoreReport:
    """
    Grades a session against the cached questions only.

    Correct answers add the question's positive marks, wrong answers subtract
    its negative marks and produce a MistakeRecord, unanswered questions
    change nothing. Arithmetic is Decimal throughout. Answers for ids that
    are not in `order` are ignored.
    """
    score = Decimal("0")
    correct = incorrect = answered = 0
    mistakes: list[MistakeRecord] = []
    buckets: dict[str, SubjectScore] = defaultdict(lambda: SubjectScore(subject=""))

    for qid in order:
        question = cache.get(qid)
        bucket = buckets[question.subject]
        bucket.subject = question.subject
        bucket.total += 1

        selected = answers.get(qid)
        if selected is None:
            bucket.unanswered += 1
            continue

        answered += 1
        if selected == question.correct_option.id:
            correct += 1
            score += question.positive_marks
            bucket.correct += 1
            bucket.score += question.positive_marks
        else:
            incorrect += 1
            score -= question.negative_marks
            bucket.incorrect += 1
            bucket.score -= question.negative_marks
            mistakes.append(
                MistakeRecord(
                    question_id=qid,
                    selected_option_id=selected,
                    attempt_timestamp=attempted_at,
                    correct_option_id=question.correct_option.id,
                    attempt_id=attempt_id,
                    user_id=user_id,
                    test_id=test_id,
                    question=question,
                )
            )

    return ScoreReport(
        score=score,
        accuracy=_accuracy(correct, answered),
        correct_count=correct,
        incorrect_count=incorrect,
        answered_count=answered,
        unanswered_count=len(order) - answered,
        mistakes=tuple(mistakes),
        subjects=tuple(buckets[s] for s in sorted(buckets)),
    )
