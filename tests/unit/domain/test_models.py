# ==============================================================================
# ARCHITECTURE: UNIT TEST (CORE LOGIC)
# ------------------------------------------------------------------------------
# GOAL: Verify the domain models reject content that breaks their invariants.
# CONSTRAINTS:
#   1. EXECUTION: FAST (< 50ms per test).
#   2. I/O: FORBIDDEN. No Database, No Network, No File System.
# ==============================================================================
from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.exam.domain.models import (
    Option,
    Question,
    TestDefinition,
    TestMode,
    TimerMode,
)
from tests.drivers.factories import make_question


def _options(correct_ids=("o1",), count=4, ids=None):
    ids = ids or [f"o{i}" for i in range(1, count + 1)]
    return tuple(Option(id=i, text=i.upper(), is_correct=i in correct_ids) for i in ids)


class TestQuestion:
    def test_valid_question_exposes_correct_option(self, sample_question):
        assert sample_question.correct_option.id == "o3"
        assert sample_question.has_option("o4")
        assert not sample_question.has_option("o9")

    def test_defaults_to_standard_marking(self):
        q = Question(id="q", text="t", options=_options())
        assert q.positive_marks == Decimal("2")
        assert q.negative_marks == Decimal("0.5")

    @pytest.mark.parametrize("count", [3, 5])
    def test_rejects_wrong_option_count(self, count):
        with pytest.raises(ValidationError, match="expected 4 options"):
            Question(id="q", text="t", options=_options(count=count))

    @pytest.mark.parametrize("correct", [(), ("o1", "o2")])
    def test_requires_exactly_one_correct_option(self, correct):
        with pytest.raises(ValidationError, match="exactly one option"):
            Question(id="q", text="t", options=_options(correct_ids=correct))

    def test_rejects_duplicate_option_ids(self):
        with pytest.raises(ValidationError, match="unique"):
            Question(id="q", text="t", options=_options(correct_ids=("o2",), ids=["o1", "o1", "o2", "o3"]))

    def test_rejects_negative_marks(self):
        with pytest.raises(ValidationError, match="non-negative"):
            Question(
                id="q", text="t", options=_options(), negative_marks=Decimal("-1")
            )

    def test_question_is_immutable(self, sample_question):
        with pytest.raises(ValidationError):
            sample_question.text = "changed"

    def test_with_id_clones_content_under_new_id(self):
        original = make_question("A", correct="o2")
        clone = original.with_id("A~r1")

        assert clone.id == "A~r1"
        assert clone.text == original.text
        assert clone.correct_option.id == "o2"
        assert original.id == "A"


class TestTestDefinition:
    def test_fixed_test_counts_down(self):
        t = TestDefinition(id="t", duration_seconds=60, question_count=10)
        assert not t.is_unbounded
        assert t.timer_mode == TimerMode.COUNTDOWN

    def test_unbounded_test_counts_up(self):
        t = TestDefinition(id="u", mode=TestMode.UNBOUNDED)
        assert t.is_unbounded
        assert t.timer_mode == TimerMode.COUNT_UP

    def test_fixed_test_requires_duration_and_count(self):
        with pytest.raises(ValidationError):
            TestDefinition(id="t", duration_seconds=0, question_count=10)
        with pytest.raises(ValidationError):
            TestDefinition(id="t", duration_seconds=60, question_count=0)

    def test_unbounded_test_rejects_question_count(self):
        with pytest.raises(ValidationError):
            TestDefinition(id="u", mode=TestMode.UNBOUNDED, question_count=10)
