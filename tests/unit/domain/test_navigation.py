import pytest

from src.exam.domain.errors import NavigationError
from src.exam.domain.models import PaletteStatus
from src.exam.domain.navigation import NavigationState


@pytest.fixture
def nav():
    state = NavigationState()
    state.extend(["q1", "q2", "q3", "q4"])
    return state


def test_starts_at_first_question(nav):
    assert nav.cursor == 0
    assert nav.current_id == "q1"


def test_empty_state_has_no_current_question():
    assert NavigationState().current_id is None


def test_select_overwrites_and_clear_removes(nav):
    nav.select_answer("q1", "o1")
    nav.select_answer("q1", "o2")
    assert nav.answers == {"q1": "o2"}

    nav.clear_answer("q1")
    nav.clear_answer("q1")
    assert nav.answers == {}


def test_toggle_flag_reports_new_state(nav):
    assert nav.toggle_flag("q2") is True
    assert "q2" in nav.flagged
    assert nav.toggle_flag("q2") is False
    assert "q2" not in nav.flagged


@pytest.mark.parametrize("index", [-1, 4])
def test_move_outside_loaded_range_raises(nav, index):
    with pytest.raises(NavigationError):
        nav.move_to(index)
    assert nav.cursor == 0


def test_navigation_error_is_an_index_error(nav):
    with pytest.raises(IndexError):
        nav.move_to(99)


def test_palette_reflects_answers_flags_and_skips(nav):
    # Arrange: visit q1..q3, answer q1, flag q2, come back to q3
    nav.select_answer("q1", "o1")
    nav.toggle_flag("q2")
    nav.move_to(2)
    nav.move_to(1)
    nav.move_to(2)

    # Act
    palette = nav.palette()

    # Assert
    assert palette == [
        PaletteStatus.ANSWERED,
        PaletteStatus.FLAGGED,
        PaletteStatus.CURRENT,
        PaletteStatus.UNREACHED,
    ]


def test_palette_marks_passed_over_questions_as_skipped(nav):
    nav.move_to(3)
    nav.move_to(0)
    assert nav.palette() == [
        PaletteStatus.CURRENT,
        PaletteStatus.SKIPPED,
        PaletteStatus.SKIPPED,
        PaletteStatus.SKIPPED,
    ]


def test_answered_wins_over_flagged(nav):
    nav.toggle_flag("q2")
    nav.select_answer("q2", "o1")
    assert nav.palette()[1] == PaletteStatus.ANSWERED
