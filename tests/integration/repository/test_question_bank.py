import json

from src.config import ExamConfig
from src.exam.adapters.question_bank import load_question_bank
from tests.drivers.factories import make_question


def test_shipped_bank_is_valid():
    bank = load_question_bank(ExamConfig.BANK_PATH)

    assert bank.version == ExamConfig.BANK_VERSION
    assert len(bank.questions) == 20
    assert len({q.id for q in bank.questions}) == 20
    assert {q.subject for q in bank.questions} <= set(ExamConfig.SUBJECTS)


def test_missing_file_gives_empty_bank(tmp_path):
    bank = load_question_bank(str(tmp_path / "nope.json"))
    assert bank.version == "missing"
    assert bank.questions == []


def test_invalid_and_duplicate_entries_are_skipped(tmp_path):
    good = make_question("g1").model_dump(mode="json")
    bad = dict(good, id="b1", options=good["options"][:3])
    path = tmp_path / "bank.json"
    path.write_text(json.dumps({"version": "test", "questions": [good, bad, good, "junk"]}))

    bank = load_question_bank(str(path))

    assert bank.version == "test"
    assert [q.id for q in bank.questions] == ["g1"]
