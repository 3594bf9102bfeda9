import pytest
from rest_framework.exceptions import ValidationError

from attempts.answers import (
    ComplexSelectionAnswer, FillInAnswer, SingleChoiceAnswer,
    can_reveal_explanation, empty_answer, grade_answer, has_answer, parse_answer,
)

COMPLEX_KEY = {"type": "complex_selection", "rows": [{"correct": "Benar"}, {"correct": "Salah"}, {"correct": "Benar"}]}


def test_parse_rejects_mismatched_tag():
    with pytest.raises(ValidationError):
        parse_answer({"type": "fill_in", "value": "x"}, "single_choice")


def test_parse_rejects_non_object_and_bad_rows():
    with pytest.raises(ValidationError):
        parse_answer("B", "single_choice")
    with pytest.raises(ValidationError):
        parse_answer({"type": "complex_selection", "rows": "Benar"}, "complex_selection")
    with pytest.raises(ValidationError):
        parse_answer({"type": "single_choice", "selected": 2}, "single_choice")


def test_parse_builds_variants():
    assert parse_answer({"type": "single_choice", "selected": "C"}, "single_choice") == SingleChoiceAnswer("C")
    assert parse_answer(
        {"type": "complex_selection", "rows": [{"selected": "Benar"}, {"selected": None}]}, "complex_selection"
    ) == ComplexSelectionAnswer(("Benar", None))
    assert parse_answer({"type": "fill_in", "value": " 7 "}, "fill_in") == FillInAnswer(" 7 ")


def test_empty_answer_round_trips_through_json():
    for qtype in ("single_choice", "complex_selection", "fill_in"):
        answer = empty_answer(qtype)
        assert parse_answer(answer.to_json(), qtype) == answer
        assert has_answer(answer) is False


def test_single_choice_grading():
    key = {"type": "single_choice", "correct": "B"}
    assert grade_answer(SingleChoiceAnswer("B"), key).is_correct is True
    assert grade_answer(SingleChoiceAnswer("A"), key).is_correct is False
    assert grade_answer(SingleChoiceAnswer(None), key).is_correct is None


def test_fill_in_grading_is_trimmed_and_case_insensitive_by_default():
    key = {"type": "fill_in", "accepted": ["Jakarta"]}
    assert grade_answer(FillInAnswer("  jakarta "), key).is_correct is True
    assert grade_answer(FillInAnswer("Bandung"), key).is_correct is False
    assert grade_answer(FillInAnswer("   "), key).is_correct is None


def test_fill_in_case_sensitive_and_regex():
    key = {"type": "fill_in", "accepted": ["pH"], "caseSensitive": True}
    assert grade_answer(FillInAnswer("ph"), key).is_correct is False
    assert grade_answer(FillInAnswer("pH"), key).is_correct is True

    regex_key = {"type": "fill_in", "accepted": [], "regex": r"^1/2|0[.,]5$"}
    assert grade_answer(FillInAnswer("0,5"), regex_key).is_correct is True
    assert grade_answer(FillInAnswer("(unclosed"), {"type": "fill_in", "accepted": [], "regex": "("}).is_correct is False


def test_complex_selection_partial_score():
    partial = grade_answer(ComplexSelectionAnswer(("Benar", "Salah", None)), COMPLEX_KEY)
    assert partial.is_correct is False
    assert partial.partial_score == 67

    full = grade_answer(ComplexSelectionAnswer(("Benar", "Salah", "Benar")), COMPLEX_KEY)
    assert full.is_correct is True and full.partial_score == 100

    blank = grade_answer(ComplexSelectionAnswer((None, None, None)), COMPLEX_KEY)
    assert blank.is_correct is None and blank.partial_score is None


def test_reveal_requires_every_row_for_complex_selection():
    assert can_reveal_explanation(None) is False
    assert can_reveal_explanation(ComplexSelectionAnswer(("Benar", None))) is False
    assert can_reveal_explanation(ComplexSelectionAnswer(("Benar", "Salah"))) is True
    assert can_reveal_explanation(SingleChoiceAnswer("A")) is True
    assert can_reveal_explanation(FillInAnswer("")) is False
