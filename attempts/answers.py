"""
Answer variants and persistence-time grading.

An answer is stored as JSON tagged by `type`:

    {"type": "single_choice", "selected": "B"}
    {"type": "complex_selection", "rows": [{"selected": "Benar"}, {"selected": None}]}
    {"type": "fill_in", "value": "42"}

`parse_answer` turns that JSON into one of the dataclasses below and refuses
a tag that does not match the question type. Every consumer matches on the
dataclass, so a new variant fails loudly at each `case _` instead of being
silently ignored.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from rest_framework.exceptions import ValidationError

from common.enums import QuestionType


@dataclass(frozen=True)
class SingleChoiceAnswer:
    selected: Optional[str] = None

    def to_json(self) -> dict:
        return {"type": QuestionType.SINGLE_CHOICE.value, "selected": self.selected}


@dataclass(frozen=True)
class ComplexSelectionAnswer:
    rows: tuple = field(default_factory=tuple)

    def to_json(self) -> dict:
        return {
            "type": QuestionType.COMPLEX_SELECTION.value,
            "rows": [{"selected": selected} for selected in self.rows],
        }


@dataclass(frozen=True)
class FillInAnswer:
    value: Optional[str] = None

    def to_json(self) -> dict:
        return {"type": QuestionType.FILL_IN.value, "value": self.value}


Answer = SingleChoiceAnswer | ComplexSelectionAnswer | FillInAnswer


@dataclass(frozen=True)
class Grade:
    is_correct: Optional[bool]
    partial_score: Optional[int] = None


def _optional_str(value, field_name):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError({field_name: "Must be a string or null."})
    return value


def parse_answer(data, question_type) -> Answer:
    """Validate raw answer JSON against the question's type."""
    if not isinstance(data, dict):
        raise ValidationError({"answer": "Answer must be an object with a `type` tag."})

    tag = data.get("type")
    if tag != question_type:
        raise ValidationError(
            {"answer": f"Answer type `{tag}` does not match question type `{question_type}`."}
        )

    match tag:
        case QuestionType.SINGLE_CHOICE:
            return SingleChoiceAnswer(selected=_optional_str(data.get("selected"), "selected"))
        case QuestionType.COMPLEX_SELECTION:
            rows = data.get("rows")
            if not isinstance(rows, list):
                raise ValidationError({"rows": "Must be a list."})
            parsed = []
            for row in rows:
                if not isinstance(row, dict):
                    raise ValidationError({"rows": "Each row must be an object."})
                parsed.append(_optional_str(row.get("selected"), "rows.selected"))
            return ComplexSelectionAnswer(rows=tuple(parsed))
        case QuestionType.FILL_IN:
            return FillInAnswer(value=_optional_str(data.get("value"), "value"))
        case _:
            raise ValidationError({"answer": f"Unknown answer type `{tag}`."})


def empty_answer(question_type) -> Answer:
    match question_type:
        case QuestionType.SINGLE_CHOICE:
            return SingleChoiceAnswer()
        case QuestionType.COMPLEX_SELECTION:
            return ComplexSelectionAnswer()
        case QuestionType.FILL_IN:
            return FillInAnswer()
        case _:
            raise ValueError(f"Unknown question type: {question_type}")


def has_answer(answer: Answer | None) -> bool:
    """Whether the palette should show the item as answered."""
    match answer:
        case None:
            return False
        case SingleChoiceAnswer(selected=selected):
            return bool(selected)
        case ComplexSelectionAnswer(rows=rows):
            return any(selected for selected in rows)
        case FillInAnswer(value=value):
            return bool(value and value.strip())
        case _:
            raise TypeError(f"Unsupported answer: {answer!r}")


def can_reveal_explanation(answer: Answer | None) -> bool:
    """Explanations open once the user committed something for the item."""
    match answer:
        case None:
            return False
        case ComplexSelectionAnswer(rows=rows):
            return bool(rows) and all(selected for selected in rows)
        case SingleChoiceAnswer() | FillInAnswer():
            return has_answer(answer)
        case _:
            raise TypeError(f"Unsupported answer: {answer!r}")


def _grade_fill_in(value: str, answer_key: dict) -> bool:
    case_sensitive = bool(answer_key.get("caseSensitive"))
    trimmed = value.strip()
    normalized = trimmed if case_sensitive else trimmed.lower()

    for accepted in answer_key.get("accepted") or []:
        candidate = str(accepted).strip()
        if not case_sensitive:
            candidate = candidate.lower()
        if candidate == normalized:
            return True

    pattern = answer_key.get("regex")
    if pattern:
        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            return re.search(pattern, trimmed, flags) is not None
        except re.error:
            return False
    return False


def grade_answer(answer: Answer, answer_key: dict) -> Grade:
    """
    Grade an answer against the question's answer key.

    Unanswered input grades as None (blank), never as wrong.
    """
    answer_key = answer_key or {}
    match answer:
        case SingleChoiceAnswer(selected=selected):
            if not selected:
                return Grade(is_correct=None)
            return Grade(is_correct=selected == answer_key.get("correct"))

        case FillInAnswer(value=value):
            if not value or not value.strip():
                return Grade(is_correct=None)
            return Grade(is_correct=_grade_fill_in(value, answer_key))

        case ComplexSelectionAnswer(rows=rows):
            key_rows = answer_key.get("rows") or []
            if not any(selected for selected in rows):
                return Grade(is_correct=None)
            total = len(key_rows)
            correct = sum(
                1 for i, key_row in enumerate(key_rows)
                if i < len(rows) and rows[i] and rows[i] == key_row.get("correct")
            )
            all_selected = len(rows) >= total and all(rows[:total])
            partial = round(correct / total * 100) if total else 0
            return Grade(is_correct=all_selected and correct == total, partial_score=partial)

        case _:
            raise TypeError(f"Unsupported answer: {answer!r}")
