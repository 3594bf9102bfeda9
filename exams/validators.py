from rest_framework import serializers

from common.enums import QuestionType

OPTION_LETTERS = "ABCDE"


def validate_question_content(question_type, answer_key, options=None, complex_options=None):
    """Check that the answer key and option fields fit the question type."""
    if not isinstance(answer_key, dict) or answer_key.get("type") != question_type:
        raise serializers.ValidationError({"answer_key": "answer_key.type must match question_type."})

    if question_type == QuestionType.SINGLE_CHOICE:
        if not options or len(options) < 2:
            raise serializers.ValidationError({"options": "At least 2 options are required."})
        if len(options) > len(OPTION_LETTERS):
            raise serializers.ValidationError({"options": "At most 5 options are allowed."})
        correct = answer_key.get("correct")
        if correct not in OPTION_LETTERS[:len(options)]:
            raise serializers.ValidationError({"answer_key": "correct must be an option letter."})

    elif question_type == QuestionType.COMPLEX_SELECTION:
        if not complex_options:
            raise serializers.ValidationError({"complex_options": "At least one statement is required."})
        rows = answer_key.get("rows") or []
        if len(rows) != len(complex_options):
            raise serializers.ValidationError({"answer_key": "rows must match the number of statements."})
        for row, statement in zip(rows, complex_options):
            if row.get("correct") not in (statement.get("choices") or []):
                raise serializers.ValidationError({"answer_key": "Each row answer must be one of its choices."})

    elif question_type == QuestionType.FILL_IN:
        accepted = [a for a in (answer_key.get("accepted") or []) if str(a).strip()]
        if not accepted and not answer_key.get("regex"):
            raise serializers.ValidationError({"answer_key": "Provide accepted answers or a regex."})

    else:
        raise serializers.ValidationError({"question_type": "Unknown question type."})
