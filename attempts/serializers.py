# attempts/serializers.py
from rest_framework import serializers

from common.enums import TimeMode
from exams.models import Question

from .answers import can_reveal_explanation, has_answer, parse_answer
from .models import Attempt, AttemptItem

REVEAL_NEVER = "never"        # tryout still running: no keys, no correctness
REVEAL_ANSWERED = "answered"  # practice: per item once answered
REVEAL_ALWAYS = "always"      # completed attempts (results / review)

# client-computed accuracy may be rounded
ACCURACY_TOLERANCE = 0.5


class QuestionPlaySerializer(serializers.ModelSerializer):
    subtest_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Question
        fields = [
            "id", "subtest_id", "question_type", "stimulus", "stem",
            "options", "complex_options", "difficulty", "topic_tags",
        ]


def _stored_answer(item: AttemptItem):
    # stored answers carry their own tag; the question's type may have been edited since
    if not isinstance(item.user_answer, dict):
        return None
    return parse_answer(item.user_answer, item.user_answer.get("type"))


class AttemptItemSerializer(serializers.ModelSerializer):
    question_id = serializers.UUIDField(read_only=True)
    question = serializers.SerializerMethodField()
    has_answer = serializers.SerializerMethodField()

    class Meta:
        model = AttemptItem
        fields = [
            "id", "question_id", "sort_order", "section_index",
            "user_answer", "is_correct", "partial_score",
            "time_spent_seconds", "answered_at", "has_answer", "question",
        ]

    def _reveal(self, item) -> bool:
        mode = self.context.get("reveal", REVEAL_NEVER)
        if mode == REVEAL_ALWAYS:
            return True
        if mode == REVEAL_ANSWERED:
            return can_reveal_explanation(_stored_answer(item))
        return False

    def get_has_answer(self, item):
        return has_answer(_stored_answer(item))

    def get_question(self, item):
        data = QuestionPlaySerializer(item.question).data
        if self._reveal(item):
            data["answer_key"] = item.question.answer_key
            data["explanation"] = item.question.explanation
        return data

    def to_representation(self, item):
        data = super().to_representation(item)
        if self.context.get("reveal", REVEAL_NEVER) == REVEAL_NEVER:
            data["is_correct"] = None
            data["partial_score"] = None
        return data


class AttemptSerializer(serializers.ModelSerializer):
    blueprint_id = serializers.UUIDField(read_only=True)
    question_set_id = serializers.UUIDField(read_only=True)
    subtest_id = serializers.UUIDField(read_only=True)
    items = serializers.SerializerMethodField()

    class Meta:
        model = Attempt
        fields = [
            "id", "mode", "status", "time_mode",
            "blueprint_id", "question_set_id", "subtest_id",
            "started_at", "completed_at", "total_time_seconds",
            "config_snapshot", "results", "items",
        ]

    def get_items(self, attempt):
        if not self.context.get("include_items", True):
            return None
        return AttemptItemSerializer(attempt.items.all(), many=True, context=self.context).data


# ---------- inputs ----------

class CreatePracticeIn(serializers.Serializer):
    question_set_id = serializers.UUIDField()
    time_mode = serializers.ChoiceField(choices=TimeMode.choices, default=TimeMode.RELAXED)


class CreateTryoutIn(serializers.Serializer):
    blueprint_id = serializers.UUIDField()


class SubmitAnswerIn(serializers.Serializer):
    attempt_item_id = serializers.UUIDField()
    answer = serializers.JSONField()
    time_spent_seconds = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class ScoringResultIn(serializers.Serializer):
    totalQuestions = serializers.IntegerField(min_value=0)
    correctCount = serializers.IntegerField(min_value=0)
    wrongCount = serializers.IntegerField(min_value=0)
    blankCount = serializers.IntegerField(min_value=0)
    accuracy = serializers.FloatField(min_value=0, max_value=100)
    avgTimePerQuestion = serializers.IntegerField(min_value=0)
    totalTimeSeconds = serializers.IntegerField(required=False, min_value=0)

    def validate(self, attrs):
        counted = attrs["correctCount"] + attrs["wrongCount"] + attrs["blankCount"]
        if counted != attrs["totalQuestions"]:
            raise serializers.ValidationError("correct + wrong + blank must equal totalQuestions.")
        total = attrs["totalQuestions"]
        expected = attrs["correctCount"] / total * 100 if total else 0
        if abs(attrs["accuracy"] - expected) > ACCURACY_TOLERANCE:
            raise serializers.ValidationError("accuracy must equal correctCount / totalQuestions * 100.")
        return attrs


class CompletePracticeIn(serializers.Serializer):
    results = ScoringResultIn(required=False, allow_null=True)
    total_time_seconds = serializers.IntegerField(required=False, allow_null=True, min_value=0)
