# exams/serializers.py
from django.db import transaction
from rest_framework import serializers

from .models import Exam, Question, QuestionSet, QuestionSetItem, Subtest
from .validators import validate_question_content


class ExamSerializer(serializers.ModelSerializer):
    class Meta:
        model = Exam
        fields = ["id", "code", "name", "type", "is_active"]


class SubtestSerializer(serializers.ModelSerializer):
    exam_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Subtest
        fields = ["id", "exam_id", "code", "name", "sort_order", "is_active", "is_mandatory"]


# ---------- Question Bank ----------
class QuestionSerializer(serializers.ModelSerializer):
    subtest = serializers.PrimaryKeyRelatedField(queryset=Subtest.objects.all())

    class Meta:
        model = Question
        fields = [
            "id", "subtest", "question_type", "stimulus", "stem", "options", "complex_options",
            "answer_key", "explanation", "difficulty", "topic_tags", "source_year", "source_info",
            "status", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate(self, attrs):
        def pick(name):
            if name in attrs:
                return attrs[name]
            return getattr(self.instance, name, None)

        validate_question_content(
            pick("question_type"), pick("answer_key"), pick("options"), pick("complex_options"),
        )
        return attrs

    def create(self, validated_data):
        request = self.context.get("request")
        if request is not None:
            validated_data.setdefault("created_by", request.user)
        return super().create(validated_data)


class QuestionSetItemSerializer(serializers.ModelSerializer):
    question_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = QuestionSetItem
        fields = ["id", "question_id", "sort_order"]


class QuestionSetSerializer(serializers.ModelSerializer):
    exam = serializers.PrimaryKeyRelatedField(queryset=Exam.objects.all())
    subtest = serializers.PrimaryKeyRelatedField(queryset=Subtest.objects.all(), required=False, allow_null=True)
    items = QuestionSetItemSerializer(many=True, read_only=True)
    question_ids = serializers.ListField(child=serializers.UUIDField(), write_only=True, required=False)

    class Meta:
        model = QuestionSet
        fields = [
            "id", "exam", "subtest", "name", "description", "status",
            "items", "question_ids", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_question_ids(self, ids):
        if len(set(ids)) != len(ids):
            raise serializers.ValidationError("Duplicate questions in set.")
        found = set(Question.objects.filter(id__in=ids).values_list("id", flat=True))
        missing = [str(i) for i in ids if i not in found]
        if missing:
            raise serializers.ValidationError(f"Unknown questions: {', '.join(missing)}")
        return ids

    def _replace_items(self, qset, ids):
        QuestionSetItem.objects.filter(question_set=qset).delete()
        QuestionSetItem.objects.bulk_create([
            QuestionSetItem(question_set=qset, question_id=qid, sort_order=i + 1)
            for i, qid in enumerate(ids)
        ])

    @transaction.atomic
    def create(self, validated_data):
        ids = validated_data.pop("question_ids", [])
        request = self.context.get("request")
        if request is not None:
            validated_data.setdefault("created_by", request.user)
        qset = super().create(validated_data)
        self._replace_items(qset, ids)
        return qset

    @transaction.atomic
    def update(self, instance, validated_data):
        ids = validated_data.pop("question_ids", None)
        qset = super().update(instance, validated_data)
        if ids is not None:
            self._replace_items(qset, ids)
        return qset
