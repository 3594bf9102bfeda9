# question_imports/serializers.py
from rest_framework import serializers

from exams.models import Exam, Subtest
from exams.validators import validate_question_content

from .models import QuestionImport, QuestionImportQuestion


class QuestionImportUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    exam_id = serializers.PrimaryKeyRelatedField(queryset=Exam.objects.all(), required=False, allow_null=True)
    subtest_id = serializers.PrimaryKeyRelatedField(queryset=Subtest.objects.all(), required=False, allow_null=True)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        exam, subtest = attrs.get("exam_id"), attrs.get("subtest_id")
        if exam and subtest and subtest.exam_id != exam.id:
            raise serializers.ValidationError({"subtest_id": "Subtest does not belong to the exam."})
        return attrs


class QuestionImportQuestionSerializer(serializers.ModelSerializer):
    subtest = serializers.PrimaryKeyRelatedField(queryset=Subtest.objects.all(), required=False, allow_null=True)

    class Meta:
        model = QuestionImportQuestion
        fields = [
            "id", "subtest", "question_type", "stimulus", "stem", "options", "complex_options",
            "answer_key", "explanation", "difficulty", "topic_tags", "source_year", "source_info",
            "sort_order",
        ]
        read_only_fields = ["id"]

    def validate(self, attrs):
        # only check content when the edit touches it
        keys = {"question_type", "answer_key", "options", "complex_options"}
        if keys & attrs.keys():
            def pick(name):
                return attrs[name] if name in attrs else getattr(self.instance, name, None)
            validate_question_content(
                pick("question_type"), pick("answer_key"), pick("options"), pick("complex_options"),
            )
        return attrs


class QuestionImportSerializer(serializers.ModelSerializer):
    question_count = serializers.IntegerField(read_only=True, default=None)

    class Meta:
        model = QuestionImport
        fields = [
            "id", "status", "source_filename", "source_size", "error_message",
            "draft_exam", "draft_subtest", "draft_name", "draft_description",
            "saved_question_set", "processed_at", "saved_at", "created_at", "updated_at",
            "question_count",
        ]
        read_only_fields = fields


class QuestionImportDetailSerializer(QuestionImportSerializer):
    questions = QuestionImportQuestionSerializer(many=True, read_only=True)

    class Meta(QuestionImportSerializer.Meta):
        fields = QuestionImportSerializer.Meta.fields + [
            "storage_bucket", "storage_path", "ocr_text", "ocr_metadata",
            "queue_message_id", "queue_deduplication_id", "questions",
        ]
        read_only_fields = fields


class DraftMetadataSerializer(serializers.Serializer):
    draft_exam = serializers.PrimaryKeyRelatedField(queryset=Exam.objects.all(), required=False, allow_null=True)
    draft_subtest = serializers.PrimaryKeyRelatedField(queryset=Subtest.objects.all(), required=False, allow_null=True)
    draft_name = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    draft_description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
