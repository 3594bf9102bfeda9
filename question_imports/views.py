# question_imports/views.py
from django.db.models import Count
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.permissions import IsAdmin
from common.exceptions import NotFound
from common.ids import as_uuid
from exams.serializers import QuestionSetSerializer
from exams.views import SmallPage

from .models import QuestionImport
from .serializers import (
    DraftMetadataSerializer,
    QuestionImportDetailSerializer,
    QuestionImportQuestionSerializer,
    QuestionImportSerializer,
    QuestionImportUploadSerializer,
)
from .services import pipeline


class QuestionImportViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Admin console for PDF imports.

    POST   /api/admin/question-imports/                    upload (multipart) + enqueue
    PATCH  /api/admin/question-imports/{id}/               draft metadata
    DELETE /api/admin/question-imports/{id}/               storage objects, then record
    POST   /api/admin/question-imports/{id}/process/       (re)trigger processing
    GET    /api/admin/question-imports/{id}/questions/     draft questions
    PATCH  /api/admin/question-imports/{id}/questions/{q}/ edit one draft question
    POST   /api/admin/question-imports/{id}/finalize/      save to the question bank
    """
    permission_classes = [IsAdmin]
    pagination_class = SmallPage

    def get_queryset(self):
        qs = (
            QuestionImport.objects.select_related("draft_exam", "draft_subtest")
            .annotate(question_count=Count("questions"))
            .order_by("-created_at")
        )
        if self.request.query_params.get("status"):
            qs = qs.filter(status=self.request.query_params["status"])
        return qs

    def get_serializer_class(self):
        if self.action == "retrieve":
            return QuestionImportDetailSerializer
        return QuestionImportSerializer

    def _detail(self, record):
        record = self.get_queryset().prefetch_related("questions").get(pk=record.pk)
        return QuestionImportDetailSerializer(record).data

    def create(self, request):
        ser = QuestionImportUploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        exam, subtest = data.get("exam_id"), data.get("subtest_id")
        record = pipeline.create_import(
            request.user,
            data["file"],
            exam_id=exam.id if exam else None,
            subtest_id=subtest.id if subtest else None,
            name=data.get("name"),
            description=data.get("description"),
        )
        return Response(self._detail(record), status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        ser = DraftMetadataSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record = pipeline.update_draft_metadata(pk, **ser.validated_data)
        return Response(self._detail(record))

    def destroy(self, request, pk=None):
        pipeline.delete_import(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="process")
    def process(self, request, pk=None):
        record = pipeline.trigger_processing(pk)
        return Response(self._detail(record), status=status.HTTP_202_ACCEPTED)

    @action(detail=True, methods=["get"], url_path="questions")
    def questions(self, request, pk=None):
        record = pipeline.get_import(pk)
        qs = record.questions.select_related("subtest").order_by("sort_order")
        return Response(QuestionImportQuestionSerializer(qs, many=True).data)

    @action(detail=True, methods=["patch"], url_path=r"questions/(?P<question_id>[0-9a-f-]+)")
    def update_question(self, request, pk=None, question_id=None):
        record = pipeline.get_import(pk)
        instance = record.questions.filter(pk=as_uuid(question_id)).first()
        if instance is None:
            raise NotFound("Draft question not found.")
        ser = QuestionImportQuestionSerializer(instance, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        question = pipeline.update_draft_question(pk, instance.id, **ser.validated_data)
        return Response(QuestionImportQuestionSerializer(question).data)

    @action(detail=True, methods=["post"], url_path="finalize")
    def finalize(self, request, pk=None):
        qset = pipeline.finalize(pk, request.user)
        return Response(QuestionSetSerializer(qset).data, status=status.HTTP_201_CREATED)
