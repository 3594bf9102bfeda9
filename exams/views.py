from django.db.models import Count
from rest_framework import viewsets
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsAdminOrReadOnly

from .filters import QuestionFilter, QuestionSetFilter
from .models import Exam, Question, QuestionSet, Subtest
from .serializers import ExamSerializer, QuestionSerializer, QuestionSetSerializer, SubtestSerializer
from .services import catalog


class SmallPage(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200


# ---------------- catalog (students) ----------------

class TryoutCatalogView(APIView):
    """GET /api/tryout/catalog/: active exams with their active blueprints."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(catalog.tryout_catalog())


class BlueprintDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, blueprint_id):
        return Response(catalog.blueprint_detail(blueprint_id))


class PracticeCatalogView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(catalog.practice_catalog())


# ---------------- admin question bank ----------------

class ExamViewSet(viewsets.ModelViewSet):
    queryset = Exam.objects.all()
    serializer_class = ExamSerializer
    permission_classes = [IsAdminOrReadOnly]


class SubtestViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SubtestSerializer
    permission_classes = [IsAuthenticated]
    queryset = Subtest.objects.select_related("exam")
    filterset_fields = ["exam", "is_active"]


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.select_related("subtest").order_by("-created_at")
    serializer_class = QuestionSerializer
    permission_classes = [IsAdmin]
    pagination_class = SmallPage
    filterset_class = QuestionFilter


class QuestionSetViewSet(viewsets.ModelViewSet):
    queryset = (
        QuestionSet.objects.select_related("exam", "subtest")
        .prefetch_related("items")
        .annotate(question_count=Count("items"))
        .order_by("-created_at")
    )
    serializer_class = QuestionSetSerializer
    permission_classes = [IsAdmin]
    pagination_class = SmallPage
    filterset_class = QuestionSetFilter
