# attempts/views.py
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.enums import AttemptStatus
from common.log import log_server_error
from exams.services.catalog import serialize_section

from .serializers import (
    REVEAL_ALWAYS, REVEAL_ANSWERED, REVEAL_NEVER,
    AttemptItemSerializer, AttemptSerializer, CompletePracticeIn, CreatePracticeIn,
    CreateTryoutIn, SubmitAnswerIn,
)
from .services import analytics, practice, tryout


class SessionAPIView(APIView):
    """Authenticated session endpoint; unexpected failures are logged with context."""
    permission_classes = [IsAuthenticated]
    log_scope = "session"

    def handle_exception(self, exc):
        if not isinstance(exc, APIException):
            log_server_error(
                self.log_scope, exc,
                user_id=getattr(self.request.user, "id", None),
                attempt_id=self.kwargs.get("attempt_id"),
            )
        return super().handle_exception(exc)


# ---------------- practice ----------------

class PracticeSessionCreateView(SessionAPIView):
    """
    POST /api/practice/sessions/
    Body: { "question_set_id": "<uuid>", "time_mode": "relaxed" | "timed" }
    """
    log_scope = "practice:create"

    def post(self, request):
        ser = CreatePracticeIn(data=request.data)
        ser.is_valid(raise_exception=True)
        attempt = practice.create_session(request.user, **ser.validated_data)
        data = AttemptSerializer(attempt, context={"reveal": REVEAL_ANSWERED}).data
        return Response(data, status=status.HTTP_201_CREATED)


class PracticeSessionDetailView(SessionAPIView):
    log_scope = "practice:get"

    def get(self, request, attempt_id):
        attempt = practice.get_session(request.user, attempt_id)
        reveal = REVEAL_ALWAYS if attempt.status == AttemptStatus.COMPLETED else REVEAL_ANSWERED
        return Response(AttemptSerializer(attempt, context={"reveal": reveal}).data)


class PracticeAnswerView(SessionAPIView):
    """
    POST /api/practice/sessions/<attempt_id>/answers/
    Body: { "attempt_item_id": "<uuid>", "answer": {...}, "time_spent_seconds": 12 }
    Returns the updated item only.
    """
    log_scope = "practice:submit-answer"

    def post(self, request, attempt_id):
        ser = SubmitAnswerIn(data=request.data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        item = practice.submit_answer(
            request.user, attempt_id, v["attempt_item_id"], v["answer"], v.get("time_spent_seconds"),
        )
        return Response(AttemptItemSerializer(item, context={"reveal": REVEAL_ANSWERED}).data)


class PracticeCompleteView(SessionAPIView):
    log_scope = "practice:complete"

    def post(self, request, attempt_id):
        ser = CompletePracticeIn(data=request.data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        attempt = practice.complete_session(
            request.user, attempt_id, v.get("results"), v.get("total_time_seconds"),
        )
        data = AttemptSerializer(attempt, context={"reveal": REVEAL_ALWAYS, "include_items": False}).data
        return Response(data)


# ---------------- tryout ----------------

class TryoutSessionCreateView(SessionAPIView):
    """
    POST /api/tryout/sessions/
    Body: { "blueprint_id": "<uuid>" }
    """
    log_scope = "tryout:create"

    def post(self, request):
        ser = CreateTryoutIn(data=request.data)
        ser.is_valid(raise_exception=True)
        attempt = tryout.create_session(request.user, ser.validated_data["blueprint_id"])
        data = AttemptSerializer(attempt, context={"reveal": REVEAL_NEVER, "include_items": False}).data
        return Response(data, status=status.HTTP_201_CREATED)


class TryoutSessionDetailView(SessionAPIView):
    log_scope = "tryout:get"

    def get(self, request, attempt_id):
        attempt, sections, server_time = tryout.get_session(request.user, attempt_id)
        reveal = REVEAL_ALWAYS if attempt.status == AttemptStatus.COMPLETED else REVEAL_NEVER
        data = AttemptSerializer(attempt, context={"reveal": reveal}).data
        data["sections"] = [serialize_section(s, i) for i, s in enumerate(sections)]
        data["server_time"] = server_time
        return Response(data)


class TryoutStartSectionView(SessionAPIView):
    """
    POST /api/tryout/sessions/<attempt_id>/sections/<index>/start/
    Safe to retry: a section that is already running returns its original start.
    """
    log_scope = "tryout:start-section"

    def post(self, request, attempt_id, section_index):
        return Response(tryout.start_section(request.user, attempt_id, section_index))


class TryoutEndSectionView(SessionAPIView):
    log_scope = "tryout:end-section"

    def post(self, request, attempt_id, section_index):
        return Response(tryout.end_section(request.user, attempt_id, section_index))


class TryoutAnswerView(SessionAPIView):
    log_scope = "tryout:submit-answer"

    def post(self, request, attempt_id):
        ser = SubmitAnswerIn(data=request.data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        item = tryout.submit_answer(
            request.user, attempt_id, v["attempt_item_id"], v["answer"], v.get("time_spent_seconds"),
        )
        return Response(AttemptItemSerializer(item, context={"reveal": REVEAL_NEVER}).data)


class TryoutResultsView(SessionAPIView):
    """POST finalizes (idempotent) and returns the stored results."""
    log_scope = "tryout:calculate-results"

    def post(self, request, attempt_id):
        attempt = tryout.calculate_results(request.user, attempt_id)
        return Response({
            "attempt_id": str(attempt.id),
            "status": attempt.status,
            "completed_at": attempt.completed_at,
            "total_time_seconds": attempt.total_time_seconds,
            "results": attempt.results,
        })


# ---------------- analytics ----------------

class MyAnalyticsView(SessionAPIView):
    log_scope = "analytics"

    def get(self, request):
        return Response(analytics.user_analytics(request.user))
