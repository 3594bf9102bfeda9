# common/views.py
import hmac
import json
import logging

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import BasePermission
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)


class HasJobToken(BasePermission):
    """Queue workers present JOB_ENDPOINT_TOKEN as a bearer token."""

    def has_permission(self, request, view):
        expected = getattr(settings, "JOB_ENDPOINT_TOKEN", "")
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not expected or not header.startswith("Bearer "):
            return False
        return hmac.compare_digest(header[len("Bearer "):].encode(), expected.encode())


class JobDispatchView(APIView):
    """
    POST /api/jobs/?job=<key>

    Runs the registered handler with the JSON body. The registry is passed
    in through as_view(registry=...).
    """
    registry = None
    authentication_classes = []
    permission_classes = [HasJobToken]

    def post(self, request):
        job_key = request.query_params.get("job")
        if not job_key:
            return Response({"error": "Missing job"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            payload = json.loads(request.body or b"")
        except ValueError:
            return Response({"error": "Invalid JSON"}, status=status.HTTP_400_BAD_REQUEST)

        handler = self.registry.get(job_key) if self.registry is not None else None
        if handler is None:
            return Response({"error": f"Unknown job: {job_key}"}, status=status.HTTP_404_NOT_FOUND)

        logger.info("Running job %s", job_key)
        handler(payload)
        return Response({"ok": True})
