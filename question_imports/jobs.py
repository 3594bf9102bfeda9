import logging

from rest_framework import serializers

from .services import pipeline

logger = logging.getLogger(__name__)


class ProcessImportPayload(serializers.Serializer):
    importId = serializers.UUIDField()


def process_import_job(payload):
    ser = ProcessImportPayload(data=payload)
    ser.is_valid(raise_exception=True)
    import_id = ser.validated_data["importId"]
    logger.info("Processing question import %s", import_id)
    pipeline.process(import_id)


def register_jobs(registry):
    registry.register(pipeline.QUESTION_IMPORT_PROCESS, process_import_job)
