# common/jobs.py
"""
Background job plumbing.

Handlers are registered explicitly in a JobRegistry (see core/jobs.py), and
the registry is handed to the dispatch endpoint. JobQueue publishes a payload
for a job key; a Celery worker delivers it back to the dispatch endpoint,
which looks the handler up and runs it.
"""
from __future__ import annotations

import logging
import uuid
from urllib.parse import quote

from django.conf import settings
from django.core.cache import cache

from common.exceptions import QueueDispatchError

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3


class JobRegistry:
    def __init__(self):
        self._handlers = {}

    def register(self, key: str, handler):
        if key in self._handlers:
            raise ValueError(f"Job already registered: {key}")
        self._handlers[key] = handler
        return handler

    def get(self, key: str):
        return self._handlers.get(key)

    def keys(self):
        return sorted(self._handlers)

    def __contains__(self, key):
        return key in self._handlers


def job_endpoint_url(job_key: str) -> str:
    base = getattr(settings, "JOB_ENDPOINT_URL", "")
    if not base:
        raise QueueDispatchError("JOB_ENDPOINT_URL is not configured.")
    return f"{base}?job={quote(job_key, safe='')}"


class JobQueue:
    """
    Celery-backed job publisher.

    dispatch() returns {"messageId": ...}. A deduplication id seen again within
    JOB_DEDUPLICATION_WINDOW_SECONDS returns the first message id without
    publishing a second delivery.
    """

    def __init__(self, task=None, dedup_window_seconds=None):
        if task is None:
            from common.tasks import deliver_job
            task = deliver_job
        self.task = task
        self.dedup_window_seconds = dedup_window_seconds or getattr(
            settings, "JOB_DEDUPLICATION_WINDOW_SECONDS", 600
        )

    def dispatch(self, job_key, payload, deduplication_id=None, retries=DEFAULT_RETRIES, label=None):
        url = job_endpoint_url(job_key)
        message_id = str(uuid.uuid4())

        dedup_key = f"jobs:dedup:{deduplication_id}" if deduplication_id else None
        if dedup_key and not cache.add(dedup_key, message_id, timeout=self.dedup_window_seconds):
            existing = cache.get(dedup_key)
            logger.info("Job %s deduplicated by %s (message %s)", job_key, deduplication_id, existing)
            return {"messageId": existing or message_id}

        try:
            self.task.apply_async(
                kwargs={"url": url, "payload": payload, "retries": retries, "label": label},
                task_id=message_id,
            )
        except Exception as exc:
            if dedup_key:
                cache.delete(dedup_key)
            logger.error("Failed to publish job %s: %s", job_key, exc)
            raise QueueDispatchError(f"Failed to enqueue {job_key}: {exc}") from exc

        logger.info("Published job %s as %s (label=%s)", job_key, message_id, label)
        return {"messageId": message_id}
