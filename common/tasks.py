# common/tasks.py
from __future__ import annotations

import logging

import requests
from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)

DELIVERY_TIMEOUT_SECONDS = 300


@shared_task(bind=True, acks_late=True)
def deliver_job(self, url, payload, retries=3, label=None):
    """
    POST a job payload to the dispatch endpoint.

    Transport errors and 5xx responses are retried with exponential backoff
    until `retries` is exhausted. A 4xx means the endpoint rejected the job
    itself (bad payload, unknown job, bad token) and is not retried.
    """
    headers = {"Authorization": f"Bearer {settings.JOB_ENDPOINT_TOKEN}"}
    if label:
        headers["X-Job-Label"] = label

    try:
        resp = requests.post(url, json=payload, headers=headers, timeout=DELIVERY_TIMEOUT_SECONDS)
        if 400 <= resp.status_code < 500:
            logger.error("Job %s rejected by %s with %s: %s", self.request.id, url, resp.status_code, resp.text)
            return {"status": resp.status_code}
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning(
            "Job delivery to %s failed (try %s/%s): %s",
            url, self.request.retries + 1, retries + 1, exc,
        )
        raise self.retry(exc=exc, max_retries=retries, countdown=2 ** self.request.retries)

    logger.info("Delivered job %s to %s", self.request.id, url)
    return {"status": resp.status_code}
