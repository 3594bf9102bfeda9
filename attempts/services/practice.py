# attempts/services/practice.py
"""Untimed (or loosely timed) practice over a question set."""
from __future__ import annotations

import logging
import math

from django.db import transaction
from django.utils import timezone

from common.enums import AttemptMode, AttemptStatus, TimeMode
from common.exceptions import Conflict, NotFound, ValidationError
from exams.models import QuestionSet, QuestionSetItem

from ..answers import empty_answer
from ..models import Attempt, AttemptItem
from ..scoring import calculate_results
from .. import store

logger = logging.getLogger(__name__)


def time_limit_for(question_count: int) -> int:
    """Timed practice allows 1.5 minutes per question, rounded up to whole minutes."""
    return max(1, math.ceil(question_count * 1.5)) * 60


def create_session(user, question_set_id, time_mode=TimeMode.RELAXED) -> Attempt:
    if time_mode not in TimeMode.values:
        raise ValidationError({"time_mode": f"Must be one of {', '.join(TimeMode.values)}."})

    qset = QuestionSet.objects.select_related("subtest").filter(pk=store.as_uuid(question_set_id)).first()
    if qset is None:
        raise NotFound("Question set not found.")

    set_items = list(
        QuestionSetItem.objects.select_related("question")
        .filter(question_set=qset)
        .order_by("sort_order", "created_at")
    )
    if not set_items:
        raise ValidationError("Question set has no questions.")

    snapshot = {"questionCount": len(set_items)}
    if time_mode == TimeMode.TIMED:
        snapshot["timeLimitSeconds"] = time_limit_for(len(set_items))

    with transaction.atomic():
        attempt = Attempt.objects.create(
            user=user,
            mode=AttemptMode.PRACTICE,
            status=AttemptStatus.IN_PROGRESS,
            time_mode=time_mode,
            subtest=qset.subtest,
            question_set=qset,
            config_snapshot=snapshot,
        )
        AttemptItem.objects.bulk_create([
            AttemptItem(
                attempt=attempt,
                question=si.question,
                sort_order=index + 1,
                user_answer=empty_answer(si.question.question_type).to_json(),
            )
            for index, si in enumerate(set_items)
        ])

    logger.info("Practice attempt %s created for user %s (%s items)", attempt.id, user.id, len(set_items))
    return store.get_attempt_with_items(attempt.id)


def get_session(user, attempt_id) -> Attempt:
    return store.require_attempt(attempt_id, user, AttemptMode.PRACTICE)


def submit_answer(user, attempt_id, attempt_item_id, answer, time_spent_seconds=None) -> AttemptItem:
    attempt = store.require_attempt(attempt_id, user, AttemptMode.PRACTICE)
    if attempt.status != AttemptStatus.IN_PROGRESS:
        raise Conflict("Attempt is no longer in progress.")
    item = store.get_item(attempt, attempt_item_id)
    return store.record_answer(item, answer, time_spent_seconds)


def complete_session(user, attempt_id, results=None, total_time_seconds=None) -> Attempt:
    """
    Mark a practice attempt completed.

    `results` may be supplied by the caller; otherwise they are computed from
    the stored items. A second call overwrites the earlier results.
    """
    attempt = store.require_attempt(attempt_id, user, AttemptMode.PRACTICE)

    if attempt.status == AttemptStatus.COMPLETED:
        logger.warning("Practice attempt %s completed again; overwriting results", attempt.id)

    if results is None:
        results = calculate_results(
            attempt.items.all(),
            total_time_seconds=total_time_seconds,
            stored_total_time_seconds=attempt.total_time_seconds,
        )

    patch = {
        "status": AttemptStatus.COMPLETED,
        "completed_at": timezone.now(),
        "results": results,
    }
    if total_time_seconds is not None:
        patch["total_time_seconds"] = max(0, int(total_time_seconds))

    updated = store.update_attempt_for_user(attempt.id, user.id, **patch)
    if updated is None:
        raise NotFound("Attempt not found.")
    return updated
