# attempts/store.py
"""
Session record store: reads and writes for attempts and their items.

Controllers go through these helpers so ownership scoping, grading at
persistence time and the conditional section-start write live in one place.
"""
from __future__ import annotations

from typing import Optional

from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone

from common.exceptions import Forbidden, InvalidMode, NotFound
from common.ids import as_uuid

from .answers import grade_answer, parse_answer
from .models import Attempt, AttemptItem


def _items_prefetch():
    return Prefetch(
        "items",
        queryset=AttemptItem.objects.select_related("question", "question__subtest").order_by("sort_order"),
    )


def get_attempt_with_items(attempt_id) -> Optional[Attempt]:
    pk = as_uuid(attempt_id)
    if pk is None:
        return None
    return (
        Attempt.objects
        .select_related("blueprint", "question_set", "subtest")
        .prefetch_related(_items_prefetch())
        .filter(pk=pk)
        .first()
    )


def require_attempt(attempt_id, user, mode) -> Attempt:
    """Load an attempt for `user` or raise NotFound / Forbidden / InvalidMode."""
    attempt = get_attempt_with_items(attempt_id)
    if attempt is None:
        raise NotFound("Attempt not found.")
    if attempt.user_id != user.id:
        raise Forbidden("This attempt belongs to another user.")
    if attempt.mode != mode:
        raise InvalidMode(f"Attempt is not a {mode} session.")
    return attempt


def update_attempt_for_user(attempt_id, user_id, **patch) -> Optional[Attempt]:
    """Apply `patch` only if the attempt exists and is owned by `user_id`."""
    pk = as_uuid(attempt_id)
    if pk is None:
        return None
    patch.setdefault("updated_at", timezone.now())
    updated = Attempt.objects.filter(pk=pk, user_id=user_id).update(**patch)
    if not updated:
        return None
    return Attempt.objects.get(pk=pk)


def get_item(attempt: Attempt, attempt_item_id) -> AttemptItem:
    pk = as_uuid(attempt_item_id)
    item = None
    if pk is not None:
        item = AttemptItem.objects.select_related("question").filter(pk=pk, attempt=attempt).first()
    if item is None:
        raise NotFound("Attempt item not found.")
    return item


def record_answer(item: AttemptItem, raw_answer, time_spent_seconds=None) -> AttemptItem:
    """
    Validate the answer against the item's question type, grade it and save.
    Validation happens before any write.
    """
    question = item.question
    answer = parse_answer(raw_answer, question.question_type)
    grade = grade_answer(answer, question.answer_key)

    item.user_answer = answer.to_json()
    item.is_correct = grade.is_correct
    item.partial_score = grade.partial_score
    item.answered_at = timezone.now()
    fields = ["user_answer", "is_correct", "partial_score", "answered_at", "updated_at"]
    if time_spent_seconds is not None:
        item.time_spent_seconds = max(0, int(time_spent_seconds))
        fields.append("time_spent_seconds")
    item.save(update_fields=fields)
    return item


def claim_section_start(attempt_id, section_index: int, now=None):
    """
    Set `sectionStartedAt` for `section_index` unless it is already set.

    The row is locked for the read-check-write so two concurrent starts
    resolve to one timestamp. Returns (attempt, started_now); the caller
    has already validated ownership, mode and the index.
    """
    now = now or timezone.now()
    with transaction.atomic():
        attempt = Attempt.objects.select_for_update().get(pk=attempt_id)
        snapshot = dict(attempt.config_snapshot or {})
        if snapshot.get("sectionsCompleted") or snapshot.get("currentSectionIndex", 0) != section_index:
            return attempt, False
        if snapshot.get("sectionStartedAt"):
            return attempt, False
        snapshot["sectionStartedAt"] = now.isoformat()
        attempt.config_snapshot = snapshot
        attempt.save(update_fields=["config_snapshot", "updated_at"])
        return attempt, True


def advance_section(attempt_id, section_index: int, section_count: int):
    """Close `section_index` and move the pointer forward. Returns (attempt, next_index, completed)."""
    with transaction.atomic():
        attempt = Attempt.objects.select_for_update().get(pk=attempt_id)
        snapshot = dict(attempt.config_snapshot or {})
        current = snapshot.get("currentSectionIndex", 0)
        if snapshot.get("sectionsCompleted") or current != section_index:
            return attempt, None, None
        next_index = section_index + 1
        completed = next_index >= section_count
        snapshot.pop("sectionStartedAt", None)
        snapshot["currentSectionIndex"] = section_index if completed else next_index
        if completed:
            snapshot["sectionsCompleted"] = True
        attempt.config_snapshot = snapshot
        attempt.save(update_fields=["config_snapshot", "updated_at"])
        return attempt, next_index, completed
