# attempts/services/tryout.py
"""
Timed tryout over a blueprint's ordered sections.

Section state lives in `Attempt.config_snapshot`:
  currentSectionIndex  which section is active (only ever moves forward)
  sectionStartedAt     server timestamp when the active section started;
                       absent while the section is in its countdown

start_section -> (answers) -> end_section, repeated per section; after the
last section the attempt is finalized by calculate_results.
"""
from __future__ import annotations

import logging
import random

from django.db import transaction
from django.utils import timezone

from common.enums import AttemptMode, AttemptStatus, ContentStatus
from common.exceptions import Conflict, MissingBlueprint, NotFound, ValidationError
from exams.models import Blueprint, Question
from exams.services.catalog import serialize_section

from ..answers import empty_answer
from ..models import Attempt, AttemptItem
from ..scoring import calculate_results as score_items, summarize_section
from .. import store, timer

logger = logging.getLogger(__name__)


def _sections_for(attempt: Attempt):
    blueprint = attempt.blueprint
    if blueprint is None:
        raise MissingBlueprint()
    sections = blueprint.ordered_sections()
    if not sections:
        raise MissingBlueprint("Blueprint has no sections.")
    return sections


def _require_in_progress(attempt: Attempt):
    if attempt.status != AttemptStatus.IN_PROGRESS:
        raise Conflict("Attempt is no longer in progress.")
    if attempt.sections_completed:
        raise Conflict("All sections are finished; calculate results to complete the tryout.")


def _check_index(sections, section_index) -> int:
    try:
        section_index = int(section_index)
    except (TypeError, ValueError):
        raise ValidationError({"section_index": "Must be an integer."})
    if section_index < 0 or section_index >= len(sections):
        raise ValidationError({"section_index": "Invalid section index."})
    return section_index


def server_now_iso() -> str:
    return timezone.now().isoformat()


# ---------------- create / read ----------------

def create_session(user, blueprint_id, rng=None) -> Attempt:
    """Draw `question_count` random published questions per section."""
    rng = rng or random.SystemRandom()
    blueprint = Blueprint.objects.filter(pk=store.as_uuid(blueprint_id), is_active=True).first()
    if blueprint is None:
        raise NotFound("Blueprint not found.")
    sections = blueprint.ordered_sections()
    if not sections:
        raise Conflict("Blueprint has no sections.")

    picked = []
    for index, section in enumerate(sections):
        pool = list(
            Question.objects.filter(subtest_id=section.subtest_id, status=ContentStatus.PUBLISHED)
            .only("id", "question_type")
        )
        if len(pool) < section.question_count:
            raise Conflict(
                f"Not enough published questions for section {section.display_name} "
                f"({len(pool)}/{section.question_count})."
            )
        picked.extend((index, q) for q in rng.sample(pool, section.question_count))

    with transaction.atomic():
        attempt = Attempt.objects.create(
            user=user,
            mode=AttemptMode.TRYOUT,
            status=AttemptStatus.IN_PROGRESS,
            blueprint=blueprint,
            config_snapshot={"questionCount": len(picked), "currentSectionIndex": 0},
        )
        AttemptItem.objects.bulk_create([
            AttemptItem(
                attempt=attempt,
                question=q,
                sort_order=order + 1,
                section_index=section_index,
                user_answer=empty_answer(q.question_type).to_json(),
            )
            for order, (section_index, q) in enumerate(picked)
        ])

    logger.info("Tryout attempt %s created for user %s on blueprint %s", attempt.id, user.id, blueprint.id)
    return store.get_attempt_with_items(attempt.id)


def get_session(user, attempt_id):
    """Returns (attempt, sections, server_time)."""
    attempt = store.require_attempt(attempt_id, user, AttemptMode.TRYOUT)
    sections = _sections_for(attempt)
    return attempt, sections, server_now_iso()


# ---------------- section transitions ----------------

def start_section(user, attempt_id, section_index) -> dict:
    """
    Start the timer for the current section.

    Only the current section may be started. Starting a section that already
    has a start timestamp returns that timestamp unchanged.
    """
    attempt = store.require_attempt(attempt_id, user, AttemptMode.TRYOUT)
    _require_in_progress(attempt)
    sections = _sections_for(attempt)
    section_index = _check_index(sections, section_index)

    if attempt.current_section_index != section_index:
        raise Conflict(
            f"Section {section_index} is not the current section ({attempt.current_section_index})."
        )

    attempt, started_now = store.claim_section_start(attempt.id, section_index)
    if attempt.sections_completed or attempt.current_section_index != section_index:
        raise Conflict("Section has already ended.")
    if not started_now:
        logger.info("Section %s of attempt %s already started", section_index, attempt.id)

    return {
        "section_index": section_index,
        "section_started_at": attempt.section_started_at,
        "server_time": server_now_iso(),
        "section": serialize_section(sections[section_index], section_index),
        "already_started": not started_now,
    }


def end_section(user, attempt_id, section_index) -> dict:
    attempt = store.require_attempt(attempt_id, user, AttemptMode.TRYOUT)
    _require_in_progress(attempt)
    sections = _sections_for(attempt)
    section_index = _check_index(sections, section_index)

    if attempt.current_section_index != section_index:
        raise Conflict("Section index mismatch.")

    attempt, next_index, completed = store.advance_section(attempt.id, section_index, len(sections))
    if next_index is None:
        raise Conflict("Section index mismatch.")

    return {"next_section_index": next_index, "is_completed": completed}


def submit_answer(user, attempt_id, attempt_item_id, answer, time_spent_seconds=None, now_fn=timer.wall_clock_ms):
    """Answers are accepted only for the running, unexpired current section."""
    attempt = store.require_attempt(attempt_id, user, AttemptMode.TRYOUT)
    _require_in_progress(attempt)
    item = store.get_item(attempt, attempt_item_id)
    sections = _sections_for(attempt)

    if item.section_index is None or item.section_index >= len(sections):
        raise Conflict("Item is not part of a section.")
    if attempt.current_section_index != item.section_index:
        raise Conflict("Section is not active.")
    started_at = attempt.section_started_at
    if not started_at:
        raise Conflict("Section has not started.")

    duration = sections[item.section_index].duration_seconds
    if timer.elapsed_seconds(0, started_at, now_fn) >= duration:
        raise Conflict("Section time expired.")

    return store.record_answer(item, answer, time_spent_seconds)


# ---------------- finalize ----------------

def _build_results(attempt: Attempt, sections) -> dict:
    items = list(attempt.items.all())
    per_section = []
    total_time = 0
    for index, section in enumerate(sections):
        section_items = [item for item in items if item.section_index == index]
        summary = summarize_section(section_items, section.duration_seconds)
        total_time += summary["timeSeconds"]
        per_section.append({
            "subtestId": str(section.subtest_id),
            "subtestName": section.subtest.name,
            **summary,
        })

    results = score_items(items, total_time_seconds=total_time)
    results["perSection"] = per_section
    return results


def calculate_results(user, attempt_id) -> Attempt:
    """
    Score and complete the attempt exactly once.

    Re-invocation on a completed attempt returns it untouched.
    """
    attempt = store.require_attempt(attempt_id, user, AttemptMode.TRYOUT)
    if attempt.status == AttemptStatus.COMPLETED:
        return attempt

    sections = _sections_for(attempt)
    results = _build_results(attempt, sections)

    with transaction.atomic():
        locked = Attempt.objects.select_for_update().get(pk=attempt.pk)
        if locked.status == AttemptStatus.COMPLETED:
            return locked
        snapshot = dict(locked.config_snapshot or {})
        snapshot.pop("sectionStartedAt", None)
        locked.status = AttemptStatus.COMPLETED
        locked.completed_at = timezone.now()
        locked.results = results
        locked.total_time_seconds = results["totalTimeSeconds"]
        locked.config_snapshot = snapshot
        locked.save(update_fields=[
            "status", "completed_at", "results", "total_time_seconds", "config_snapshot", "updated_at",
        ])

    logger.info("Tryout attempt %s completed: %s/%s correct",
                attempt.id, results["correctCount"], results["totalQuestions"])
    return locked
