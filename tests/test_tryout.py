import random

import pytest
from django.urls import reverse

from attempts import timer
from attempts.models import Attempt
from attempts.services import practice, tryout
from common.enums import AttemptStatus
from common.exceptions import Conflict, Forbidden, InvalidMode, MissingBlueprint, ValidationError


@pytest.fixture
def attempt(student, blueprint):
    return tryout.create_session(student, blueprint.id, rng=random.Random(7))


def _items(attempt, section_index=None):
    qs = attempt.items.select_related("question").order_by("sort_order")
    if section_index is not None:
        qs = qs.filter(section_index=section_index)
    return list(qs)


def _answer_for(item, correct=True):
    key = item.question.answer_key
    if key["type"] == "single_choice":
        return {"type": "single_choice", "selected": key["correct"] if correct else "E"}
    return {"type": "fill_in", "value": key["accepted"][0] if correct else "salah"}


def test_create_draws_questions_per_section(attempt):
    items = _items(attempt)
    assert [i.section_index for i in items] == [0, 0, 1]
    assert attempt.config_snapshot == {"questionCount": 3, "currentSectionIndex": 0}
    assert attempt.status == AttemptStatus.IN_PROGRESS


def test_create_fails_when_pool_is_too_small(student, blueprint):
    section = blueprint.ordered_sections()[1]
    section.question_count = 5
    section.save()
    with pytest.raises(Conflict):
        tryout.create_session(student, blueprint.id)


def test_start_section_is_idempotent(student, attempt):
    first = tryout.start_section(student, attempt.id, 0)
    second = tryout.start_section(student, attempt.id, 0)
    assert first["already_started"] is False
    assert second["already_started"] is True
    assert second["section_started_at"] == first["section_started_at"]
    assert first["section"]["duration_seconds"] == 600
    assert "server_time" in first


def test_start_section_rejects_other_indexes(student, attempt):
    with pytest.raises(Conflict):
        tryout.start_section(student, attempt.id, 1)
    with pytest.raises(ValidationError):
        tryout.start_section(student, attempt.id, 9)
    attempt.refresh_from_db()
    assert "sectionStartedAt" not in attempt.config_snapshot


def test_answers_only_in_running_unexpired_section(student, attempt):
    first, second_section_item = _items(attempt, 0)[0], _items(attempt, 1)[0]

    with pytest.raises(Conflict, match="not started"):
        tryout.submit_answer(student, attempt.id, first.id, _answer_for(first))

    started = tryout.start_section(student, attempt.id, 0)
    item = tryout.submit_answer(student, attempt.id, first.id, _answer_for(first), time_spent_seconds=40)
    assert item.is_correct is True

    with pytest.raises(Conflict, match="not active"):
        tryout.submit_answer(student, attempt.id, second_section_item.id, _answer_for(second_section_item))

    started_ms = timer.to_millis(started["section_started_at"])
    with pytest.raises(Conflict, match="expired"):
        tryout.submit_answer(
            student, attempt.id, first.id, _answer_for(first),
            now_fn=lambda: started_ms + 600_000,
        )


def test_end_section_advances_until_last(student, attempt):
    tryout.start_section(student, attempt.id, 0)
    assert tryout.end_section(student, attempt.id, 0) == {"next_section_index": 1, "is_completed": False}

    attempt.refresh_from_db()
    assert attempt.config_snapshot["currentSectionIndex"] == 1
    assert "sectionStartedAt" not in attempt.config_snapshot

    with pytest.raises(Conflict):
        tryout.end_section(student, attempt.id, 0)

    tryout.start_section(student, attempt.id, 1)
    assert tryout.end_section(student, attempt.id, 1) == {"next_section_index": 2, "is_completed": True}
    attempt.refresh_from_db()
    assert attempt.config_snapshot["currentSectionIndex"] == 1


def test_last_section_cannot_be_restarted_after_it_ends(student, attempt):
    tryout.start_section(student, attempt.id, 0)
    tryout.end_section(student, attempt.id, 0)
    tryout.start_section(student, attempt.id, 1)
    assert tryout.end_section(student, attempt.id, 1)["is_completed"] is True

    attempt.refresh_from_db()
    assert attempt.config_snapshot["sectionsCompleted"] is True

    with pytest.raises(Conflict):
        tryout.start_section(student, attempt.id, 1)
    with pytest.raises(Conflict):
        tryout.end_section(student, attempt.id, 1)
    last = _items(attempt, 1)[0]
    with pytest.raises(Conflict):
        tryout.submit_answer(student, attempt.id, last.id, _answer_for(last))

    attempt.refresh_from_db()
    assert "sectionStartedAt" not in attempt.config_snapshot
    assert tryout.calculate_results(student, attempt.id).status == AttemptStatus.COMPLETED


def test_calculate_results_runs_once(student, attempt):
    tryout.start_section(student, attempt.id, 0)
    a, b = _items(attempt, 0)
    tryout.submit_answer(student, attempt.id, a.id, _answer_for(a), time_spent_seconds=400)
    tryout.submit_answer(student, attempt.id, b.id, _answer_for(b, correct=False), time_spent_seconds=300)
    tryout.end_section(student, attempt.id, 0)

    done = tryout.calculate_results(student, attempt.id)
    assert done.status == AttemptStatus.COMPLETED
    results = done.results
    assert results["totalQuestions"] == 3
    assert (results["correctCount"], results["wrongCount"], results["blankCount"]) == (1, 1, 1)
    assert [s["total"] for s in results["perSection"]] == [2, 1]
    assert results["perSection"][0]["timeSeconds"] == 600
    assert results["perSection"][0]["subtestName"] == "Penalaran Umum"
    assert results["totalTimeSeconds"] == 600

    again = tryout.calculate_results(student, attempt.id)
    assert again.results == results
    assert again.completed_at == done.completed_at


def test_completed_tryout_refuses_section_changes(student, attempt):
    tryout.calculate_results(student, attempt.id)
    with pytest.raises(Conflict):
        tryout.start_section(student, attempt.id, 0)


def test_mode_owner_and_blueprint_checks(student, other_student, attempt, question_set):
    with pytest.raises(Forbidden):
        tryout.get_session(other_student, attempt.id)

    practice_attempt = practice.create_session(student, question_set.id)
    with pytest.raises(InvalidMode):
        tryout.start_section(student, practice_attempt.id, 0)

    Attempt.objects.filter(pk=attempt.id).update(blueprint=None)
    with pytest.raises(MissingBlueprint):
        tryout.get_session(student, attempt.id)


# ---------------- HTTP ----------------

def test_tryout_detail_hides_correctness_while_running(student_client, student, attempt):
    tryout.start_section(student, attempt.id, 0)
    item = _items(attempt, 0)[0]
    tryout.submit_answer(student, attempt.id, item.id, _answer_for(item))

    resp = student_client.get(reverse("tryout-detail", args=[attempt.id]))
    assert resp.status_code == 200
    assert len(resp.data["sections"]) == 2
    assert resp.data["server_time"]
    answered = next(i for i in resp.data["items"] if i["id"] == str(item.id))
    assert answered["is_correct"] is None
    assert answered["has_answer"] is True
    assert "answer_key" not in answered["question"]


def test_tryout_endpoints(student_client, blueprint):
    resp = student_client.post(reverse("tryout-create"), {"blueprint_id": str(blueprint.id)}, format="json")
    assert resp.status_code == 201
    attempt_id = resp.data["id"]

    resp = student_client.post(reverse("tryout-start-section", args=[attempt_id, 1]))
    assert resp.status_code == 409

    resp = student_client.post(reverse("tryout-start-section", args=[attempt_id, 0]))
    assert resp.status_code == 200
    assert resp.data["section_index"] == 0

    resp = student_client.post(reverse("tryout-results", args=[attempt_id]))
    assert resp.status_code == 200
    assert resp.data["status"] == "completed"
    assert resp.data["results"]["blankCount"] == 3
