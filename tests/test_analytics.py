from datetime import timedelta

from django.utils import timezone

from attempts.models import Attempt, AttemptItem
from attempts.services import analytics
from common.enums import AttemptMode, AttemptStatus


def _attempt(user, mode=AttemptMode.PRACTICE, **kwargs):
    return Attempt.objects.create(user=user, mode=mode, **kwargs)


def _items(attempt, question, outcomes, spent=10):
    now = timezone.now()
    AttemptItem.objects.bulk_create([
        AttemptItem(attempt=attempt, question=question, is_correct=o, time_spent_seconds=spent,
                    answered_at=now, sort_order=i + 1)
        for i, o in enumerate(outcomes)
    ])


def test_new_user_gets_starter_recommendations(student):
    data = analytics.user_analytics(student)
    assert data["summary"]["total_questions"] == 0
    assert [r["id"] for r in data["recommendations"]] == ["start-practice", "start-tryout"]
    assert len(data["trends"]["last_7_days"]) == 7
    assert len(data["trends"]["last_30_days"]) == 30


def test_summary_and_weak_subtest(student, subtests, make_question):
    q = make_question(subtests["PU"])
    attempt = _attempt(student)
    _items(attempt, q, [True] * 3 + [False] * 7 + [None] * 2)

    summary = analytics.summary_stats(student)
    assert summary["total_questions"] == 12
    assert (summary["correct_count"], summary["wrong_count"], summary["blank_count"]) == (3, 7, 2)
    assert summary["total_time_seconds"] == 120
    assert (summary["practice_attempts"], summary["tryout_attempts"], summary["completed_attempts"]) == (1, 0, 0)

    [perf] = analytics.subtest_performance(student)
    assert perf["subtest_name"] == "Penalaran Umum"
    assert perf["accuracy"] == 25

    recs = analytics.build_recommendations(summary, [perf], analytics.recent_attempts(student))
    assert recs[0]["id"] == f"focus-{subtests['PU'].id}"


def test_low_tryout_score_suggests_review(student, subtests, make_question):
    q = make_question(subtests["PK"])
    tryout_attempt = _attempt(
        student, AttemptMode.TRYOUT, status=AttemptStatus.COMPLETED,
        completed_at=timezone.now(), results={"totalQuestions": 2},
    )
    _items(tryout_attempt, q, [True, False])

    recent = analytics.recent_attempts(student)
    assert recent[0]["accuracy"] == 50
    assert recent[0]["label"] == "Tryout session"

    recs = analytics.build_recommendations(analytics.summary_stats(student), [], recent)
    assert recs[0]["id"] == "review-last-tryout"
    assert recs[0]["action"]["params"]["attemptId"] == str(tryout_attempt.id)


def test_trend_buckets_by_day(student, subtests, make_question):
    q = make_question(subtests["PU"])
    attempt = _attempt(student)
    _items(attempt, q, [True, False])
    AttemptItem.objects.filter(attempt=attempt, is_correct=False).update(
        answered_at=timezone.now() - timedelta(days=2)
    )

    points = analytics.performance_trend(student, 7)
    assert points[-1]["total_questions"] == 1 and points[-1]["accuracy"] == 100
    assert points[-3]["total_questions"] == 1 and points[-3]["accuracy"] == 0
    assert analytics.performance_trend(student, 0) == []
