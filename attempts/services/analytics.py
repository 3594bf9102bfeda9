# attempts/services/analytics.py
from __future__ import annotations

from datetime import timedelta

from django.db.models import Avg, Count, IntegerField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from common.enums import AttemptMode, AttemptStatus

from ..models import Attempt, AttemptItem

MIN_SAMPLE_SIZE = 10
LOW_ACCURACY_THRESHOLD = 65
TRYOUT_REVIEW_THRESHOLD = 80
MAX_RECOMMENDATIONS = 3


def _accuracy(correct, total):
    return (correct / total * 100) if total else 0


def summary_stats(user) -> dict:
    row = AttemptItem.objects.filter(attempt__user=user).aggregate(
        total=Count("id"),
        correct=Count("id", filter=Q(is_correct=True)),
        wrong=Count("id", filter=Q(is_correct=False)),
        blank=Count("id", filter=Q(is_correct__isnull=True)),
        time_sum=Coalesce(Sum("time_spent_seconds"), Value(0), output_field=IntegerField()),
        time_avg=Avg(Coalesce("time_spent_seconds", Value(0), output_field=IntegerField())),
    )
    attempts = Attempt.objects.filter(user=user).aggregate(
        completed=Count("id", filter=Q(status=AttemptStatus.COMPLETED)),
        practice=Count("id", filter=Q(mode=AttemptMode.PRACTICE)),
        tryout=Count("id", filter=Q(mode=AttemptMode.TRYOUT)),
    )
    total = row["total"] or 0
    return {
        "completed_attempts": attempts["completed"],
        "practice_attempts": attempts["practice"],
        "tryout_attempts": attempts["tryout"],
        "total_questions": total,
        "correct_count": row["correct"] or 0,
        "wrong_count": row["wrong"] or 0,
        "blank_count": row["blank"] or 0,
        "accuracy": _accuracy(row["correct"] or 0, total),
        "avg_time_seconds": float(row["time_avg"] or 0),
        "total_time_seconds": int(row["time_sum"] or 0),
    }


def subtest_performance(user) -> list[dict]:
    rows = (
        AttemptItem.objects.filter(attempt__user=user)
        .values("question__subtest_id", "question__subtest__name", "question__subtest__sort_order")
        .annotate(
            total=Count("id"),
            correct=Count("id", filter=Q(is_correct=True)),
            time_avg=Avg(Coalesce("time_spent_seconds", Value(0), output_field=IntegerField())),
        )
        .order_by("question__subtest__sort_order", "question__subtest__name")
    )
    return [
        {
            "subtest_id": str(r["question__subtest_id"]),
            "subtest_name": r["question__subtest__name"],
            "total_questions": r["total"],
            "correct_count": r["correct"],
            "accuracy": _accuracy(r["correct"], r["total"]),
            "avg_time_seconds": float(r["time_avg"] or 0),
        }
        for r in rows
    ]


def performance_trend(user, days: int, now=None) -> list[dict]:
    """One point per UTC day, oldest first; days without activity are zeros."""
    if days <= 0:
        return []
    now = now or timezone.now()
    start = (now - timedelta(days=days - 1)).date()

    buckets = {}
    items = AttemptItem.objects.filter(attempt__user=user).filter(
        Q(answered_at__date__gte=start) | Q(created_at__date__gte=start)
    ).values_list("answered_at", "created_at", "is_correct", "time_spent_seconds")
    for answered_at, created_at, is_correct, spent in items:
        key = (answered_at or created_at).date().isoformat()
        b = buckets.setdefault(key, {"total": 0, "correct": 0, "time": 0})
        b["total"] += 1
        b["correct"] += 1 if is_correct is True else 0
        b["time"] += spent or 0

    points = []
    for offset in range(days):
        key = (start + timedelta(days=offset)).isoformat()
        b = buckets.get(key, {"total": 0, "correct": 0, "time": 0})
        points.append({
            "date": key,
            "total_questions": b["total"],
            "correct_count": b["correct"],
            "accuracy": _accuracy(b["correct"], b["total"]),
            "avg_time_seconds": (b["time"] / b["total"]) if b["total"] else 0,
        })
    return points


def recent_attempts(user, limit=5) -> list[dict]:
    attempts = (
        Attempt.objects.filter(user=user)
        .select_related("question_set", "blueprint", "subtest")
        .annotate(total=Count("items"), correct=Count("items", filter=Q(items__is_correct=True)))
        .order_by("-created_at")[:max(1, limit)]
    )
    out = []
    for a in attempts:
        label = (
            (a.question_set.name if a.question_set else None)
            or (a.blueprint.name if a.blueprint else None)
            or (a.subtest.name if a.subtest else None)
            or ("Tryout session" if a.mode == AttemptMode.TRYOUT else "Practice session")
        )
        out.append({
            "id": str(a.id),
            "mode": a.mode,
            "status": a.status,
            "created_at": a.created_at.isoformat(),
            "completed_at": a.completed_at.isoformat() if a.completed_at else None,
            "total_questions": a.total,
            "accuracy": _accuracy(a.correct, a.total),
            "label": label,
        })
    return out


def build_recommendations(summary, subtests, recent) -> list[dict]:
    if summary["total_questions"] == 0:
        return [
            {"id": "start-practice", "title": "Start your first practice set",
             "description": "Pick a curated set to build your baseline accuracy.",
             "action": {"label": "Browse practice", "to": "/practice"}},
            {"id": "start-tryout", "title": "Try a timed UTBK simulation",
             "description": "Experience the real flow and get a benchmark score.",
             "action": {"label": "Open tryout", "to": "/tryout"}},
        ]

    recs = []
    last_tryout = next(
        (a for a in recent if a["mode"] == AttemptMode.TRYOUT and a["status"] == AttemptStatus.COMPLETED),
        None,
    )
    if last_tryout and last_tryout["accuracy"] < TRYOUT_REVIEW_THRESHOLD:
        recs.append({
            "id": "review-last-tryout",
            "title": "Review your last tryout",
            "description": "Revisit the mistakes from your most recent tryout and rework them in practice.",
            "action": {"label": "Open review", "to": "/tryout/:attemptId/review",
                       "params": {"attemptId": last_tryout["id"]}},
        })

    sampled = [s for s in subtests if s["total_questions"] >= MIN_SAMPLE_SIZE]
    weakest = min(sampled, key=lambda s: s["accuracy"], default=None)
    if weakest and weakest["accuracy"] < LOW_ACCURACY_THRESHOLD:
        recs.append({
            "id": f"focus-{weakest['subtest_id']}",
            "title": f"Focus on {weakest['subtest_name']}",
            "description": f"Accuracy is {round(weakest['accuracy'])}%. Drill 20 questions to lift this section.",
            "action": {"label": "Open practice", "to": "/practice"},
        })

    if not recs:
        recs.append({
            "id": "keep-momentum",
            "title": "Keep the momentum",
            "description": "Your accuracy is steady. Mix a practice set with one tryout.",
            "action": {"label": "Start practice", "to": "/practice"},
        })
    return recs[:MAX_RECOMMENDATIONS]


def user_analytics(user) -> dict:
    summary = summary_stats(user)
    subtests = subtest_performance(user)
    recent = recent_attempts(user, 5)
    return {
        "summary": summary,
        "subtest_performance": subtests,
        "trends": {
            "last_7_days": performance_trend(user, 7),
            "last_30_days": performance_trend(user, 30),
        },
        "recent_attempts": recent,
        "recommendations": build_recommendations(summary, subtests, recent),
    }
