"""Aggregate results for a finished attempt."""
from __future__ import annotations

import math
from typing import Iterable, Optional


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _get(item, name):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def resolve_total_time(items, total_time_seconds=None, stored_total_time_seconds=None) -> int:
    """Explicit override, then the stored total, then the sum of per-item times."""
    if total_time_seconds is not None:
        elapsed = total_time_seconds
    elif stored_total_time_seconds is not None:
        elapsed = stored_total_time_seconds
    else:
        elapsed = sum((_get(item, "time_spent_seconds") or 0) for item in items)
    return max(0, int(math.floor(elapsed)))


def calculate_results(
    items: Iterable,
    total_time_seconds: Optional[float] = None,
    stored_total_time_seconds: Optional[float] = None,
) -> dict:
    """
    Score a list of graded items (objects or dicts with `is_correct` and
    `time_spent_seconds`). `is_correct` None counts as blank.
    """
    items = list(items)
    total = len(items)
    correct = sum(1 for item in items if _get(item, "is_correct") is True)
    wrong = sum(1 for item in items if _get(item, "is_correct") is False)
    blank = total - correct - wrong

    elapsed = resolve_total_time(items, total_time_seconds, stored_total_time_seconds)

    return {
        "totalQuestions": total,
        "correctCount": correct,
        "wrongCount": wrong,
        "blankCount": blank,
        "accuracy": (correct / total * 100) if total else 0,
        "avgTimePerQuestion": round_half_up(elapsed / total) if total else 0,
        "totalTimeSeconds": elapsed,
    }


def summarize_section(items, duration_seconds: int) -> dict:
    """Per-section correct/total/accuracy; time is capped by the section budget."""
    items = list(items)
    total = len(items)
    correct = sum(1 for item in items if _get(item, "is_correct") is True)
    spent = sum((_get(item, "time_spent_seconds") or 0) for item in items)
    return {
        "correct": correct,
        "total": total,
        "accuracy": (correct / total * 100) if total else 0,
        "timeSeconds": min(duration_seconds, max(0, int(spent))),
    }
