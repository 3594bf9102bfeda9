import pytest

from attempts.scoring import calculate_results, round_half_up, summarize_section


def item(is_correct, spent=None):
    return {"is_correct": is_correct, "time_spent_seconds": spent}


def test_counts_partition_total():
    items = [item(True, 10), item(False, 20), item(None, 5), item(True, 0)]
    r = calculate_results(items)
    assert r["totalQuestions"] == 4
    assert (r["correctCount"], r["wrongCount"], r["blankCount"]) == (2, 1, 1)
    assert r["correctCount"] + r["wrongCount"] + r["blankCount"] == r["totalQuestions"]
    assert r["accuracy"] == 50
    assert r["totalTimeSeconds"] == 35
    assert r["avgTimePerQuestion"] == 9  # 8.75


def test_empty_attempt_scores_zero():
    r = calculate_results([])
    assert r == {
        "totalQuestions": 0, "correctCount": 0, "wrongCount": 0, "blankCount": 0,
        "accuracy": 0, "avgTimePerQuestion": 0, "totalTimeSeconds": 0,
    }


def test_time_precedence_override_then_stored_then_sum():
    items = [item(True, 30), item(False, 30)]
    assert calculate_results(items, total_time_seconds=100, stored_total_time_seconds=80)["totalTimeSeconds"] == 100
    assert calculate_results(items, stored_total_time_seconds=80)["totalTimeSeconds"] == 80
    assert calculate_results(items)["totalTimeSeconds"] == 60


def test_elapsed_is_floored_and_never_negative():
    items = [item(True)]
    assert calculate_results(items, total_time_seconds=12.9)["totalTimeSeconds"] == 12
    assert calculate_results(items, total_time_seconds=-5)["totalTimeSeconds"] == 0


def test_average_rounds_half_up():
    assert round_half_up(2.5) == 3
    assert calculate_results([item(True), item(True)], total_time_seconds=5)["avgTimePerQuestion"] == 3


def test_accepts_model_like_objects():
    class Row:
        def __init__(self, is_correct, time_spent_seconds):
            self.is_correct = is_correct
            self.time_spent_seconds = time_spent_seconds

    r = calculate_results([Row(True, 4), Row(None, None)])
    assert r["correctCount"] == 1 and r["blankCount"] == 1
    assert r["totalTimeSeconds"] == 4


def test_section_time_is_capped_by_duration():
    s = summarize_section([item(True, 400), item(False, 400)], duration_seconds=600)
    assert s == {"correct": 1, "total": 2, "accuracy": 50, "timeSeconds": 600}
    assert summarize_section([], 300) == {"correct": 0, "total": 0, "accuracy": 0, "timeSeconds": 0}


def test_mixed_outcomes_with_time_override():
    r = calculate_results([item(True), item(False), item(None)], total_time_seconds=90)
    assert (r["correctCount"], r["wrongCount"], r["blankCount"]) == (1, 1, 1)
    assert r["accuracy"] == pytest.approx(100 / 3)
    assert r["avgTimePerQuestion"] == 30
    assert r["totalTimeSeconds"] == 90


def test_all_correct_is_full_accuracy():
    r = calculate_results([item(True, 12), item(True, 8), item(True, 10)])
    assert r["accuracy"] == 100
    assert r["wrongCount"] == r["blankCount"] == 0
