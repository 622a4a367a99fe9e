from datetime import datetime, timedelta, timezone
from itertools import permutations
from types import SimpleNamespace

import pytest

from scoring import RankedProject, aggregate, build_leaderboard, compute_total_score, rank

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _project(project_id, minutes=0, submitted=True):
    return SimpleNamespace(id=project_id, submitted_at=T0 + timedelta(minutes=minutes) if submitted else None)


def _score(project_id, total):
    return {"project_id": project_id, "total_score": total}


def _entry(name, average=None, minutes=0, submitted=True):
    return RankedProject(
        project=name,
        average_score=average,
        judge_count=1 if average is not None else 0,
        submitted_at=T0 + timedelta(minutes=minutes) if submitted else None,
    )


def test_aggregate_of_unscored_project_is_none():
    summary = aggregate(1, [])
    assert summary.average_score is None
    assert summary.judge_count == 0


def test_aggregate_is_plain_mean_of_own_scores():
    records = [_score(1, 8), _score(2, 100), _score(1, 6), SimpleNamespace(project_id=1, total_score=7)]
    summary = aggregate(1, records)
    assert summary.average_score == pytest.approx(7.0)
    assert summary.judge_count == 3


def test_rank_puts_graded_first_by_average_descending():
    ordered = rank([
        _entry("ungraded-early", minutes=0),
        _entry("low", average=5.0),
        _entry("high", average=9.5),
        _entry("ungraded-late", minutes=30),
        _entry("mid", average=7.0),
    ])
    assert [entry.project for entry in ordered] == ["high", "mid", "low", "ungraded-early", "ungraded-late"]


def test_rank_orders_ungraded_by_submission_time_with_missing_time_first():
    ordered = rank([
        _entry("b", minutes=20),
        _entry("never", submitted=False),
        _entry("a", minutes=10),
    ])
    assert [entry.project for entry in ordered] == ["never", "a", "b"]


def test_rank_keeps_input_order_for_exact_ties():
    entries = [_entry("first", average=8.0, minutes=5), _entry("second", average=8.0, minutes=1)]
    assert [entry.project for entry in rank(entries)] == ["first", "second"]
    assert [entry.project for entry in rank(list(reversed(entries)))] == ["second", "first"]


def test_rank_does_not_mutate_input():
    entries = [_entry("low", average=1.0), _entry("high", average=2.0)]
    snapshot = list(entries)
    rank(entries)
    assert entries == snapshot


def test_build_leaderboard_assigns_consecutive_ranks():
    projects = [_project(1, minutes=0), _project(2, minutes=5), _project(3, minutes=10)]
    records = [_score(1, 6), _score(1, 8), _score(3, 9)]
    board = build_leaderboard(projects, records)

    assert [(entry.project.id, entry.rank) for entry in board] == [(3, 1), (1, 2), (2, 3)]
    assert board[1].average_score == pytest.approx(7.0)
    assert board[2].average_score is None
    assert board[2].judge_count == 0


def test_build_leaderboard_ignores_scores_for_unknown_projects():
    board = build_leaderboard([_project(1)], [_score(1, 4), _score(99, 10)])
    assert len(board) == 1
    assert board[0].average_score == pytest.approx(4.0)


def test_build_leaderboard_is_independent_of_score_order():
    projects = [_project(1), _project(2, minutes=1)]
    records = [_score(1, 3), _score(2, 5), _score(1, 9)]
    expected = [(entry.project.id, entry.average_score) for entry in build_leaderboard(projects, records)]
    for ordering in permutations(records):
        board = build_leaderboard(projects, list(ordering))
        assert [(entry.project.id, entry.average_score) for entry in board] == expected


def test_compute_total_score_is_weighted_sum():
    criteria = [
        SimpleNamespace(id=1, name="Impact", weight=2.0, max_score=10.0),
        SimpleNamespace(id=2, name="Design", weight=0.5, max_score=5.0),
    ]
    assert compute_total_score({"1": 8, "2": 4}, criteria) == pytest.approx(18.0)


@pytest.mark.parametrize(
    "criteria_scores, message",
    [
        ({"1": 5}, "Missing score"),
        ({"1": 5, "2": 11}, "must be between"),
        ({"1": -1, "2": 2}, "must be between"),
        ({"1": float("nan"), "2": 2}, "finite"),
        ({"1": 5, "2": float("inf")}, "finite"),
        ({"1": 5, "2": 2, "9": 1}, "Unknown criteria"),
    ],
)
def test_compute_total_score_rejects_bad_input(criteria_scores, message):
    criteria = [
        SimpleNamespace(id=1, name="Impact", weight=1.0, max_score=10.0),
        SimpleNamespace(id=2, name="Design", weight=1.0, max_score=10.0),
    ]
    with pytest.raises(ValueError, match=message):
        compute_total_score(criteria_scores, criteria)
