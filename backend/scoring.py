"""Score aggregation and leaderboard ordering.

A project's aggregate is the plain mean of its judges' ``total_score``
values. Projects nobody has scored yet have no aggregate at all (``None``)
and always rank below graded ones.
"""
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from time_utils import to_timestamp


@dataclass(frozen=True)
class ScoreSummary:
    average_score: Optional[float]
    judge_count: int


@dataclass(frozen=True)
class RankedProject:
    project: Any
    average_score: Optional[float]
    judge_count: int
    submitted_at: Optional[datetime]
    rank: Optional[int] = None

    @property
    def is_graded(self) -> bool:
        return self.average_score is not None


def _field(record: Any, name: str):
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def aggregate(project_id, score_records: Iterable[Any]) -> ScoreSummary:
    totals = [
        float(_field(record, "total_score"))
        for record in score_records
        if _field(record, "project_id") == project_id
    ]
    if not totals:
        return ScoreSummary(average_score=None, judge_count=0)
    return ScoreSummary(average_score=sum(totals) / len(totals), judge_count=len(totals))


def _rank_key(entry: RankedProject):
    if entry.is_graded:
        return (0, -entry.average_score)
    return (1, to_timestamp(entry.submitted_at))


def rank(entries: Sequence[RankedProject]) -> List[RankedProject]:
    """Order entries for display without touching the input.

    Python's sort is stable, so exact ties keep their input order.
    """
    return sorted(entries, key=_rank_key)


def build_leaderboard(projects: Sequence[Any], score_records: Iterable[Any]) -> List[RankedProject]:
    by_project: Dict[Any, List[Any]] = {_field(project, "id"): [] for project in projects}
    for record in score_records:
        bucket = by_project.get(_field(record, "project_id"))
        # Scores for projects outside the supplied set are ignored
        if bucket is not None:
            bucket.append(record)

    entries = []
    for project in projects:
        project_id = _field(project, "id")
        summary = aggregate(project_id, by_project[project_id])
        entries.append(
            RankedProject(
                project=project,
                average_score=summary.average_score,
                judge_count=summary.judge_count,
                submitted_at=_field(project, "submitted_at"),
            )
        )
    return [replace(entry, rank=position) for position, entry in enumerate(rank(entries), start=1)]


def compute_total_score(criteria_scores: Mapping[str, float], criteria: Sequence[Any]) -> float:
    """Weighted sum of one judge's per-criterion scores.

    Every criterion must be scored and stay within ``0..max_score``.
    """
    total = 0.0
    for criterion in criteria:
        key = str(_field(criterion, "id"))
        if key not in criteria_scores or criteria_scores[key] is None:
            raise ValueError(f"Missing score for criterion '{_field(criterion, 'name')}'")
        value = float(criteria_scores[key])
        if not math.isfinite(value):
            raise ValueError(f"Score for '{_field(criterion, 'name')}' must be a finite number")
        max_score = float(_field(criterion, "max_score") or 0)
        if value < 0 or value > max_score:
            raise ValueError(f"Score for '{_field(criterion, 'name')}' must be between 0 and {max_score:g}")
        weight = _field(criterion, "weight")
        total += value * (1.0 if weight is None else float(weight))
    unknown = set(criteria_scores) - {str(_field(criterion, "id")) for criterion in criteria}
    if unknown:
        raise ValueError(f"Unknown criteria: {sorted(unknown)}")
    return total
