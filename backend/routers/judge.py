import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from access import ViewerContext
from database import get_db
from models import Project, ProjectStatus, Score, ScoringCriterion
from schemas import (
    CriterionResponse,
    EventResponse,
    JudgePortalResponse,
    ProjectResponse,
    ScoreResponse,
    ScoreSubmit,
)
from scoring import aggregate, compute_total_score
from security import require_event_judge

router = APIRouter()
logger = logging.getLogger(__name__)

JUDGEABLE_STATUSES = [ProjectStatus.SUBMITTED, ProjectStatus.UNDER_REVIEW, ProjectStatus.FINALIST]


def _event_criteria(db: Session, event_id: int):
    return (
        db.query(ScoringCriterion)
        .filter(ScoringCriterion.event_id == event_id)
        .order_by(ScoringCriterion.order.asc(), ScoringCriterion.id.asc())
        .all()
    )


def _find_score(db: Session, project_id: int, judge_id: int):
    return db.query(Score).filter(Score.project_id == project_id, Score.judge_id == judge_id).first()


def _apply_score(score: Score, payload: ScoreSubmit, total: float) -> None:
    score.criteria_scores = {key: float(value) for key, value in payload.criteria_scores.items()}
    score.total_score = total
    score.comments = payload.comments
    score.private_notes = payload.private_notes


def refresh_average_score(db: Session, project: Project) -> None:
    rows = db.query(Score.project_id, Score.total_score).filter(Score.project_id == project.id).all()
    summary = aggregate(project.id, [{"project_id": row.project_id, "total_score": row.total_score} for row in rows])
    project.average_score = summary.average_score


@router.get("/judge/events/{slug}", response_model=JudgePortalResponse)
def judge_portal(
    slug: str,
    context: ViewerContext = Depends(require_event_judge),
    db: Session = Depends(get_db),
):
    event = context.event
    projects = (
        db.query(Project)
        .filter(Project.event_id == event.id, Project.status.in_(JUDGEABLE_STATUSES))
        .order_by(Project.submitted_at.asc(), Project.id.asc())
        .all()
    )
    scores = (
        db.query(Score)
        .filter(Score.event_id == event.id, Score.judge_id == context.viewer.id)
        .order_by(Score.id.asc())
        .all()
    )
    return JudgePortalResponse(
        event=EventResponse.model_validate(event),
        criteria=[CriterionResponse.model_validate(row) for row in _event_criteria(db, event.id)],
        projects=[ProjectResponse.model_validate(project) for project in projects],
        scores=[ScoreResponse.model_validate(score) for score in scores],
        scored_project_ids=sorted({score.project_id for score in scores}),
    )


@router.put("/judge/events/{slug}/projects/{project_id}/score", response_model=ScoreResponse)
def submit_score(
    slug: str,
    project_id: int,
    payload: ScoreSubmit,
    context: ViewerContext = Depends(require_event_judge),
    db: Session = Depends(get_db),
):
    event = context.event
    if not event.is_judging_open:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Judging is closed")

    project = db.query(Project).filter(Project.id == project_id, Project.event_id == event.id).first()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.status not in JUDGEABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project is not open for judging")

    criteria = _event_criteria(db, event.id)
    if not criteria:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No scoring criteria configured")
    try:
        total = compute_total_score(payload.criteria_scores, criteria)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    judge_id = context.viewer.id
    score = _find_score(db, project.id, judge_id)
    if score is None:
        score = Score(project_id=project.id, judge_id=judge_id, event_id=event.id)
        db.add(score)
    _apply_score(score, payload, total)
    try:
        db.flush()
    except IntegrityError:
        # Another request inserted this judge's score first; update that row instead.
        db.rollback()
        score = _find_score(db, project_id, judge_id)
        if score is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Score was changed concurrently, please retry")
        logger.warning("Concurrent score insert: project=%s judge=%s, updating existing row", project_id, judge_id)
        _apply_score(score, payload, total)
        db.flush()

    refresh_average_score(db, project)
    db.commit()
    db.refresh(score)
    logger.info("Score saved: event=%s project=%s judge=%s total=%.2f", event.slug, project_id, judge_id, total)
    return ScoreResponse.model_validate(score)
