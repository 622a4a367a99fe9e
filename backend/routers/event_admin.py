import io
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from access import ViewerContext
from database import get_db
from models import (
    AdminLog,
    Announcement,
    AnnouncementAudience,
    EventRegistration,
    Profile,
    Project,
    ProjectStatus,
    RegistrationRole,
    RegistrationStatus,
    Score,
    ScoringCriterion,
    Team,
)
from schemas import (
    AdminDashboardResponse,
    AdminEventStats,
    AdminLogResponse,
    AdminProjectCounts,
    AdminProjectEntry,
    AdminProjectsResponse,
    AdminRecentProject,
    AnnouncementCreate,
    AnnouncementResponse,
    CriterionCreate,
    CriterionResponse,
    EventResponse,
    JudgeInvite,
    ParticipantResponse,
    ProjectResponse,
    ProjectStatusEnum,
    RegistrationResponse,
    RegistrationRoleEnum,
    RegistrationStatusEnum,
    RegistrationUpdate,
)
from security import require_event_admin
from utils import export_to_csv, export_to_xlsx, log_admin_action, set_pagination_headers
from routers.event_shared import PUBLIC_PROJECT_STATUSES, ranked_projects, team_names

router = APIRouter()
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _participant_response(registration: EventRegistration, profile: Profile, team_name: Optional[str]) -> ParticipantResponse:
    base = RegistrationResponse.model_validate(registration).model_dump()
    return ParticipantResponse(
        **base,
        full_name=profile.full_name,
        email=profile.email,
        avatar_url=profile.avatar_url,
        team_name=team_name,
    )


def _registration_query(db: Session, event_id: int):
    return (
        db.query(EventRegistration, Profile)
        .join(Profile, EventRegistration.user_id == Profile.id)
        .filter(EventRegistration.event_id == event_id)
    )


@router.get("/admin/events/{slug}/dashboard", response_model=AdminDashboardResponse)
def admin_dashboard(
    slug: str,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    event = context.event
    registrations = db.query(EventRegistration).filter(EventRegistration.event_id == event.id)
    projects = db.query(Project).filter(Project.event_id == event.id)

    stats = AdminEventStats(
        participants=registrations.filter(EventRegistration.role == RegistrationRole.PARTICIPANT).count(),
        teams=db.query(Team).filter(Team.event_id == event.id).count(),
        projects=projects.count(),
        submitted=projects.filter(Project.status.in_(PUBLIC_PROJECT_STATUSES)).count(),
        judges=registrations.filter(EventRegistration.role == RegistrationRole.JUDGE).count(),
        projects_judged=db.query(func.count(func.distinct(Score.project_id))).filter(Score.event_id == event.id).scalar() or 0,
        pending_registrations=registrations.filter(EventRegistration.status == RegistrationStatus.PENDING).count(),
    )

    recent_rows = (
        _registration_query(db, event.id)
        .order_by(EventRegistration.created_at.desc(), EventRegistration.id.desc())
        .limit(5)
        .all()
    )
    recent_projects = (
        projects.filter(Project.status.in_(PUBLIC_PROJECT_STATUSES))
        .order_by(Project.submitted_at.desc(), Project.id.desc())
        .limit(5)
        .all()
    )
    names = team_names(
        db,
        [registration.team_id for registration, _ in recent_rows] + [project.team_id for project in recent_projects],
    )
    return AdminDashboardResponse(
        event=EventResponse.model_validate(event),
        stats=stats,
        recent_registrations=[
            _participant_response(registration, profile, names.get(registration.team_id))
            for registration, profile in recent_rows
        ],
        recent_projects=[
            AdminRecentProject(
                id=project.id,
                title=project.title,
                status=project.status,
                submitted_at=project.submitted_at,
                team_name=names.get(project.team_id),
            )
            for project in recent_projects
        ],
    )


# ==================== PARTICIPANTS & JUDGES ====================
@router.get("/admin/events/{slug}/participants", response_model=List[ParticipantResponse])
def list_participants(
    slug: str,
    role: Optional[RegistrationRoleEnum] = None,
    status_filter: Optional[RegistrationStatusEnum] = Query(None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    response: Response = None,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    query = _registration_query(db, context.event.id)
    if role:
        query = query.filter(EventRegistration.role == RegistrationRole[role.name])
    if status_filter:
        query = query.filter(EventRegistration.status == RegistrationStatus[status_filter.name])
    if search:
        query = query.filter(
            (Profile.full_name.ilike(f"%{search}%")) |
            (Profile.email.ilike(f"%{search}%"))
        )

    total_count = query.count()
    offset = (page - 1) * page_size
    rows = (
        query.order_by(EventRegistration.created_at.asc(), EventRegistration.id.asc())
        .offset(offset)
        .limit(page_size)
        .all()
    )
    set_pagination_headers(response, total_count, page, page_size)
    names = team_names(db, [registration.team_id for registration, _ in rows])
    return [
        _participant_response(registration, profile, names.get(registration.team_id))
        for registration, profile in rows
    ]


@router.patch("/admin/events/{slug}/participants/{registration_id}", response_model=ParticipantResponse)
def update_participant(
    slug: str,
    registration_id: int,
    payload: RegistrationUpdate,
    request: Request,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    row = (
        _registration_query(db, context.event.id)
        .filter(EventRegistration.id == registration_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participant not found")
    registration, profile = row

    changes = {}
    if payload.status is not None:
        registration.status = RegistrationStatus[payload.status.name]
        changes["status"] = payload.status.value
    if payload.role is not None:
        registration.role = RegistrationRole[payload.role.name]
        changes["role"] = payload.role.value
    db.commit()
    log_admin_action(
        db, context.profile, "update_participant",
        event_slug=context.event.slug, method="PATCH", path=request.url.path,
        meta={"registration_id": registration_id, **changes},
    )
    db.refresh(registration)
    names = team_names(db, [registration.team_id])
    return _participant_response(registration, profile, names.get(registration.team_id))


@router.post("/admin/events/{slug}/judges", response_model=RegistrationResponse)
def add_judge(
    slug: str,
    payload: JudgeInvite,
    request: Request,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    event = context.event
    email = str(payload.email).strip().lower()
    profile = db.query(Profile).filter(func.lower(Profile.email) == email).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    registration = db.query(EventRegistration).filter(
        EventRegistration.event_id == event.id,
        EventRegistration.user_id == profile.id,
    ).first()
    if registration and registration.role == RegistrationRole.JUDGE:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a judge for this event")
    if registration is None:
        registration = EventRegistration(
            event_id=event.id,
            user_id=profile.id,
            agreed_to_coc=True,
            agreed_to_terms=True,
        )
        db.add(registration)
    registration.role = RegistrationRole.JUDGE
    registration.status = RegistrationStatus.APPROVED
    db.commit()
    db.refresh(registration)
    log_admin_action(
        db, context.profile, "add_judge",
        event_slug=event.slug, method="POST", path=request.url.path,
        meta={"user_id": profile.id, "email": profile.email},
    )
    return RegistrationResponse.model_validate(registration)


# ==================== PROJECTS & LEADERBOARD ====================
@router.get("/admin/events/{slug}/projects", response_model=AdminProjectsResponse)
def list_projects(
    slug: str,
    status_filter: Optional[ProjectStatusEnum] = Query(None, alias="status"),
    sort: str = Query("recent", pattern="^(recent|rank)$"),
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    event = context.event
    statuses = [ProjectStatus[status_filter.name]] if status_filter else None
    entries = ranked_projects(db, event, statuses)
    if sort == "recent":
        entries = sorted(entries, key=lambda entry: entry.project.id, reverse=True)

    names = team_names(db, [entry.project.team_id for entry in entries])
    projects = []
    for entry in entries:
        data = ProjectResponse.model_validate(entry.project).model_dump()
        data["average_score"] = entry.average_score
        projects.append(AdminProjectEntry(
            **data,
            team_name=names.get(entry.project.team_id),
            judge_count=entry.judge_count,
            rank=entry.rank,
        ))
    all_projects = db.query(Project).filter(Project.event_id == event.id)
    counts = AdminProjectCounts(
        total=all_projects.count(),
        draft=all_projects.filter(Project.status == ProjectStatus.DRAFT).count(),
        submitted=all_projects.filter(Project.status.in_(PUBLIC_PROJECT_STATUSES)).count(),
    )
    return AdminProjectsResponse(
        projects=projects,
        counts=counts,
        current_filter=status_filter.value if status_filter else "all",
    )


@router.get("/admin/events/{slug}/leaderboard/export")
def export_leaderboard(
    slug: str,
    format: str = "csv",
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    if format not in {"csv", "xlsx"}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported export format")
    event = context.event
    entries = ranked_projects(db, event, PUBLIC_PROJECT_STATUSES)
    names = team_names(db, [entry.project.team_id for entry in entries])

    headers = ["Rank", "Project", "Team", "Status", "Average Score", "Judges", "Submitted At"]
    rows = [
        [
            entry.rank,
            entry.project.title,
            names.get(entry.project.team_id, ""),
            entry.project.status.value,
            round(entry.average_score, 2) if entry.is_graded else "",
            entry.judge_count,
            entry.submitted_at.isoformat() if entry.submitted_at else "",
        ]
        for entry in entries
    ]
    filename = f"{event.slug}_leaderboard.{format}"
    disposition = {"Content-Disposition": f"attachment; filename={filename}"}
    if format == "xlsx":
        return StreamingResponse(io.BytesIO(export_to_xlsx(headers, rows)), media_type=XLSX_MEDIA_TYPE, headers=disposition)
    return StreamingResponse(iter([export_to_csv(headers, rows)]), media_type="text/csv", headers=disposition)


# ==================== CRITERIA, ANNOUNCEMENTS, LOGS ====================
@router.get("/admin/events/{slug}/criteria", response_model=List[CriterionResponse])
def list_criteria(
    slug: str,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(ScoringCriterion)
        .filter(ScoringCriterion.event_id == context.event.id)
        .order_by(ScoringCriterion.order.asc(), ScoringCriterion.id.asc())
        .all()
    )
    return [CriterionResponse.model_validate(row) for row in rows]


@router.post("/admin/events/{slug}/criteria", response_model=CriterionResponse)
def create_criterion(
    slug: str,
    payload: CriterionCreate,
    request: Request,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    criterion = ScoringCriterion(event_id=context.event.id, **payload.model_dump())
    criterion.name = criterion.name.strip()
    db.add(criterion)
    db.commit()
    db.refresh(criterion)
    log_admin_action(
        db, context.profile, "create_criterion",
        event_slug=context.event.slug, method="POST", path=request.url.path,
        meta={"criterion_id": criterion.id, "name": criterion.name, "weight": criterion.weight},
    )
    return CriterionResponse.model_validate(criterion)


@router.post("/admin/events/{slug}/announcements", response_model=AnnouncementResponse)
def create_announcement(
    slug: str,
    payload: AnnouncementCreate,
    request: Request,
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    data["audience"] = AnnouncementAudience[payload.audience.name]
    announcement = Announcement(event_id=context.event.id, created_by=context.viewer.id, **data)
    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    log_admin_action(
        db, context.profile, "create_announcement",
        event_slug=context.event.slug, method="POST", path=request.url.path,
        meta={"announcement_id": announcement.id, "audience": payload.audience.value},
    )
    return AnnouncementResponse.model_validate(announcement)


@router.get("/admin/events/{slug}/logs", response_model=List[AdminLogResponse])
def event_logs(
    slug: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: ViewerContext = Depends(require_event_admin),
    db: Session = Depends(get_db),
):
    logs = (
        db.query(AdminLog)
        .filter(AdminLog.event_slug == context.event.slug)
        .order_by(AdminLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [AdminLogResponse.model_validate(row) for row in logs]
