import logging
import random
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from access import ViewerContext
from database import get_db
from models import (
    EventRegistration,
    Project,
    ProjectStatus,
    RegistrationRole,
    RegistrationStatus,
    Team,
)
from schemas import (
    AnnouncementResponse,
    DashboardResponse,
    EventResponse,
    LeaderboardResponse,
    PresignRequest,
    PresignResponse,
    ProjectResponse,
    ProjectUpsert,
    ProjectWorkspace,
    RegistrationCreate,
    RegistrationResponse,
    TeamCreate,
    TeamJoin,
    TeamOverview,
    TeamResponse,
    TeamUpdate,
)
from security import require_authenticated, require_event_member
from time_utils import is_past, now_tz, to_timestamp
from utils import PROJECT_MEDIA_TYPES, _generate_presigned_put_url
from routers.event_shared import (
    build_team_response,
    get_event_or_404,
    get_team_project,
    is_team_leader,
    leaderboard_entry,
    ranked_projects,
    team_capacity,
    team_member_count,
    team_member_rows,
    team_names,
    visible_announcements,
)

router = APIRouter()
logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
EDITABLE_PROJECT_STATUSES = {ProjectStatus.DRAFT, ProjectStatus.SUBMITTED}


def _normalize_join_code(value: str) -> str:
    return str(value or "").strip().upper()


def _make_join_code(length: int = 6) -> str:
    return "".join(random.choices(JOIN_CODE_ALPHABET, k=length))


def _next_join_code(db: Session) -> str:
    candidate = _make_join_code()
    while db.query(Team).filter(Team.join_code == candidate).first():
        candidate = _make_join_code()
    return candidate


def _require_team(db: Session, context: ViewerContext) -> Team:
    registration = context.registration
    team = None
    if registration.team_id:
        team = db.query(Team).filter(Team.id == registration.team_id).first()
    if not team:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are not in a team")
    return team


def _require_leader(team: Team, context: ViewerContext) -> None:
    if team.leader_id != context.viewer.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the team leader can do this")


def _ensure_submissions_open(event) -> None:
    if not event.is_submission_open or is_past(event.submission_deadline):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Submissions are closed")


@router.post("/events/{slug}/register", response_model=RegistrationResponse)
def register_for_event(
    slug: str,
    payload: RegistrationCreate,
    context: ViewerContext = Depends(require_authenticated),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, slug)
    if not event.is_active or not event.is_published:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    if not event.is_registration_open or is_past(event.registration_deadline):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Registration is closed")
    if not payload.agreed_to_coc or not payload.agreed_to_terms:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You must accept the code of conduct and terms")

    existing = db.query(EventRegistration).filter(
        EventRegistration.event_id == event.id,
        EventRegistration.user_id == context.viewer.id,
    ).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already registered for this event")

    if event.max_participants:
        participant_count = db.query(EventRegistration).filter(
            EventRegistration.event_id == event.id,
            EventRegistration.role == RegistrationRole.PARTICIPANT,
        ).count()
        if participant_count >= event.max_participants:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event is full")

    registration = EventRegistration(
        event_id=event.id,
        user_id=context.viewer.id,
        role=RegistrationRole.PARTICIPANT,
        status=RegistrationStatus.PENDING,
        agreed_to_coc=True,
        agreed_to_terms=True,
    )
    db.add(registration)
    db.commit()
    db.refresh(registration)
    logger.info("Registration created: event=%s user=%s", event.slug, context.viewer.id)
    return RegistrationResponse.model_validate(registration)


@router.get("/events/{slug}/dashboard", response_model=DashboardResponse)
def event_dashboard(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    registration = context.registration
    team = db.query(Team).filter(Team.id == registration.team_id).first() if registration.team_id else None
    project = get_team_project(db, event, registration.team_id)
    leader = bool(team and team.leader_id == context.viewer.id)
    return DashboardResponse(
        event=EventResponse.model_validate(event),
        registration=RegistrationResponse.model_validate(registration),
        team=build_team_response(db, team, event, include_code=True) if team else None,
        project=ProjectResponse.model_validate(project) if project else None,
        announcement_count=len(visible_announcements(db, event, registration, leader)),
    )


# ==================== TEAMS ====================
@router.get("/events/{slug}/team", response_model=TeamOverview)
def team_overview(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    registration = context.registration
    team = db.query(Team).filter(Team.id == registration.team_id).first() if registration.team_id else None

    open_teams = (
        db.query(Team)
        .filter(Team.event_id == event.id, Team.is_open == True)  # noqa: E712
        .order_by(Team.created_at.desc(), Team.id.desc())
        .all()
    )
    available = [
        build_team_response(db, row, event)
        for row in open_teams
        if (team is None or row.id != team.id) and team_member_count(db, row) < team_capacity(row, event)
    ]
    return TeamOverview(
        team=build_team_response(db, team, event, include_code=True) if team else None,
        is_leader=bool(team and team.leader_id == context.viewer.id),
        open_teams=available,
    )


@router.post("/events/{slug}/team", response_model=TeamResponse)
def create_team(
    slug: str,
    payload: TeamCreate,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    registration = context.registration
    if registration.team_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are already in a team")
    max_members = payload.max_members or event.max_team_size
    if max_members > event.max_team_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Teams can have at most {event.max_team_size} members",
        )

    team = Team(
        event_id=event.id,
        name=payload.name.strip(),
        description=payload.description,
        join_code=_next_join_code(db),
        leader_id=context.viewer.id,
        max_members=max_members,
        is_open=True,
    )
    db.add(team)
    db.flush()
    registration.team_id = team.id
    db.commit()
    db.refresh(team)
    logger.info("Team created: event=%s team=%s leader=%s", event.slug, team.id, context.viewer.id)
    return build_team_response(db, team, event, include_code=True)


@router.post("/events/{slug}/team/join", response_model=TeamResponse)
def join_team(
    slug: str,
    payload: TeamJoin,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    registration = context.registration
    if registration.team_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are already in a team")
    team = db.query(Team).filter(
        Team.join_code == _normalize_join_code(payload.join_code),
        Team.event_id == event.id,
    ).first()
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    if not team.is_open:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is not accepting members")
    if team_member_count(db, team) >= team_capacity(team, event):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is full")

    registration.team_id = team.id
    db.commit()
    return build_team_response(db, team, event, include_code=True)


@router.patch("/events/{slug}/team", response_model=TeamResponse)
def update_team(
    slug: str,
    payload: TeamUpdate,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    team = _require_team(db, context)
    _require_leader(team, context)
    updates = payload.model_dump(exclude_unset=True)
    if "name" in updates and updates["name"]:
        team.name = updates["name"].strip()
    if "description" in updates:
        team.description = updates["description"]
    if "is_open" in updates and updates["is_open"] is not None:
        team.is_open = bool(updates["is_open"])
    db.commit()
    db.refresh(team)
    return build_team_response(db, team, context.event, include_code=True)


@router.post("/events/{slug}/team/leave")
def leave_team(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    team = _require_team(db, context)
    context.registration.team_id = None
    db.flush()

    if team.leader_id == context.viewer.id:
        remaining = team_member_rows(db, team)
        if remaining:
            team.leader_id = remaining[0][0].user_id
        elif not get_team_project(db, context.event, team.id):
            db.delete(team)
    db.commit()
    return {"message": "Left team"}


# ==================== PROJECT ====================
@router.get("/events/{slug}/project", response_model=ProjectWorkspace)
def project_workspace(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    registration = context.registration
    team = db.query(Team).filter(Team.id == registration.team_id).first() if registration.team_id else None
    project = get_team_project(db, context.event, team.id if team else None)
    return ProjectWorkspace(
        team=build_team_response(db, team, context.event, include_code=True) if team else None,
        project=ProjectResponse.model_validate(project) if project else None,
        is_team_leader=bool(team and team.leader_id == context.viewer.id),
    )


@router.put("/events/{slug}/project", response_model=ProjectResponse)
def upsert_project(
    slug: str,
    payload: ProjectUpsert,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    team = _require_team(db, context)
    _ensure_submissions_open(event)

    project = get_team_project(db, event, team.id)
    if project is None:
        project = Project(event_id=event.id, team_id=team.id, status=ProjectStatus.DRAFT)
        db.add(project)
    elif project.status not in EDITABLE_PROJECT_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project can no longer be edited")

    data = payload.model_dump()
    data["title"] = data["title"].strip()
    for field, value in data.items():
        setattr(project, field, value)
    db.commit()
    db.refresh(project)
    return ProjectResponse.model_validate(project)


@router.post("/events/{slug}/project/submit", response_model=ProjectResponse)
def submit_project(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    team = _require_team(db, context)
    _require_leader(team, context)
    _ensure_submissions_open(event)

    project = get_team_project(db, event, team.id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.status != ProjectStatus.DRAFT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project already submitted")
    if team_member_count(db, team) < int(event.min_team_size or 1):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Teams need at least {event.min_team_size} members to submit",
        )

    project.status = ProjectStatus.SUBMITTED
    project.submitted_at = now_tz()
    db.commit()
    db.refresh(project)
    logger.info("Project submitted: event=%s project=%s", event.slug, project.id)
    return ProjectResponse.model_validate(project)


@router.post("/events/{slug}/project/media/presign", response_model=PresignResponse)
def presign_project_media(
    slug: str,
    payload: PresignRequest,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    team = _require_team(db, context)
    return _generate_presigned_put_url(
        f"projects/{context.event.slug}/{team.id}",
        payload.filename,
        payload.content_type,
        allowed_types=PROJECT_MEDIA_TYPES,
    )


# ==================== ANNOUNCEMENTS & LEADERBOARD ====================
@router.get("/events/{slug}/announcements", response_model=List[AnnouncementResponse])
def list_announcements(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    leader = is_team_leader(db, context.registration, context.viewer.id)
    rows = visible_announcements(db, context.event, context.registration, leader)
    return [AnnouncementResponse.model_validate(row) for row in rows]


@router.get("/events/{slug}/leaderboard", response_model=LeaderboardResponse)
def event_leaderboard(
    slug: str,
    context: ViewerContext = Depends(require_event_member),
    db: Session = Depends(get_db),
):
    event = context.event
    entries = ranked_projects(db, event, [ProjectStatus.SUBMITTED])
    scores_visible = bool(event.is_results_published) or context.is_event_admin
    if not scores_visible:
        entries = sorted(entries, key=lambda entry: to_timestamp(entry.submitted_at))
    names = team_names(db, [entry.project.team_id for entry in entries])
    return LeaderboardResponse(
        event_slug=event.slug,
        results_published=bool(event.is_results_published),
        scores_visible=scores_visible,
        entries=[leaderboard_entry(entry, names, reveal_scores=scores_visible) for entry in entries],
    )
