from typing import Dict, List, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import (
    Announcement,
    AnnouncementAudience,
    Event,
    EventRegistration,
    Profile,
    Project,
    ProjectStatus,
    Score,
    Team,
)
from schemas import LeaderboardEntry, TeamMemberResponse, TeamResponse
from scoring import RankedProject, build_leaderboard
from time_utils import ensure_timezone, now_tz

PUBLIC_PROJECT_STATUSES = [
    ProjectStatus.SUBMITTED,
    ProjectStatus.UNDER_REVIEW,
    ProjectStatus.FINALIST,
    ProjectStatus.WINNER,
]


def get_event_or_404(db: Session, slug: str) -> Event:
    event = db.query(Event).filter(Event.slug == slug).first()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def team_capacity(team: Team, event: Event) -> int:
    return int(team.max_members or event.max_team_size)


def team_member_rows(db: Session, team: Team):
    return (
        db.query(EventRegistration, Profile)
        .join(Profile, EventRegistration.user_id == Profile.id)
        .filter(EventRegistration.team_id == team.id)
        .order_by(EventRegistration.created_at.asc(), EventRegistration.id.asc())
        .all()
    )


def build_team_response(db: Session, team: Team, event: Event, include_code: bool = False) -> TeamResponse:
    members = [
        TeamMemberResponse(
            user_id=profile.id,
            full_name=profile.full_name,
            avatar_url=profile.avatar_url,
            is_leader=profile.id == team.leader_id,
        )
        for _, profile in team_member_rows(db, team)
    ]
    return TeamResponse(
        id=team.id,
        event_id=team.event_id,
        name=team.name,
        description=team.description,
        join_code=team.join_code if include_code else None,
        leader_id=team.leader_id,
        max_members=team_capacity(team, event),
        is_open=bool(team.is_open),
        members=members,
    )


def team_member_count(db: Session, team: Team) -> int:
    return db.query(EventRegistration).filter(EventRegistration.team_id == team.id).count()


def get_team_project(db: Session, event: Event, team_id: Optional[int]) -> Optional[Project]:
    if not team_id:
        return None
    return db.query(Project).filter(Project.team_id == team_id, Project.event_id == event.id).first()


def ranked_projects(db: Session, event: Event, statuses: Optional[Sequence[ProjectStatus]] = None) -> List[RankedProject]:
    query = db.query(Project).filter(Project.event_id == event.id)
    if statuses:
        query = query.filter(Project.status.in_(list(statuses)))
    projects = query.order_by(Project.submitted_at.asc(), Project.id.asc()).all()
    if not projects:
        return []
    score_rows = (
        db.query(Score.project_id, Score.total_score)
        .filter(Score.project_id.in_([project.id for project in projects]))
        .all()
    )
    records = [{"project_id": row.project_id, "total_score": row.total_score} for row in score_rows]
    return build_leaderboard(projects, records)


def team_names(db: Session, team_ids: Sequence[int]) -> Dict[int, str]:
    ids = [team_id for team_id in set(team_ids) if team_id]
    if not ids:
        return {}
    return {team.id: team.name for team in db.query(Team).filter(Team.id.in_(ids)).all()}


def leaderboard_entry(entry: RankedProject, names: Dict[int, str], reveal_scores: bool = True) -> LeaderboardEntry:
    project = entry.project
    return LeaderboardEntry(
        rank=entry.rank if reveal_scores else None,
        project_id=project.id,
        title=project.title,
        tagline=project.tagline,
        status=project.status,
        team_id=project.team_id,
        team_name=names.get(project.team_id),
        average_score=entry.average_score if reveal_scores else None,
        judge_count=entry.judge_count if reveal_scores else None,
        submitted_at=project.submitted_at,
    )


def _audiences_for(registration: EventRegistration, is_team_leader: bool) -> List[AnnouncementAudience]:
    audiences = [AnnouncementAudience.ALL]
    role = getattr(registration.role, "value", registration.role)
    if role == "participant":
        audiences.append(AnnouncementAudience.PARTICIPANTS)
    if role == "judge":
        audiences.append(AnnouncementAudience.JUDGES)
    if is_team_leader:
        audiences.append(AnnouncementAudience.TEAM_LEADERS)
    return audiences


def visible_announcements(db: Session, event: Event, registration: EventRegistration, is_team_leader: bool) -> List[Announcement]:
    rows = (
        db.query(Announcement)
        .filter(
            Announcement.event_id == event.id,
            Announcement.is_published == True,  # noqa: E712
            Announcement.audience.in_(_audiences_for(registration, is_team_leader)),
        )
        .all()
    )
    now = now_tz()
    visible = [
        row for row in rows
        if (row.publish_at is None or ensure_timezone(row.publish_at) <= now)
        and (row.expires_at is None or ensure_timezone(row.expires_at) > now)
    ]
    visible.sort(
        key=lambda row: (
            0 if row.is_pinned else 1,
            -ensure_timezone(row.publish_at or row.created_at or now).timestamp(),
        )
    )
    return visible


def is_team_leader(db: Session, registration: Optional[EventRegistration], user_id: int) -> bool:
    if registration is None or not registration.team_id:
        return False
    team = db.query(Team).filter(Team.id == registration.team_id).first()
    return bool(team and team.leader_id == user_id)
