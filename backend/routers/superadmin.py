import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from access import ViewerContext
from database import get_db
from models import AdminLog, Event, Profile, UserRole
from schemas import (
    AdminLogResponse,
    EventCreate,
    EventResponse,
    EventUpdate,
    ProfileResponse,
    RoleUpdate,
    UserRoleEnum,
)
from security import require_site_admin
from utils import log_admin_action
from routers.event_shared import get_event_or_404

router = APIRouter()
logger = logging.getLogger(__name__)

# Columns that PATCH may not clear with an explicit null
REQUIRED_EVENT_FIELDS = {
    "name", "is_virtual", "max_team_size", "min_team_size", "is_active", "is_published",
    "is_registration_open", "is_submission_open", "is_judging_open", "is_results_published",
}


@router.get("/superadmin/events", response_model=List[EventResponse])
def list_all_events(
    context: ViewerContext = Depends(require_site_admin),
    db: Session = Depends(get_db),
):
    events = db.query(Event).order_by(Event.created_at.desc(), Event.id.desc()).all()
    return [EventResponse.model_validate(event) for event in events]


@router.post("/superadmin/events", response_model=EventResponse)
def create_event(
    payload: EventCreate,
    request: Request,
    context: ViewerContext = Depends(require_site_admin),
    db: Session = Depends(get_db),
):
    if db.query(Event).filter(Event.slug == payload.slug).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Event slug already exists")
    if payload.min_team_size > payload.max_team_size:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="min_team_size cannot exceed max_team_size")

    event = Event(**payload.model_dump(), created_by=context.viewer.id)
    db.add(event)
    db.commit()
    db.refresh(event)
    log_admin_action(
        db, context.profile, "create_event",
        event_slug=event.slug, method="POST", path=request.url.path,
        meta={"event_id": event.id},
    )
    logger.info("Event created: slug=%s by=%s", event.slug, context.viewer.id)
    return EventResponse.model_validate(event)


@router.patch("/superadmin/events/{slug}", response_model=EventResponse)
def update_event(
    slug: str,
    payload: EventUpdate,
    request: Request,
    context: ViewerContext = Depends(require_site_admin),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, slug)
    updates = payload.model_dump(exclude_unset=True)
    for field, value in updates.items():
        if value is None and field in REQUIRED_EVENT_FIELDS:
            continue
        setattr(event, field, value)
    if int(event.min_team_size or 1) > int(event.max_team_size):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="min_team_size cannot exceed max_team_size")
    db.commit()
    db.refresh(event)
    log_admin_action(
        db, context.profile, "update_event",
        event_slug=event.slug, method="PATCH", path=request.url.path,
        meta={key: (value.isoformat() if hasattr(value, "isoformat") else value) for key, value in updates.items()},
    )
    return EventResponse.model_validate(event)


@router.put("/superadmin/users/{user_id}/role", response_model=ProfileResponse)
def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    request: Request,
    context: ViewerContext = Depends(require_site_admin),
    db: Session = Depends(get_db),
):
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    acting_role = getattr(context.profile.role, "value", context.profile.role)
    if payload.role == UserRoleEnum.SUPERADMIN and acting_role != "superadmin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only a superadmin can grant superadmin")
    if profile.id == context.viewer.id and payload.role not in {UserRoleEnum.ADMIN, UserRoleEnum.SUPERADMIN}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove your own admin role")

    previous = getattr(profile.role, "value", profile.role)
    profile.role = UserRole[payload.role.name]
    db.commit()
    db.refresh(profile)
    log_admin_action(
        db, context.profile, "update_user_role",
        method="PUT", path=request.url.path,
        meta={"user_id": user_id, "from": previous, "to": payload.role.value},
    )
    return ProfileResponse.model_validate(profile)


@router.get("/superadmin/logs", response_model=List[AdminLogResponse])
def get_admin_logs(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: ViewerContext = Depends(require_site_admin),
    db: Session = Depends(get_db),
):
    logs = db.query(AdminLog).order_by(AdminLog.id.desc()).offset(offset).limit(limit).all()
    return [AdminLogResponse.model_validate(row) for row in logs]
