from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from auth import Viewer, get_optional_viewer
from database import get_db
from models import Event, EventRegistration, Project, Team
from schemas import EventCounts, EventDetailResponse, EventResponse, RegistrationResponse
from routers.event_shared import PUBLIC_PROJECT_STATUSES

router = APIRouter()


@router.get("/")
def root():
    return {"message": "HackHub API is running"}


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/events", response_model=List[EventResponse])
def list_events(db: Session = Depends(get_db)):
    events = (
        db.query(Event)
        .filter(Event.is_active == True, Event.is_published == True)  # noqa: E712
        .order_by(Event.start_date.desc(), Event.id.desc())
        .all()
    )
    return [EventResponse.model_validate(event) for event in events]


@router.get("/events/{slug}", response_model=EventDetailResponse)
def get_event(
    slug: str,
    viewer: Optional[Viewer] = Depends(get_optional_viewer),
    db: Session = Depends(get_db),
):
    event = (
        db.query(Event)
        .filter(Event.slug == slug, Event.is_active == True, Event.is_published == True)  # noqa: E712
        .first()
    )
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    counts = EventCounts(
        registrations=db.query(EventRegistration).filter(EventRegistration.event_id == event.id).count(),
        teams=db.query(Team).filter(Team.event_id == event.id).count(),
        projects=db.query(Project).filter(
            Project.event_id == event.id,
            Project.status.in_(PUBLIC_PROJECT_STATUSES),
        ).count(),
    )

    registration = None
    if viewer:
        registration = db.query(EventRegistration).filter(
            EventRegistration.event_id == event.id,
            EventRegistration.user_id == viewer.id,
        ).first()

    return EventDetailResponse(
        event=EventResponse.model_validate(event),
        counts=counts,
        is_registered=registration is not None,
        registration=RegistrationResponse.model_validate(registration) if registration else None,
    )
