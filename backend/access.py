"""Authorization gate shared by every event-scoped route.

The gate walks a fixed chain: viewer -> profile -> event -> registration ->
role. Each failing step produces a specific outcome and later steps never
run. Row fetches are delegated to an ``AccessStore`` so the decision itself
stays a pure function of the rows it is handed.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth import Viewer
from models import Event, EventRegistration, Profile

logger = logging.getLogger(__name__)

SITE_ADMIN_ROLES = {"admin", "superadmin"}


class Capability(str, Enum):
    AUTHENTICATED = "authenticated"
    EVENT_MEMBER = "event_member"
    EVENT_ADMIN = "event_admin"
    EVENT_JUDGE = "event_judge"
    SITE_ADMIN = "site_admin"


EVENT_SCOPED = {Capability.EVENT_MEMBER, Capability.EVENT_ADMIN, Capability.EVENT_JUDGE}


class OutcomeKind(str, Enum):
    ADMIT = "admit"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_TO_COMPLETE_REGISTRATION = "redirect_to_complete_registration"
    REDIRECT_TO_EVENT_LANDING = "redirect_to_event_landing"
    REDIRECT_TO_DASHBOARD = "redirect_to_dashboard"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"


class DenialReason(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    PROFILE_MISSING = "profile_missing"
    EVENT_NOT_FOUND = "event_not_found"
    NOT_REGISTERED = "not_registered"
    INSUFFICIENT_ROLE = "insufficient_role"
    UPSTREAM_FETCH_FAILED = "upstream_fetch_failed"


class UpstreamFetchError(Exception):
    """The data store could not answer; distinct from "no such row"."""


@dataclass(frozen=True)
class ViewerContext:
    viewer: Viewer
    profile: Any
    event: Optional[Any] = None
    registration: Optional[Any] = None

    @property
    def is_site_admin(self) -> bool:
        return role_value(getattr(self.profile, "role", None)) in SITE_ADMIN_ROLES

    @property
    def registration_role(self) -> Optional[str]:
        if self.registration is None:
            return None
        return role_value(self.registration.role)

    @property
    def is_event_admin(self) -> bool:
        return self.registration_role == "admin" or self.is_site_admin


@dataclass(frozen=True)
class AccessOutcome:
    kind: OutcomeKind
    context: Optional[ViewerContext] = None
    reason: Optional[DenialReason] = None
    redirect_to: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.kind == OutcomeKind.ADMIT


def role_value(role) -> Optional[str]:
    """Normalise enum members and raw strings to the lowercase role name."""
    if role is None:
        return None
    value = getattr(role, "value", role)
    return str(value).strip().lower()


class AccessStore:
    """Row lookups the gate needs. Absent rows are ``None``; transport
    failures raise ``UpstreamFetchError``."""

    def get_profile(self, viewer_id: int):
        raise NotImplementedError

    def get_event_by_slug(self, slug: str):
        raise NotImplementedError

    def get_registration(self, event_id: int, viewer_id: int):
        raise NotImplementedError


class SqlAccessStore(AccessStore):
    def __init__(self, db: Session):
        self.db = db

    def _first(self, query):
        try:
            return query.first()
        except SQLAlchemyError as exc:
            raise UpstreamFetchError(str(exc)) from exc

    def get_profile(self, viewer_id: int) -> Optional[Profile]:
        return self._first(self.db.query(Profile).filter(Profile.id == viewer_id))

    def get_event_by_slug(self, slug: str) -> Optional[Event]:
        return self._first(self.db.query(Event).filter(Event.slug == slug))

    def get_registration(self, event_id: int, viewer_id: int) -> Optional[EventRegistration]:
        return self._first(
            self.db.query(EventRegistration).filter(
                EventRegistration.event_id == event_id,
                EventRegistration.user_id == viewer_id,
            )
        )


def login_path(requested_path: str) -> str:
    return f"/login?redirect={quote(requested_path or '/', safe='/')}"


def event_landing_path(slug: str, reason: DenialReason) -> str:
    return f"/events/{slug}?message={reason.value}"


def _deny(kind: OutcomeKind, reason: DenialReason, redirect_to: Optional[str] = None) -> AccessOutcome:
    logger.debug("Access denied: %s (%s)", kind.value, reason.value)
    return AccessOutcome(kind=kind, reason=reason, redirect_to=redirect_to)


def _landing(slug: str, reason: DenialReason) -> AccessOutcome:
    return _deny(OutcomeKind.REDIRECT_TO_EVENT_LANDING, reason, event_landing_path(slug, reason))


def _event_visible(event) -> bool:
    return bool(getattr(event, "is_active", False)) and bool(getattr(event, "is_published", False))


def _resolve(
    store: AccessStore,
    viewer: Optional[Viewer],
    capability: Capability,
    event_slug: Optional[str],
    requested_path: str,
) -> AccessOutcome:
    if viewer is None:
        return _deny(OutcomeKind.REDIRECT_TO_LOGIN, DenialReason.NOT_AUTHENTICATED, login_path(requested_path))

    profile = store.get_profile(viewer.id)
    if profile is None:
        return _deny(OutcomeKind.REDIRECT_TO_COMPLETE_REGISTRATION, DenialReason.PROFILE_MISSING, "/register")

    if capability == Capability.AUTHENTICATED:
        return AccessOutcome(kind=OutcomeKind.ADMIT, context=ViewerContext(viewer=viewer, profile=profile))

    if capability == Capability.SITE_ADMIN:
        context = ViewerContext(viewer=viewer, profile=profile)
        if not context.is_site_admin:
            return _deny(OutcomeKind.REDIRECT_TO_DASHBOARD, DenialReason.INSUFFICIENT_ROLE, "/dashboard")
        return AccessOutcome(kind=OutcomeKind.ADMIT, context=context)

    if not event_slug:
        return _deny(OutcomeKind.NOT_FOUND, DenialReason.EVENT_NOT_FOUND)
    event = store.get_event_by_slug(event_slug)
    if event is None:
        return _deny(OutcomeKind.NOT_FOUND, DenialReason.EVENT_NOT_FOUND)
    if capability == Capability.EVENT_MEMBER and not _event_visible(event):
        return _deny(OutcomeKind.NOT_FOUND, DenialReason.EVENT_NOT_FOUND)

    registration = store.get_registration(event.id, viewer.id)
    context = ViewerContext(viewer=viewer, profile=profile, event=event, registration=registration)

    if capability == Capability.EVENT_MEMBER:
        if registration is None:
            return _landing(event.slug, DenialReason.NOT_REGISTERED)
        return AccessOutcome(kind=OutcomeKind.ADMIT, context=context)

    if capability == Capability.EVENT_ADMIN:
        # Global admins administer every event, registered or not
        if context.is_event_admin:
            return AccessOutcome(kind=OutcomeKind.ADMIT, context=context)
        return _landing(event.slug, DenialReason.INSUFFICIENT_ROLE)

    if capability == Capability.EVENT_JUDGE:
        if context.registration_role == "judge":
            return AccessOutcome(kind=OutcomeKind.ADMIT, context=context)
        return _landing(event.slug, DenialReason.INSUFFICIENT_ROLE)

    raise ValueError(f"Unknown capability: {capability}")


def evaluate_access(
    store: AccessStore,
    viewer: Optional[Viewer],
    capability: Capability,
    event_slug: Optional[str] = None,
    requested_path: str = "/",
) -> AccessOutcome:
    """Decide whether ``viewer`` may use a route requiring ``capability``.

    Never raises for store failures: an ``UpstreamFetchError`` becomes a
    ``TRANSIENT_ERROR`` outcome so callers fail closed.
    """
    try:
        return _resolve(store, viewer, Capability(capability), event_slug, requested_path)
    except UpstreamFetchError as exc:
        logger.error("Access check failed on upstream fetch (%s, %s): %s", capability, event_slug, exc)
        return AccessOutcome(
            kind=OutcomeKind.TRANSIENT_ERROR,
            reason=DenialReason.UPSTREAM_FETCH_FAILED,
            redirect_to="/",
        )
