from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi import Request
from sqlalchemy.orm import Session

from access import AccessOutcome, Capability, OutcomeKind, SqlAccessStore, ViewerContext, evaluate_access
from auth import Viewer, get_optional_viewer
from database import get_db


_OUTCOME_STATUS = {
    OutcomeKind.REDIRECT_TO_LOGIN: status.HTTP_401_UNAUTHORIZED,
    OutcomeKind.REDIRECT_TO_COMPLETE_REGISTRATION: status.HTTP_403_FORBIDDEN,
    OutcomeKind.REDIRECT_TO_EVENT_LANDING: status.HTTP_403_FORBIDDEN,
    OutcomeKind.REDIRECT_TO_DASHBOARD: status.HTTP_403_FORBIDDEN,
    OutcomeKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    OutcomeKind.TRANSIENT_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def outcome_to_http_exception(outcome: AccessOutcome) -> HTTPException:
    if outcome.kind == OutcomeKind.NOT_FOUND:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    headers = None
    if outcome.kind == OutcomeKind.REDIRECT_TO_LOGIN:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(
        status_code=_OUTCOME_STATUS[outcome.kind],
        detail={
            "reason": outcome.reason.value if outcome.reason else None,
            "redirect_to": outcome.redirect_to,
        },
        headers=headers,
    )


def _event_slug_from_request(request: Request) -> Optional[str]:
    return request.path_params.get("event_slug") or request.path_params.get("slug")


def require_access(capability: Capability):
    def _checker(
        request: Request,
        viewer: Optional[Viewer] = Depends(get_optional_viewer),
        db: Session = Depends(get_db),
    ) -> ViewerContext:
        outcome = evaluate_access(
            SqlAccessStore(db),
            viewer,
            capability,
            event_slug=_event_slug_from_request(request),
            requested_path=request.url.path,
        )
        if not outcome.admitted:
            raise outcome_to_http_exception(outcome)
        return outcome.context

    return _checker


require_authenticated = require_access(Capability.AUTHENTICATED)
require_event_member = require_access(Capability.EVENT_MEMBER)
require_event_admin = require_access(Capability.EVENT_ADMIN)
require_event_judge = require_access(Capability.EVENT_JUDGE)
require_site_admin = require_access(Capability.SITE_ADMIN)
