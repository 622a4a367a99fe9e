from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from access import (
    AccessStore,
    Capability,
    DenialReason,
    OutcomeKind,
    SqlAccessStore,
    UpstreamFetchError,
    evaluate_access,
)
from auth import Viewer

SLUG = "hack-2026"
VIEWER = Viewer(id=7, email="viewer@example.com")


class FakeStore(AccessStore):
    def __init__(self, profiles=None, events=None, registrations=None, fail_on=None):
        self.profiles = profiles or {}
        self.events = events or {}
        self.registrations = registrations or {}
        self.fail_on = fail_on
        self.calls = []

    def _record(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise UpstreamFetchError(f"{name} lookup timed out")

    def get_profile(self, viewer_id):
        self._record("profile")
        return self.profiles.get(viewer_id)

    def get_event_by_slug(self, slug):
        self._record("event")
        return self.events.get(slug)

    def get_registration(self, event_id, viewer_id):
        self._record("registration")
        return self.registrations.get((event_id, viewer_id))


def _event(is_active=True, is_published=True):
    return SimpleNamespace(id=1, slug=SLUG, is_active=is_active, is_published=is_published)


def _store(profile_role="participant", registration_role=None, event=None, fail_on=None):
    event = event or _event()
    registrations = {}
    if registration_role:
        registrations[(event.id, VIEWER.id)] = SimpleNamespace(role=registration_role, team_id=None)
    profiles = {}
    if profile_role:
        profiles[VIEWER.id] = SimpleNamespace(id=VIEWER.id, role=profile_role)
    return FakeStore(profiles=profiles, events={SLUG: event}, registrations=registrations, fail_on=fail_on)


@pytest.mark.parametrize("capability", list(Capability))
def test_anonymous_viewer_redirects_to_login_without_lookups(capability):
    store = _store(registration_role="admin")
    outcome = evaluate_access(store, None, capability, SLUG, requested_path=f"/events/{SLUG}/dashboard")

    assert outcome.kind == OutcomeKind.REDIRECT_TO_LOGIN
    assert outcome.reason == DenialReason.NOT_AUTHENTICATED
    assert outcome.redirect_to == f"/login?redirect=/events/{SLUG}/dashboard"
    assert store.calls == []


def test_missing_profile_redirects_to_complete_registration():
    store = _store(profile_role=None)
    outcome = evaluate_access(store, VIEWER, Capability.EVENT_MEMBER, SLUG)

    assert outcome.kind == OutcomeKind.REDIRECT_TO_COMPLETE_REGISTRATION
    assert outcome.reason == DenialReason.PROFILE_MISSING
    assert outcome.redirect_to == "/register"
    assert store.calls == ["profile"]


def test_authenticated_admits_without_event_lookup():
    store = _store()
    outcome = evaluate_access(store, VIEWER, Capability.AUTHENTICATED)

    assert outcome.admitted
    assert outcome.context.viewer == VIEWER
    assert outcome.context.event is None
    assert store.calls == ["profile"]


def test_unknown_event_is_not_found():
    store = _store()
    outcome = evaluate_access(store, VIEWER, Capability.EVENT_MEMBER, "missing-event")

    assert outcome.kind == OutcomeKind.NOT_FOUND
    assert outcome.reason == DenialReason.EVENT_NOT_FOUND
    assert "registration" not in store.calls


def test_unpublished_event_hidden_from_members_but_not_admins():
    hidden = _event(is_published=False)
    member = evaluate_access(_store(registration_role="participant", event=hidden), VIEWER, Capability.EVENT_MEMBER, SLUG)
    admin = evaluate_access(_store(registration_role="admin", event=hidden), VIEWER, Capability.EVENT_ADMIN, SLUG)

    assert member.kind == OutcomeKind.NOT_FOUND
    assert admin.admitted


def test_unregistered_member_redirects_to_event_landing():
    outcome = evaluate_access(_store(), VIEWER, Capability.EVENT_MEMBER, SLUG)

    assert outcome.kind == OutcomeKind.REDIRECT_TO_EVENT_LANDING
    assert outcome.reason == DenialReason.NOT_REGISTERED
    assert outcome.redirect_to == f"/events/{SLUG}?message=not_registered"


def test_registered_participant_is_admitted_with_full_context():
    outcome = evaluate_access(_store(registration_role="participant"), VIEWER, Capability.EVENT_MEMBER, SLUG)

    assert outcome.admitted
    assert outcome.context.event.slug == SLUG
    assert outcome.context.registration_role == "participant"
    assert not outcome.context.is_event_admin


def test_participant_cannot_reach_event_admin():
    outcome = evaluate_access(_store(registration_role="participant"), VIEWER, Capability.EVENT_ADMIN, SLUG)

    assert outcome.kind == OutcomeKind.REDIRECT_TO_EVENT_LANDING
    assert outcome.reason == DenialReason.INSUFFICIENT_ROLE
    assert outcome.redirect_to == f"/events/{SLUG}?message=insufficient_role"


def test_event_admin_registration_is_admitted():
    outcome = evaluate_access(_store(registration_role="admin"), VIEWER, Capability.EVENT_ADMIN, SLUG)

    assert outcome.admitted
    assert outcome.context.is_event_admin


@pytest.mark.parametrize("site_role", ["admin", "superadmin"])
def test_site_admin_bypasses_to_event_admin_without_registration(site_role):
    outcome = evaluate_access(_store(profile_role=site_role), VIEWER, Capability.EVENT_ADMIN, SLUG)

    assert outcome.admitted
    assert outcome.context.registration is None
    assert outcome.context.is_event_admin


def test_judge_capability_requires_judge_registration():
    judge = evaluate_access(_store(registration_role="judge"), VIEWER, Capability.EVENT_JUDGE, SLUG)
    participant = evaluate_access(_store(registration_role="participant"), VIEWER, Capability.EVENT_JUDGE, SLUG)
    site_admin = evaluate_access(_store(profile_role="superadmin"), VIEWER, Capability.EVENT_JUDGE, SLUG)

    assert judge.admitted
    assert participant.reason == DenialReason.INSUFFICIENT_ROLE
    assert site_admin.kind == OutcomeKind.REDIRECT_TO_EVENT_LANDING


def test_site_admin_capability():
    denied = evaluate_access(_store(), VIEWER, Capability.SITE_ADMIN)
    admitted = evaluate_access(_store(profile_role="admin"), VIEWER, Capability.SITE_ADMIN)

    assert denied.kind == OutcomeKind.REDIRECT_TO_DASHBOARD
    assert denied.reason == DenialReason.INSUFFICIENT_ROLE
    assert denied.redirect_to == "/dashboard"
    assert admitted.admitted


@pytest.mark.parametrize("fail_on", ["profile", "event", "registration"])
def test_upstream_failure_becomes_transient_error(fail_on):
    store = _store(registration_role="participant", fail_on=fail_on)
    outcome = evaluate_access(store, VIEWER, Capability.EVENT_MEMBER, SLUG)

    assert outcome.kind == OutcomeKind.TRANSIENT_ERROR
    assert outcome.reason == DenialReason.UPSTREAM_FETCH_FAILED
    assert outcome.redirect_to == "/"
    assert outcome.context is None


def test_same_inputs_give_same_outcome():
    first = evaluate_access(_store(registration_role="judge"), VIEWER, Capability.EVENT_ADMIN, SLUG)
    second = evaluate_access(_store(registration_role="judge"), VIEWER, Capability.EVENT_ADMIN, SLUG)

    assert first == second


class _BrokenQuery:
    def filter(self, *args):
        return self

    def first(self):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))


class _BrokenSession:
    def query(self, *args):
        return _BrokenQuery()


def test_sql_store_wraps_driver_errors():
    store = SqlAccessStore(_BrokenSession())

    with pytest.raises(UpstreamFetchError):
        store.get_profile(1)

    outcome = evaluate_access(store, VIEWER, Capability.AUTHENTICATED)
    assert outcome.kind == OutcomeKind.TRANSIENT_ERROR
