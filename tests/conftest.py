from datetime import datetime, timedelta, timezone
from pathlib import Path
import os
import sys

os.environ.setdefault("JWT_SECRET_KEY", "test-only-jwt-secret-0123456789abcdefghijklmnop")
os.environ["DATABASE_URL"] = "sqlite://"

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from auth import create_access_token, get_password_hash  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402
from models import (  # noqa: E402
    Account,
    Event,
    EventRegistration,
    Profile,
    Project,
    ProjectStatus,
    RegistrationRole,
    RegistrationStatus,
    Score,
    ScoringCriterion,
    Team,
    UserRole,
)
from server import app  # noqa: E402

PASSWORD = "password123"


class Factory:
    """Rows for API tests, committed immediately so request sessions see them."""

    def __init__(self, db):
        self.db = db
        self._join_codes = 0

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def user(self, email, role=UserRole.PARTICIPANT, with_profile=True, full_name=None):
        account = self._save(Account(email=email, hashed_password=get_password_hash(PASSWORD)))
        if with_profile:
            self._save(Profile(
                id=account.id,
                email=email,
                full_name=full_name or email.split("@")[0].title(),
                role=role,
            ))
        return account

    def headers(self, account):
        token = create_access_token({"sub": str(account.id), "email": account.email})
        return {"Authorization": f"Bearer {token}"}

    def event(self, slug="hack-2026", **overrides):
        values = dict(
            slug=slug,
            name="Hack 2026",
            is_active=True,
            is_published=True,
            is_registration_open=True,
            is_submission_open=True,
            is_judging_open=True,
            max_team_size=4,
            min_team_size=1,
        )
        values.update(overrides)
        return self._save(Event(**values))

    def registration(self, event, account, role=RegistrationRole.PARTICIPANT, team=None):
        return self._save(EventRegistration(
            event_id=event.id,
            user_id=account.id,
            role=role,
            status=RegistrationStatus.APPROVED,
            team_id=team.id if team else None,
            agreed_to_coc=True,
            agreed_to_terms=True,
        ))

    def team(self, event, leader, name="Team"):
        self._join_codes += 1
        return self._save(Team(
            event_id=event.id,
            name=name,
            join_code=f"T{self._join_codes:05d}",
            leader_id=leader.id,
            is_open=True,
        ))

    def project(self, event, team, title="Project", status=ProjectStatus.SUBMITTED, submitted_minutes_ago=0):
        submitted_at = None
        if status != ProjectStatus.DRAFT:
            submitted_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=submitted_minutes_ago)
        return self._save(Project(
            event_id=event.id,
            team_id=team.id,
            title=title,
            status=status,
            submitted_at=submitted_at,
        ))

    def criterion(self, event, name="Impact", weight=1.0, max_score=10.0, order=0):
        return self._save(ScoringCriterion(
            event_id=event.id,
            name=name,
            weight=weight,
            max_score=max_score,
            order=order,
        ))

    def score(self, project, judge, total_score):
        return self._save(Score(
            project_id=project.id,
            judge_id=judge.id,
            event_id=project.event_id,
            criteria_scores={},
            total_score=total_score,
        ))


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def factory(db_session):
    return Factory(db_session)


@pytest.fixture()
def client(db_session):
    return TestClient(app)
