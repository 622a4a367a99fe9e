from __future__ import annotations

import logging
import os

from sqlalchemy.orm import Session

from auth import get_password_hash
from database import Base, engine, get_db
from models import Account, Profile, UserRole

logger = logging.getLogger(__name__)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def ensure_default_superadmin(db: Session) -> bool:
    """Seed the superadmin account from SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD.

    Returns True when anything was written. An existing account keeps its
    password; only its profile role is promoted.
    """
    email = str(os.environ.get("SUPERADMIN_EMAIL") or "").strip().lower()
    password = os.environ.get("SUPERADMIN_PASSWORD") or ""
    if not email or not password:
        logger.info("SUPERADMIN_EMAIL/SUPERADMIN_PASSWORD not set; skipping superadmin seed.")
        return False

    changed = False
    account = db.query(Account).filter(Account.email == email).first()
    if not account:
        account = Account(email=email, hashed_password=get_password_hash(password))
        db.add(account)
        db.flush()
        changed = True

    profile = db.query(Profile).filter(Profile.id == account.id).first()
    if not profile:
        db.add(Profile(id=account.id, email=email, full_name="Super Admin", role=UserRole.SUPERADMIN))
        changed = True
    elif profile.role != UserRole.SUPERADMIN:
        profile.role = UserRole.SUPERADMIN
        changed = True

    if changed:
        db.commit()
        logger.info("Superadmin seeded: %s", email)
    return changed


def run_bootstrap(seed_only: bool = False) -> None:
    if not seed_only:
        create_tables()
    db = next(get_db())
    try:
        ensure_default_superadmin(db)
    finally:
        db.close()
