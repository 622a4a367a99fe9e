import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from access import ViewerContext
from auth import (
    Viewer,
    decode_token,
    get_current_viewer,
    get_password_hash,
    issue_token_pair,
    verify_password,
)
from database import get_db
from models import Account, Profile, SkillLevel, UserRole
from schemas import (
    LoginRequest,
    MeResponse,
    ProfileCreate,
    ProfileResponse,
    ProfileUpdate,
    RefreshTokenRequest,
    SignupRequest,
    TokenResponse,
)
from security import require_authenticated

router = APIRouter()
logger = logging.getLogger(__name__)


def _normalize_email(value: str) -> str:
    return str(value or "").strip().lower()


def _normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


@router.post("/auth/signup", response_model=TokenResponse)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    email = _normalize_email(payload.email)
    existing = db.query(Account).filter(Account.email == email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Account already exists")
    account = Account(email=email, hashed_password=get_password_hash(payload.password))
    db.add(account)
    db.commit()
    db.refresh(account)
    logger.info("Account created: id=%s", account.id)
    return TokenResponse(**issue_token_pair(account.id, account.email))


@router.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    account = db.query(Account).filter(Account.email == _normalize_email(payload.email)).first()
    if not account or not verify_password(payload.password, account.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return TokenResponse(**issue_token_pair(account.id, account.email))


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(payload: RefreshTokenRequest, db: Session = Depends(get_db)):
    claims = decode_token(payload.refresh_token)
    if claims.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    try:
        account_id = int(claims.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")
    return TokenResponse(**issue_token_pair(account.id, account.email))


@router.get("/auth/me", response_model=MeResponse)
def me(viewer: Viewer = Depends(get_current_viewer), db: Session = Depends(get_db)):
    account = db.query(Account).filter(Account.id == viewer.id).first()
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")
    profile = db.query(Profile).filter(Profile.id == account.id).first()
    return MeResponse(
        id=account.id,
        email=account.email,
        profile=ProfileResponse.model_validate(profile) if profile else None,
    )


@router.post("/auth/profile", response_model=ProfileResponse)
def complete_profile(
    payload: ProfileCreate,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    account = db.query(Account).filter(Account.id == viewer.id).first()
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")
    if db.query(Profile).filter(Profile.id == account.id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Profile already exists")
    profile = Profile(
        id=account.id,
        email=account.email,
        full_name=payload.full_name.strip(),
        avatar_url=payload.avatar_url,
        github_username=_normalize_optional_text(payload.github_username),
        linkedin_url=payload.linkedin_url,
        bio=_normalize_optional_text(payload.bio),
        skills=payload.skills,
        skill_level=SkillLevel(payload.skill_level.value) if payload.skill_level else None,
        role=UserRole.PARTICIPANT,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return ProfileResponse.model_validate(profile)


@router.put("/auth/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdate,
    context: ViewerContext = Depends(require_authenticated),
    db: Session = Depends(get_db),
):
    profile = context.profile
    updates = payload.model_dump(exclude_unset=True)
    if "full_name" in updates:
        full_name = _normalize_optional_text(updates.pop("full_name"))
        if not full_name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Full name cannot be empty")
        profile.full_name = full_name
    if "skill_level" in updates:
        level = updates.pop("skill_level")
        profile.skill_level = SkillLevel(level.value) if level else None
    for field in ("github_username", "bio"):
        if field in updates:
            setattr(profile, field, _normalize_optional_text(updates.pop(field)))
    for field, value in updates.items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    return ProfileResponse.model_validate(profile)
