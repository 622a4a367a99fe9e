from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Enum as SQLEnum, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class UserRole(enum.Enum):
    PARTICIPANT = "participant"
    JUDGE = "judge"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class SkillLevel(enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class RegistrationRole(enum.Enum):
    PARTICIPANT = "participant"
    ADMIN = "admin"
    JUDGE = "judge"


class RegistrationStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHECKED_IN = "checked_in"
    CANCELLED = "cancelled"


class ProjectStatus(enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    FINALIST = "finalist"
    WINNER = "winner"
    DISQUALIFIED = "disqualified"


class AnnouncementAudience(enum.Enum):
    ALL = "all"
    PARTICIPANTS = "participants"
    TEAM_LEADERS = "team_leaders"
    JUDGES = "judges"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    profile = relationship("Profile", back_populates="account", uselist=False)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, ForeignKey("accounts.id"), primary_key=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    avatar_url = Column(String(500), nullable=True)
    github_username = Column(String(100), nullable=True)
    linkedin_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    skills = Column(JSON, nullable=True)  # ["python", "react"]
    skill_level = Column(SQLEnum(SkillLevel), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.PARTICIPANT, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    account = relationship("Account", back_populates="profile")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(120), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    tagline = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    is_virtual = Column(Boolean, default=False)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    registration_deadline = Column(DateTime(timezone=True), nullable=True)
    submission_deadline = Column(DateTime(timezone=True), nullable=True)
    max_participants = Column(Integer, nullable=True)
    max_team_size = Column(Integer, default=4, nullable=False)
    min_team_size = Column(Integer, default=1, nullable=False)
    is_active = Column(Boolean, default=True)
    is_published = Column(Boolean, default=False)
    is_registration_open = Column(Boolean, default=False)
    is_submission_open = Column(Boolean, default=False)
    is_judging_open = Column(Boolean, default=False)
    is_results_published = Column(Boolean, default=False)
    created_by = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    join_code = Column(String(6), unique=True, index=True, nullable=False)
    leader_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    max_members = Column(Integer, nullable=True)
    is_open = Column(Boolean, default=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_registration_user"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    role = Column(SQLEnum(RegistrationRole), default=RegistrationRole.PARTICIPANT, nullable=False)
    status = Column(SQLEnum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False)
    agreed_to_coc = Column(Boolean, default=False)
    agreed_to_terms = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    tagline = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    github_url = Column(String(500), nullable=True)
    demo_url = Column(String(500), nullable=True)
    video_url = Column(String(500), nullable=True)
    cover_image_url = Column(String(500), nullable=True)
    tech_stack = Column(JSON, nullable=True)
    status = Column(SQLEnum(ProjectStatus), default=ProjectStatus.DRAFT, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    average_score = Column(Float, nullable=True)  # cache of scoring.aggregate
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    scores = relationship("Score", back_populates="project")


class ScoringCriterion(Base):
    __tablename__ = "scoring_criteria"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    weight = Column(Float, default=1.0, nullable=False)
    max_score = Column(Float, default=10.0, nullable=False)
    order = Column(Integer, default=0)


class Score(Base):
    __tablename__ = "scores"
    __table_args__ = (UniqueConstraint("project_id", "judge_id", name="uq_score_project_judge"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    judge_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    criteria_scores = Column(JSON, nullable=True)  # {"<criterion id>": 8.5, ...}
    total_score = Column(Float, default=0, nullable=False)
    comments = Column(Text, nullable=True)
    private_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    project = relationship("Project", back_populates="scores")


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    audience = Column(SQLEnum(AnnouncementAudience), default=AnnouncementAudience.ALL, nullable=False)
    is_published = Column(Boolean, default=True)
    is_pinned = Column(Boolean, default=False)
    publish_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, nullable=True)
    admin_email = Column(String(255), nullable=False)
    admin_name = Column(String(255), nullable=False)
    event_slug = Column(String(120), nullable=True, index=True)
    action = Column(String(255), nullable=False)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
