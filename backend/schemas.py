from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator
from typing import Annotated, Optional, List, Dict
from datetime import datetime
from enum import Enum
import re
from urllib.parse import urlparse


class UserRoleEnum(str, Enum):
    PARTICIPANT = "participant"
    JUDGE = "judge"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class SkillLevelEnum(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class RegistrationRoleEnum(str, Enum):
    PARTICIPANT = "participant"
    ADMIN = "admin"
    JUDGE = "judge"


class RegistrationStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHECKED_IN = "checked_in"
    CANCELLED = "cancelled"


class ProjectStatusEnum(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    FINALIST = "finalist"
    WINNER = "winner"
    DISQUALIFIED = "disqualified"


class AnnouncementAudienceEnum(str, Enum):
    ALL = "all"
    PARTICIPANTS = "participants"
    TEAM_LEADERS = "team_leaders"
    JUDGES = "judges"


EVENT_SLUG_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{1,118}[a-z0-9])$")


def _enum_value(value):
    # ORM columns hold the models' enum members; responses use the schema enums
    return getattr(value, "value", value)


UserRoleField = Annotated[UserRoleEnum, BeforeValidator(_enum_value)]
SkillLevelField = Annotated[SkillLevelEnum, BeforeValidator(_enum_value)]
RegistrationRoleField = Annotated[RegistrationRoleEnum, BeforeValidator(_enum_value)]
RegistrationStatusField = Annotated[RegistrationStatusEnum, BeforeValidator(_enum_value)]
ProjectStatusField = Annotated[ProjectStatusEnum, BeforeValidator(_enum_value)]
AudienceField = Annotated[AnnouncementAudienceEnum, BeforeValidator(_enum_value)]


def _normalize_optional_http_url(value: Optional[str], field_name: str, max_length: int = 500) -> Optional[str]:
    raw = str(value or "").strip()
    if not raw:
        return None
    if len(raw) > max_length:
        raise ValueError(f"{field_name} must be at most {max_length} characters")
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be a valid http/https URL")
    return raw


# Auth
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# Profiles
class ProfileCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    avatar_url: Optional[str] = None
    github_username: Optional[str] = Field(None, max_length=100)
    linkedin_url: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    skill_level: Optional[SkillLevelEnum] = None

    @field_validator("avatar_url", "linkedin_url")
    @classmethod
    def _validate_urls(cls, value, info):
        return _normalize_optional_http_url(value, info.field_name)

    @field_validator("skills")
    @classmethod
    def _normalize_skills(cls, value):
        if value is None:
            return None
        seen = []
        for item in value:
            skill = str(item or "").strip().lower()
            if skill and skill not in seen:
                seen.append(skill)
        return seen


class ProfileUpdate(ProfileCreate):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    avatar_url: Optional[str] = None
    github_username: Optional[str] = None
    linkedin_url: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    skill_level: Optional[SkillLevelField] = None
    role: UserRoleField
    created_at: Optional[datetime] = None


class MeResponse(BaseModel):
    id: int
    email: str
    profile: Optional[ProfileResponse] = None


class RoleUpdate(BaseModel):
    role: UserRoleEnum


# Events
class EventBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    tagline: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    is_virtual: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    max_participants: Optional[int] = Field(None, ge=1)
    max_team_size: int = Field(4, ge=1, le=20)
    min_team_size: int = Field(1, ge=1, le=20)


class EventCreate(EventBase):
    slug: str = Field(..., min_length=3, max_length=120)

    @field_validator("slug")
    @classmethod
    def _validate_slug(cls, value: str) -> str:
        slug = str(value or "").strip().lower()
        if not EVENT_SLUG_RE.match(slug):
            raise ValueError("slug must contain lowercase letters, digits and hyphens")
        return slug


class EventUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    tagline: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    is_virtual: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    max_participants: Optional[int] = Field(None, ge=1)
    max_team_size: Optional[int] = Field(None, ge=1, le=20)
    min_team_size: Optional[int] = Field(None, ge=1, le=20)
    is_active: Optional[bool] = None
    is_published: Optional[bool] = None
    is_registration_open: Optional[bool] = None
    is_submission_open: Optional[bool] = None
    is_judging_open: Optional[bool] = None
    is_results_published: Optional[bool] = None


class EventResponse(EventBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    is_active: bool
    is_published: bool
    is_registration_open: bool
    is_submission_open: bool
    is_judging_open: bool
    is_results_published: bool
    created_at: Optional[datetime] = None


class EventCounts(BaseModel):
    registrations: int = 0
    teams: int = 0
    projects: int = 0


# Registrations
class RegistrationCreate(BaseModel):
    agreed_to_coc: bool
    agreed_to_terms: bool


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    user_id: int
    team_id: Optional[int] = None
    role: RegistrationRoleField
    status: RegistrationStatusField
    created_at: Optional[datetime] = None


class RegistrationUpdate(BaseModel):
    status: Optional[RegistrationStatusEnum] = None
    role: Optional[RegistrationRoleEnum] = None


class ParticipantResponse(RegistrationResponse):
    full_name: str
    email: str
    avatar_url: Optional[str] = None
    team_name: Optional[str] = None


class EventDetailResponse(BaseModel):
    event: EventResponse
    counts: EventCounts
    is_registered: bool = False
    registration: Optional[RegistrationResponse] = None


class JudgeInvite(BaseModel):
    email: EmailStr


# Teams
class TeamCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    max_members: Optional[int] = Field(None, ge=1, le=20)


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None
    is_open: Optional[bool] = None


class TeamJoin(BaseModel):
    join_code: str = Field(..., min_length=6, max_length=6)


class TeamMemberResponse(BaseModel):
    user_id: int
    full_name: str
    avatar_url: Optional[str] = None
    is_leader: bool = False


class TeamResponse(BaseModel):
    id: int
    event_id: int
    name: str
    description: Optional[str] = None
    join_code: Optional[str] = None
    leader_id: int
    max_members: int
    is_open: bool
    members: List[TeamMemberResponse] = Field(default_factory=list)


class TeamOverview(BaseModel):
    team: Optional[TeamResponse] = None
    is_leader: bool = False
    open_teams: List[TeamResponse] = Field(default_factory=list)


# Projects
class ProjectUpsert(BaseModel):
    title: str = Field(..., min_length=2, max_length=255)
    tagline: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    video_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    tech_stack: Optional[List[str]] = None

    @field_validator("github_url", "demo_url", "video_url", "cover_image_url")
    @classmethod
    def _validate_urls(cls, value, info):
        return _normalize_optional_http_url(value, info.field_name)


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    team_id: int
    title: str
    tagline: Optional[str] = None
    description: Optional[str] = None
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    video_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    tech_stack: Optional[List[str]] = None
    status: ProjectStatusField
    submitted_at: Optional[datetime] = None
    average_score: Optional[float] = None
    created_at: Optional[datetime] = None


class ProjectWorkspace(BaseModel):
    team: Optional[TeamResponse] = None
    project: Optional[ProjectResponse] = None
    is_team_leader: bool = False


class PresignRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: str = Field(..., min_length=1)


class PresignResponse(BaseModel):
    upload_url: str
    public_url: str
    key: str
    content_type: str


# Announcements
class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    audience: AnnouncementAudienceEnum = AnnouncementAudienceEnum.ALL
    is_published: bool = True
    is_pinned: bool = False
    publish_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class AnnouncementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    title: str
    content: str
    audience: AudienceField
    is_pinned: bool
    publish_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DashboardResponse(BaseModel):
    event: EventResponse
    registration: RegistrationResponse
    team: Optional[TeamResponse] = None
    project: Optional[ProjectResponse] = None
    announcement_count: int = 0


# Leaderboard
class LeaderboardEntry(BaseModel):
    rank: Optional[int] = None
    project_id: int
    title: str
    tagline: Optional[str] = None
    status: ProjectStatusField
    team_id: int
    team_name: Optional[str] = None
    average_score: Optional[float] = None
    judge_count: Optional[int] = None
    submitted_at: Optional[datetime] = None


class LeaderboardResponse(BaseModel):
    event_slug: str
    results_published: bool
    scores_visible: bool
    entries: List[LeaderboardEntry] = Field(default_factory=list)


# Judging
class CriterionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    weight: float = Field(1.0, gt=0, le=100)
    max_score: float = Field(10.0, gt=0, le=1000)
    order: int = 0


class CriterionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    name: str
    description: Optional[str] = None
    weight: float
    max_score: float
    order: int


class ScoreSubmit(BaseModel):
    criteria_scores: Dict[str, float]
    comments: Optional[str] = None
    private_notes: Optional[str] = None


class ScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    judge_id: int
    criteria_scores: Optional[Dict[str, float]] = None
    total_score: float
    comments: Optional[str] = None
    private_notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class JudgePortalResponse(BaseModel):
    event: EventResponse
    criteria: List[CriterionResponse] = Field(default_factory=list)
    projects: List[ProjectResponse] = Field(default_factory=list)
    scores: List[ScoreResponse] = Field(default_factory=list)
    scored_project_ids: List[int] = Field(default_factory=list)


# Event admin
class AdminEventStats(BaseModel):
    participants: int = 0
    teams: int = 0
    projects: int = 0
    submitted: int = 0
    judges: int = 0
    projects_judged: int = 0
    pending_registrations: int = 0


class AdminRecentProject(BaseModel):
    id: int
    title: str
    status: ProjectStatusField
    submitted_at: Optional[datetime] = None
    team_name: Optional[str] = None


class AdminDashboardResponse(BaseModel):
    event: EventResponse
    stats: AdminEventStats
    recent_registrations: List[ParticipantResponse] = Field(default_factory=list)
    recent_projects: List[AdminRecentProject] = Field(default_factory=list)


class AdminProjectEntry(ProjectResponse):
    team_name: Optional[str] = None
    judge_count: int = 0
    rank: Optional[int] = None


class AdminProjectCounts(BaseModel):
    total: int = 0
    draft: int = 0
    submitted: int = 0


class AdminProjectsResponse(BaseModel):
    projects: List[AdminProjectEntry] = Field(default_factory=list)
    counts: AdminProjectCounts
    current_filter: str = "all"


class AdminLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_id: Optional[int] = None
    admin_email: str
    admin_name: str
    event_slug: Optional[str] = None
    action: str
    method: Optional[str] = None
    path: Optional[str] = None
    meta: Optional[dict] = None
    created_at: Optional[datetime] = None
