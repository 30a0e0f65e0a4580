"""
API request and response models for the Taskboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tasks/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models do shape validation only (types, lengths, enum membership,
date parsing). Rules that depend on who is asking live in core/policy.py;
rules that need the database (email uniqueness, owner existence) live in the
route handlers.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from auth.models import User
from core.policy import Role
from tasks.models import Task

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TaskStatusEnum(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=72)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    password_confirmation must repeat password exactly.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=72)
    password_confirmation: str = Field(max_length=72)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        return self


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    roles: list[str]
    oauth_provider: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            roles=user.roles,
            oauth_provider=user.oauth_provider,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class AuthResponse(BaseModel):
    """Returned by login and register: a bearer token plus the user it belongs to."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class OAuthProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserUpdate(BaseModel):
    """Request body for PUT/PATCH /api/v1/users/{id}. Omitted fields are unchanged.

    role replaces the user's whole role set with exactly [role].
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    role: Optional[Role] = None

    @field_validator("name", "email", "role", mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks.

    owner_id (also accepted as user_id) is optional; when omitted the task
    belongs to the caller. due_date, when given, must be after today.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    status: TaskStatusEnum = TaskStatusEnum.pending
    due_date: Optional[date] = None
    owner_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("owner_id", "user_id"))

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v <= date.today():
            raise ValueError("due_date must be a date after today")
        return v


class TaskUpdate(BaseModel):
    """Request body for PUT/PATCH /api/v1/tasks/{id}. Partial update.

    description and due_date may be sent as null to clear them; title,
    status and owner_id may not. Use model_fields_set to tell "omitted" from
    "set to null".
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatusEnum] = None
    due_date: Optional[date] = None
    owner_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("owner_id", "user_id"))

    @field_validator("title", "status", "owner_id", mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class OwnerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str


class TaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    status: str
    due_date: Optional[str]
    owner_id: int
    owner: Optional[OwnerSummary] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task, owner: Optional[User] = None) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            due_date=task.due_date,
            owner_id=task.owner_id,
            owner=OwnerSummary(id=owner.id, name=owner.name, email=owner.email) if owner else None,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class MonthCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: int
    completed: int


class DashboardResponse(BaseModel):
    """Response for GET /api/v1/dashboard.

    scope is "all" for admins and "own" for everyone else; every count in the
    payload is restricted accordingly.
    """

    model_config = ConfigDict(frozen=True)

    scope: str
    year: int
    total_tasks: int
    status_counts: dict[str, int]
    completed_by_month: list[MonthCount]
