"""Pydantic schemas for request/response validation and serialization.

Wire format is camelCase (``dueDate``, ``isActive``); request bodies also
accept the snake_case field names.
"""

import re
from datetime import date, datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .config import settings
from .models import TaskPriority, TaskStatus
from .utils import normalize_email

T = TypeVar("T")

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
_PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
_BCRYPT_MAX_BYTES = 72


class APIModel(BaseModel):
    """Base schema: camelCase aliases, accepts field names, reads ORM attributes."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ==================== Error Schemas ====================

class ErrorCode:
    """Centralized error codes carried in HTTPException details."""
    INVALID_FILTER = "INVALID_FILTER"
    INVALID_ID = "INVALID_ID"
    NO_FIELDS = "NO_FIELDS"
    NO_TOKEN = "NO_TOKEN"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    USER_GONE = "USER_GONE"
    DEACTIVATED = "DEACTIVATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    FORBIDDEN = "FORBIDDEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"


# ==================== Success Envelope ====================

class Envelope(BaseModel, Generic[T]):
    """Success envelope wrapping every API payload."""
    success: bool = True
    message: str | None = None
    data: T


class EmptyData(BaseModel):
    pass


# ==================== Shared Field Validators ====================

def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name is required")
    if not settings.USER_NAME_MIN_LENGTH <= len(v) <= settings.USER_NAME_MAX_LENGTH:
        raise ValueError(
            f"Name must be between {settings.USER_NAME_MIN_LENGTH} "
            f"and {settings.USER_NAME_MAX_LENGTH} characters"
        )
    if not _NAME_PATTERN.match(v):
        raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
    return v


def _clean_email(v: str) -> str:
    v = normalize_email(v)
    if len(v) > settings.USER_EMAIL_MAX_LENGTH:
        raise ValueError(f"Email cannot exceed {settings.USER_EMAIL_MAX_LENGTH} characters")
    return v


def _check_password(v: str) -> str:
    if len(v) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
    if len(v.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"Password cannot exceed {_BCRYPT_MAX_BYTES} bytes")
    if not _PASSWORD_PATTERN.match(v):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return v


def _clean_title(v: str | None) -> str:
    if v is None or not v.strip():
        raise ValueError("Task title is required")
    v = v.strip()
    if len(v) > settings.TASK_TITLE_MAX_LENGTH:
        raise ValueError(f"Title cannot exceed {settings.TASK_TITLE_MAX_LENGTH} characters")
    return v


def _clean_description(v: str | None) -> str:
    if v is None:
        raise ValueError("Description cannot be null")
    v = v.strip()
    if len(v) > settings.TASK_DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description cannot exceed {settings.TASK_DESCRIPTION_MAX_LENGTH} characters")
    return v


def _clean_tags(v: list[str] | None) -> list[str]:
    if v is None:
        raise ValueError("Tags cannot be null")
    if len(v) > settings.TASK_MAX_TAGS:
        raise ValueError(f"Tags must be an array with at most {settings.TASK_MAX_TAGS} items")
    tags = [tag.strip() for tag in v]
    if any(len(tag) > settings.TASK_TAG_MAX_LENGTH for tag in tags):
        raise ValueError(f"Each tag cannot exceed {settings.TASK_TAG_MAX_LENGTH} characters")
    return [tag for tag in tags if tag]


# ==================== User Schemas ====================

class UserOut(APIModel):
    """User output schema; the password hash is never part of it."""
    id: str
    name: str
    email: str
    role: str
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime


class UserData(BaseModel):
    user: UserOut


# ==================== Authentication Schemas ====================

class UserRegister(APIModel):
    """Schema for user registration with password."""
    name: str = Field(..., description="Letters, spaces, hyphens and apostrophes; 2-50 characters")
    email: EmailStr = Field(..., description="User's email address (case-insensitive)")
    password: str = Field(..., description="At least 6 characters with upper, lower and digit")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class UserLogin(APIModel):
    """Schema for user login credentials."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)


class ProfileUpdate(APIModel):
    """Partial profile update; omitted fields stay unchanged."""
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _clean_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return None if v is None else _clean_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str | None) -> str | None:
        return None if v is None else _check_password(v)


class AuthData(BaseModel):
    """Token plus the safe user representation."""
    token: str
    user: UserOut


# ==================== Task Schemas ====================

class TaskCreate(APIModel):
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _clean_description(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        return _clean_tags(v)


class TaskUpdate(APIModel):
    """Partial task update. Unknown fields are ignored; only dueDate may be set to null."""
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    tags: list[str] | None = None

    # Validators only run for fields present in the body, so None here is an explicit null
    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str:
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str:
        return _clean_description(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str]:
        return _clean_tags(v)

    @field_validator("status", "priority")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name.capitalize()} cannot be null")
        return v


class TaskOut(APIModel):
    id: str
    title: str
    description: str
    status: str
    priority: str
    due_date: date | None = None
    tags: list[str]
    owner_id: str
    created_at: datetime
    updated_at: datetime


class TaskData(BaseModel):
    task: TaskOut


# ==================== Listing & Stats Schemas ====================

class Pagination(APIModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class TaskListData(BaseModel):
    tasks: list[TaskOut]
    pagination: Pagination


class StatusCounts(APIModel):
    todo: int = 0
    in_progress: int = Field(0, alias="in-progress")
    completed: int = 0


class PriorityCounts(APIModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class TaskStats(APIModel):
    by_status: StatusCounts
    by_priority: PriorityCounts
    total: int


class TaskStatsData(BaseModel):
    stats: TaskStats
