"""Business logic layer: authentication, profiles, task CRUD, listing and stats.

Store results are converted to output schemas here, and store-level
outcomes (None, ValueError, InvalidFilter) are mapped to HTTP errors.
"""

import uuid
from enum import Enum

from fastapi import status

from .schemas import (
    AuthData,
    ErrorCode,
    Pagination,
    PriorityCounts,
    ProfileUpdate,
    StatusCounts,
    TaskCreate,
    TaskListData,
    TaskOut,
    TaskStats,
    TaskUpdate,
    UserLogin,
    UserOut,
    UserRegister,
)
from . import crud
from .auth import hash_password, verify_password, issue_token
from .cache import cache_manager, make_cache_key, USER_PROFILE_PREFIX
from .config import settings
from .errors import api_error
from .logger import logger
from .models import TaskPriority, TaskStatus, User, Task
from .query import InvalidFilter, build_task_query, page_info

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
DEACTIVATED_MESSAGE = "Your account has been deactivated. Please contact support."
# Checked against when the email is unknown so both failure paths pay for one bcrypt verify
DUMMY_PASSWORD_HASH = hash_password("taskflow-unknown-account")

# ==================== Helper Functions ====================


def to_user_out(user: User) -> UserOut:
    return UserOut.model_validate(user)


def to_task_out(task: Task) -> TaskOut:
    return TaskOut.model_validate(task)


def _task_not_found(task_id: str):
    return api_error(
        status.HTTP_404_NOT_FOUND, ErrorCode.TASK_NOT_FOUND, "Task not found.",
        details={"task_id": task_id},
    )


def _duplicate_email(message: str = "An account with this email already exists."):
    return api_error(status.HTTP_409_CONFLICT, ErrorCode.DUPLICATE_EMAIL, message)


def _parse_task_id(task_id: str) -> str:
    """Canonical form of a task id; malformed ids are a 400, not a 404."""
    try:
        return str(uuid.UUID(task_id))
    except (ValueError, TypeError, AttributeError):
        raise api_error(
            status.HTTP_400_BAD_REQUEST, ErrorCode.INVALID_ID, f"Invalid id: {task_id}",
        ) from None


def _store_values(fields: dict) -> dict:
    """Enum members -> their string values for the String columns."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields.items()}


async def _cache_profile(user_out: UserOut) -> None:
    if settings.CACHE_ENABLED:
        await cache_manager.set(
            make_cache_key(USER_PROFILE_PREFIX, user_out.id),
            user_out.model_dump(mode="json"),
        )


async def _invalidate_profile(user_id: str) -> None:
    if settings.CACHE_ENABLED:
        await cache_manager.delete(make_cache_key(USER_PROFILE_PREFIX, user_id))


# ==================== Authentication ====================


async def register_user(data: UserRegister) -> AuthData:
    """Create an account and sign the new user in."""
    logger.info(f"Registering new user: {data.email}")

    if await crud.select_user_by_email(data.email):
        logger.warning(f"Registration failed - email already exists: {data.email}")
        raise _duplicate_email()

    try:
        user = await crud.insert_user(data.name, data.email, hash_password(data.password))
    except ValueError as e:
        # Lost a race with a concurrent registration for the same email
        logger.warning(f"Registration failed at insert - email already exists: {data.email}")
        raise _duplicate_email() from e

    logger.info(f"User registered successfully: id={user.id}")
    user_out = to_user_out(user)
    await _cache_profile(user_out)
    return AuthData(token=issue_token(user.id), user=user_out)


async def authenticate_user(data: UserLogin) -> AuthData:
    """Check credentials and issue a token.

    Unknown email and wrong password give the same 401 so accounts
    cannot be enumerated; the deactivated message only follows a correct password.
    """
    logger.info(f"Authentication attempt for user: {data.email}")

    user = await crud.select_user_by_email(data.email)
    password_ok = verify_password(data.password, user.hashed_password if user else DUMMY_PASSWORD_HASH)
    if user is None or not password_ok:
        logger.warning(f"Authentication failed - bad credentials: {data.email}")
        raise api_error(
            status.HTTP_401_UNAUTHORIZED, ErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE,
        )

    if not user.is_active:
        logger.warning(f"Authentication failed - user is inactive: {data.email}")
        raise api_error(status.HTTP_401_UNAUTHORIZED, ErrorCode.DEACTIVATED, DEACTIVATED_MESSAGE)

    user.last_login = await crud.touch_last_login(user.id)
    logger.info(f"Authentication successful for user: id={user.id}")
    await _invalidate_profile(user.id)
    return AuthData(token=issue_token(user.id), user=to_user_out(user))


# ==================== Profile ====================


async def get_profile(user_id: str) -> UserOut:
    """Current user's profile, served from cache when possible."""
    if settings.CACHE_ENABLED:
        cached = await cache_manager.get(make_cache_key(USER_PROFILE_PREFIX, user_id))
        if cached:
            return UserOut.model_validate(cached)

    user = await crud.select_user(user_id)
    if user is None:
        raise api_error(status.HTTP_404_NOT_FOUND, ErrorCode.USER_NOT_FOUND, "User not found.")

    user_out = to_user_out(user)
    await _cache_profile(user_out)
    return user_out


async def update_profile(user_id: str, data: ProfileUpdate) -> UserOut:
    """Partial profile update; a new password is re-hashed before storage."""
    fields = data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in fields and await crud.email_taken_by_other(fields["email"], user_id):
        logger.warning(f"Profile update rejected - email in use: user={user_id}")
        raise _duplicate_email("This email address is already in use.")

    if "password" in fields:
        fields["hashed_password"] = hash_password(fields.pop("password"))

    try:
        user = await crud.update_user(user_id, fields)
    except ValueError as e:
        raise _duplicate_email("This email address is already in use.") from e

    if user is None:
        raise api_error(status.HTTP_404_NOT_FOUND, ErrorCode.USER_NOT_FOUND, "User not found.")

    logger.info(f"Profile updated: id={user_id} fields={sorted(fields)}")
    await _invalidate_profile(user_id)
    user_out = to_user_out(user)
    await _cache_profile(user_out)
    return user_out


# ==================== Tasks ====================


async def create_task(owner_id: str, data: TaskCreate) -> TaskOut:
    task = await crud.insert_task(owner_id, _store_values(data.model_dump()))
    logger.info(f"Task created: id={task.id} owner={owner_id}")
    return to_task_out(task)


async def get_task(owner_id: str, task_id: str) -> TaskOut:
    task_id = _parse_task_id(task_id)
    task = await crud.select_task(owner_id, task_id)
    if task is None:
        raise _task_not_found(task_id)
    return to_task_out(task)


async def update_task(owner_id: str, task_id: str, data: TaskUpdate) -> TaskOut:
    """Apply only the recognized fields present in the body."""
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise api_error(
            status.HTTP_400_BAD_REQUEST, ErrorCode.NO_FIELDS, "No valid fields provided for update.",
        )

    task_id = _parse_task_id(task_id)
    task = await crud.update_task(owner_id, task_id, _store_values(fields))
    if task is None:
        raise _task_not_found(task_id)

    logger.info(f"Task updated: id={task_id} owner={owner_id} fields={sorted(fields)}")
    return to_task_out(task)


async def delete_task(owner_id: str, task_id: str) -> None:
    task_id = _parse_task_id(task_id)
    if not await crud.delete_task(owner_id, task_id):
        raise _task_not_found(task_id)
    logger.info(f"Task deleted: id={task_id} owner={owner_id}")


async def list_tasks(
    owner_id: str,
    search: str | None = None,
    status_filter: str | None = None,
    priority: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> TaskListData:
    """Search, filter, sort and paginate the caller's tasks."""
    try:
        query = build_task_query(
            owner_id,
            search=search,
            status=status_filter,
            priority=priority,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except InvalidFilter as e:
        raise api_error(
            status.HTTP_400_BAD_REQUEST, ErrorCode.INVALID_FILTER, str(e),
            details={"field": e.field, "value": e.value},
        ) from e

    logger.debug(f"Listing tasks: {query}")
    tasks, total = await crud.list_tasks(query)
    info = page_info(total, query.page, query.limit)

    return TaskListData(
        tasks=[to_task_out(t) for t in tasks],
        pagination=Pagination.model_validate(info),
    )


# ==================== Stats ====================


async def get_task_stats(owner_id: str) -> TaskStats:
    """Per-status and per-priority counts; unknown values are left out of both."""
    by_status = await crud.count_tasks_by(owner_id, "status")
    by_priority = await crud.count_tasks_by(owner_id, "priority")

    status_counts = {s.value: by_status.get(s.value, 0) for s in TaskStatus}
    priority_counts = {p.value: by_priority.get(p.value, 0) for p in TaskPriority}

    return TaskStats(
        by_status=StatusCounts.model_validate(status_counts),
        by_priority=PriorityCounts.model_validate(priority_counts),
        total=sum(status_counts.values()),
    )
