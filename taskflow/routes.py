# API route definitions (HTTP layer)
# Defines ENDPOINTS; business rules live in services

import os
from fastapi import APIRouter, Request, Depends, Query
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from .schemas import (
    AuthData,
    EmptyData,
    Envelope,
    ProfileUpdate,
    TaskCreate,
    TaskData,
    TaskListData,
    TaskStatsData,
    TaskUpdate,
    UserData,
    UserLogin,
    UserRegister,
)
from .models import User
from .dependencies import get_current_user
from . import services
from . import db
from .cache import cache_manager
from .config import settings

limiter = Limiter(key_func=get_remote_address)


def conditional_limit(limit_string):
    """Apply rate limit only if not in test mode."""
    if os.getenv('TEST_MODE'):
        def decorator(func):
            return func
        return decorator
    return limiter.limit(limit_string)


router = APIRouter()


# ============================================================================
# Operational Endpoints
# ============================================================================

@router.get("/")
def root():
    return {"app": settings.APP_NAME, "env": settings.APP_ENV}


@router.get("/health")
async def health_check():
    """Health check for load balancers.

    200 when the database is reachable (status "degraded" if only the cache is down),
    503 when the database is unreachable.
    """
    health_status = {
        "success": True,
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
    }

    if await db.check_db_connection():
        health_status["database"] = "connected"
    else:
        health_status.update(success=False, status="unhealthy", database="disconnected")
        return JSONResponse(status_code=503, content=health_status)

    if settings.CACHE_ENABLED:
        is_healthy = await cache_manager.health_check()
        health_status["cache"] = "connected" if is_healthy else "disconnected"
        if not is_healthy:
            health_status["status"] = "degraded"  # Service works but cache is down
    else:
        health_status["cache"] = "disabled"

    return health_status


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


api_router = APIRouter(prefix=settings.API_PREFIX)

# ============================================================================
# Authentication Endpoints
# ============================================================================


@api_router.post("/auth/register", response_model=Envelope[AuthData], status_code=201, tags=["auth"])
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def register(user: UserRegister, request: Request):
    """Register a new account and return a session token plus the user (no password)."""
    data = await services.register_user(user)
    return Envelope[AuthData](message="Account created successfully.", data=data)


@api_router.post("/auth/login", response_model=Envelope[AuthData], tags=["auth"])
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def login(credentials: UserLogin, request: Request):
    """Exchange email and password for a session token.

    Raises:
        401: Invalid credentials (same message for unknown email and wrong password)
             or deactivated account
    """
    data = await services.authenticate_user(credentials)
    return Envelope[AuthData](message="Logged in successfully.", data=data)


@api_router.get("/auth/me", response_model=Envelope[UserData], tags=["auth"])
@conditional_limit(settings.RATE_LIMIT_READ)
async def me(request: Request, current_user: User = Depends(get_current_user)):
    """Validate the bearer token and return the user it belongs to."""
    return Envelope[UserData](data=UserData(user=services.to_user_out(current_user)))


# ============================================================================
# Profile Endpoints
# ============================================================================


@api_router.get("/user/profile", response_model=Envelope[UserData], tags=["user"])
@conditional_limit(settings.RATE_LIMIT_READ)
async def get_profile(request: Request, current_user: User = Depends(get_current_user)):
    user_out = await services.get_profile(current_user.id)
    return Envelope[UserData](data=UserData(user=user_out))


@api_router.put("/user/profile", response_model=Envelope[UserData], tags=["user"])
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def update_profile(
    body: ProfileUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    user_out = await services.update_profile(current_user.id, body)
    return Envelope[UserData](message="Profile updated successfully.", data=UserData(user=user_out))


# ============================================================================
# Task Endpoints
# ============================================================================


@api_router.post("/tasks", response_model=Envelope[TaskData], status_code=201, tags=["tasks"])
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def create_task(
    body: TaskCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    task = await services.create_task(current_user.id, body)
    return Envelope[TaskData](message="Task created successfully.", data=TaskData(task=task))


@api_router.get("/tasks", response_model=Envelope[TaskListData], tags=["tasks"])
@conditional_limit(settings.RATE_LIMIT_READ)
async def list_tasks(
    request: Request,
    current_user: User = Depends(get_current_user),
    search: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: str | None = Query(None, alias="sortOrder"),
    page: str | None = None,  # raw: the query builder coerces it
    limit: str | None = None,
):
    data = await services.list_tasks(
        current_user.id,
        search=search,
        status_filter=status,
        priority=priority,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return Envelope[TaskListData](data=data)


# Declared before /tasks/{task_id} so "stats" is not taken for an id
@api_router.get("/tasks/stats", response_model=Envelope[TaskStatsData], tags=["tasks"])
@conditional_limit(settings.RATE_LIMIT_READ)
async def task_stats(request: Request, current_user: User = Depends(get_current_user)):
    stats = await services.get_task_stats(current_user.id)
    return Envelope[TaskStatsData](data=TaskStatsData(stats=stats))


@api_router.get("/tasks/{task_id}", response_model=Envelope[TaskData], tags=["tasks"])
@conditional_limit(settings.RATE_LIMIT_READ)
async def get_task(task_id: str, request: Request, current_user: User = Depends(get_current_user)):
    task = await services.get_task(current_user.id, task_id)
    return Envelope[TaskData](data=TaskData(task=task))


@api_router.put("/tasks/{task_id}", response_model=Envelope[TaskData], tags=["tasks"])
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    task = await services.update_task(current_user.id, task_id, body)
    return Envelope[TaskData](message="Task updated successfully.", data=TaskData(task=task))


@api_router.delete("/tasks/{task_id}", response_model=Envelope[EmptyData], tags=["tasks"])
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def delete_task(task_id: str, request: Request, current_user: User = Depends(get_current_user)):
    await services.delete_task(current_user.id, task_id)
    return Envelope[EmptyData](message="Task deleted successfully.", data=EmptyData())
