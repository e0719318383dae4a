"""FastAPI dependencies for authentication and authorization."""

from collections.abc import Iterable

from fastapi import Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .auth import verify_token, TokenExpired, TokenInvalid
from .crud import select_user
from .db import retry_on_db_error
from .errors import api_error
from .logger import logger
from .models import User
from .schemas import ErrorCode


# ==================== Authentication Dependencies ====================

# auto_error=False so a missing header is answered by us (401), not by HTTPBearer
security = HTTPBearer(auto_error=False)

_BEARER = {"WWW-Authenticate": "Bearer"}


def _unauthorized(code: str, message: str):
    return api_error(status.HTTP_401_UNAUTHORIZED, code, message, headers=_BEARER)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    """Resolve the bearer token to a live, active user. Every failure is a 401."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized(
            ErrorCode.NO_TOKEN, "Access denied. No authentication token provided."
        )

    try:
        user_id = verify_token(credentials.credentials)
    except TokenExpired:
        raise _unauthorized(
            ErrorCode.TOKEN_EXPIRED, "Authentication token has expired. Please log in again."
        ) from None
    except TokenInvalid:
        raise _unauthorized(ErrorCode.TOKEN_INVALID, "Invalid authentication token.") from None

    user = await retry_on_db_error(lambda: select_user(user_id))
    if user is None:
        logger.warning(f"Token presented for missing user: id={user_id}")
        raise _unauthorized(
            ErrorCode.USER_GONE, "The user belonging to this token no longer exists."
        )

    if not user.is_active:
        logger.warning(f"Token presented for deactivated user: id={user_id}")
        raise _unauthorized(
            ErrorCode.DEACTIVATED, "Your account has been deactivated. Please contact support."
        )

    return user


# ==================== Authorization Dependencies ====================


def is_role_permitted(role: str, permitted_roles: Iterable[str]) -> bool:
    """Capability check: is `role` one of `permitted_roles`."""
    return role in set(permitted_roles)


def require_roles(*roles: str):
    """Dependency factory: allow the request only for users whose role is in `roles`.

    Usage: ``Depends(require_roles("admin"))``
    """
    async def _check_role(current_user: User = Depends(get_current_user)) -> User:
        if not is_role_permitted(current_user.role, roles):
            raise api_error(
                status.HTTP_403_FORBIDDEN,
                ErrorCode.FORBIDDEN,
                f"Role '{current_user.role}' is not authorized to access this resource.",
            )
        return current_user

    return _check_role
