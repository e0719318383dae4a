"""Authentication utilities for password hashing and JWT session tokens."""

from datetime import datetime, timedelta, timezone
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
from .config import settings


# ==================== Password Hashing ====================

def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt for secure storage."""
    # bcrypt requires bytes and returns bytes
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    # Return as string for database storage
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a hashed password."""
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    return bcrypt.checkpw(password_bytes, hashed_bytes)


# ==================== Token Errors ====================

class TokenError(Exception):
    """Base class for session token failures."""


class TokenInvalid(TokenError):
    """Bad signature, malformed token, or missing subject."""


class TokenExpired(TokenError):
    """Signature is valid but the embedded expiry has passed."""


# ==================== JWT Token Management ====================

def issue_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Issue a signed session token for a user. Defaults to the configured lifetime (7 days)."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> str:
    """Verify a session token and return the user id it was issued for.

    Raises:
        TokenExpired: the token's expiry is in the past
        TokenInvalid: the signature does not match or the payload is malformed
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpired("token expired") from e
    except JWTError as e:
        raise TokenInvalid(f"token rejected: {e}") from e

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise TokenInvalid("missing subject (sub) in token")
    return user_id
