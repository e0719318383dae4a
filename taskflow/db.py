"""Database connection pooling, session management, and resilience utilities."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy import text
import asyncio
from .config import settings
from .logger import logger

# ==================== Connection Pool Setup ====================


def _engine_options() -> dict:
    """Pool and driver options for the configured backend.

    asyncpg gets the full pool plus connect/command timeouts; aiosqlite
    (local runs and tests) only accepts a connect timeout.
    """
    if settings.is_sqlite:
        return {"connect_args": {"timeout": settings.DB_CONNECT_TIMEOUT}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,  # Verify connections before use
        "connect_args": {
            "timeout": settings.DB_CONNECT_TIMEOUT,
            "command_timeout": settings.DB_QUERY_TIMEOUT,
        },
    }


engine = create_async_engine(settings.DB_URL, echo=False, **_engine_options())

logger.info(
    f"Database engine configured: backend={engine.dialect.name} "
    f"pool_size={settings.DB_POOL_SIZE}, timeout={settings.DB_POOL_TIMEOUT}s"
)

# Session factory for creating database sessions
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

# Base class for ORM models
Base = declarative_base()

# ==================== Database Resilience ====================

_RETRYABLE_MARKERS = (
    "connection",
    "timeout",
    "database is locked",
    "server closed the connection",
    "connection reset",
)


def is_retryable_db_error(exc: Exception) -> bool:
    """True for transient connectivity errors, False for constraint/data errors."""
    error_msg = str(exc).lower()
    return any(marker in error_msg for marker in _RETRYABLE_MARKERS)


async def retry_on_db_error(
    func,
    max_retries: int = settings.DB_RETRY_MAX_ATTEMPTS,
    base_delay: float = settings.DB_RETRY_BASE_DELAY,
):
    """Retry a read-only database operation with exponential backoff.

    Args:
        func: Zero-argument async callable
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubles each retry)

    Returns:
        Result of the function call

    Raises:
        The last exception if it is not retryable or all attempts fail
    """
    last_exception = None

    for attempt in range(max_retries):
        try:
            return await func()
        except (OperationalError, DBAPIError) as e:
            last_exception = e

            if not is_retryable_db_error(e) or attempt == max_retries - 1:
                logger.error(
                    f"Database operation failed (attempt {attempt + 1}/{max_retries}): {str(e)}",
                    exc_info=True
                )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"Database error on attempt {attempt + 1}/{max_retries}, "
                f"retrying in {delay}s: {str(e)}"
            )
            await asyncio.sleep(delay)

    raise last_exception


async def check_db_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async def _check():
            async with async_session() as session:
                await session.execute(text("SELECT 1"))

        await retry_on_db_error(_check, max_retries=2, base_delay=0.1)
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False

# ==================== Cleanup ====================


async def dispose_engine():
    """Close all pooled connections during application shutdown."""
    logger.info("Disposing database engine and closing connections")
    try:
        await engine.dispose()
        logger.info("Database connections closed successfully")
    except Exception as e:
        logger.error(f"Error disposing database engine: {str(e)}", exc_info=True)
