"""Redis cache for user profiles with graceful degradation.

Only profile reads go through the cache. The auth gate always reads the
live user row so deactivation takes effect on the next request.
"""

import json
from typing import Any, Optional
from redis import asyncio as aioredis
from .config import settings
from .logger import logger

# ==================== Cache Key Utilities ====================

USER_PROFILE_PREFIX = "taskflow:user:id"


def make_cache_key(prefix: str, identifier: Any) -> str:
    """Namespaced key, e.g. make_cache_key(USER_PROFILE_PREFIX, "ab12") -> "taskflow:user:id:ab12"."""
    return f"{prefix}:{identifier}"

# ==================== Cache Manager ====================


class CacheManager:
    """Redis client wrapper. Every operation is a no-op (None/False) while Redis is unreachable."""

    def __init__(self, url: str | None = None, default_ttl: int | None = None):
        self._url = url or settings.REDIS_URL
        self._default_ttl = default_ttl or settings.CACHE_TTL
        self._redis: Optional[aioredis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self):
        """Open the connection pool and ping it; stays disconnected on failure."""
        if self._redis is not None:
            return
        try:
            client = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
            )
            await client.ping()
            self._redis = client
            logger.info("[cache] Connected to Redis")
        except Exception as e:
            logger.error(f"[cache] Failed to connect to Redis: {e}")
            self._redis = None

    async def disconnect(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("[cache] Disconnected from Redis")

    async def get(self, key: str) -> Optional[dict]:
        """Cached JSON object for key, or None on miss or error."""
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
        except Exception as e:
            logger.error(f"[cache] Error getting key {key}: {e}")
            return None
        if value is None:
            logger.debug(f"[cache] MISS: {key}")
            return None
        logger.debug(f"[cache] HIT: {key}")
        return json.loads(value)

    async def set(self, key: str, value: dict, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable dict with a TTL (default CACHE_TTL)."""
        if not self._redis:
            return False
        ttl = ttl or self._default_ttl
        try:
            await self._redis.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"[cache] SET: {key} (TTL={ttl}s)")
            return True
        except Exception as e:
            logger.error(f"[cache] Error setting key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self._redis:
            return False
        try:
            await self._redis.delete(key)
            logger.debug(f"[cache] DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"[cache] Error deleting key {key}: {e}")
            return False

    async def health_check(self) -> bool:
        """True if Redis answers a ping."""
        if not self._redis:
            return False
        try:
            await self._redis.ping()
            return True
        except Exception:
            return False

# ==================== Global Instance ====================

cache_manager = CacheManager()
