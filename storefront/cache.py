"""Redis read-through cache for user and product detail lookups.

Every operation degrades to a miss when Redis is down, so the API keeps
serving from the database.
"""

import json
from typing import Any, Optional
from redis import asyncio as aioredis
from redis.exceptions import RedisError
from .config import settings
from .logger import logger

# ==================== Cache Key Utilities ====================

USER_BY_ID_PREFIX = "user:id"
PRODUCT_BY_ID_PREFIX = "product:id"


def make_cache_key(prefix: str, identifier: Any) -> str:
    """Namespace an identifier, e.g. ``make_cache_key("product:id", 7) == "product:id:7"``."""
    return f"{prefix}:{identifier}"

# ==================== Cache Manager ====================


class CacheManager:
    """Owns the Redis client; failures are logged and reported as misses."""

    def __init__(self):
        self._redis: Optional[aioredis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self):
        """Open the client and ping it. Leaves the cache disabled if Redis is unreachable."""
        if self._redis is not None:
            return
        client = aioredis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"[cache] Failed to connect to Redis: {e}")
            await client.aclose()
            return
        self._redis = client
        logger.info("[cache] Connected to Redis")

    async def disconnect(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("[cache] Disconnected from Redis")

    async def get(self, key: str) -> Optional[dict]:
        """Cached JSON document for ``key`` or None."""
        if not self._redis:
            return None

        try:
            value = await self._redis.get(key)
        except (RedisError, OSError) as e:
            logger.error(f"[cache] Error getting key {key}: {e}")
            return None
        if value is None:
            logger.debug(f"[cache] MISS: {key}")
            return None
        logger.debug(f"[cache] HIT: {key}")
        return json.loads(value)

    async def set(self, key: str, value: dict, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable document with a TTL (defaults to CACHE_TTL)."""
        if not self._redis:
            return False

        ttl = ttl or settings.CACHE_TTL
        try:
            await self._redis.setex(key, ttl, json.dumps(value, default=str))
        except (RedisError, OSError) as e:
            logger.error(f"[cache] Error setting key {key}: {e}")
            return False
        logger.debug(f"[cache] SET: {key} (TTL={ttl}s)")
        return True

    async def delete(self, *keys: str) -> bool:
        if not self._redis or not keys:
            return False

        try:
            await self._redis.delete(*keys)
        except (RedisError, OSError) as e:
            logger.error(f"[cache] Error deleting keys {keys}: {e}")
            return False
        logger.debug(f"[cache] DELETE: {', '.join(keys)}")
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern`` using SCAN in batches of 100. Returns the count."""
        if not self._redis:
            return 0

        batch: list[str] = []
        total_deleted = 0
        try:
            async for key in self._redis.scan_iter(match=pattern, count=100):
                batch.append(key)
                if len(batch) >= 100:
                    await self._redis.delete(*batch)
                    total_deleted += len(batch)
                    batch.clear()
            if batch:
                await self._redis.delete(*batch)
                total_deleted += len(batch)
        except (RedisError, OSError) as e:
            logger.error(f"[cache] Error deleting pattern {pattern}: {e}")
            return total_deleted

        if total_deleted:
            logger.debug(f"[cache] DELETE PATTERN: {pattern} ({total_deleted} keys)")
        return total_deleted

    async def health_check(self) -> bool:
        if not self._redis:
            return False
        try:
            await self._redis.ping()
            return True
        except (RedisError, OSError):
            return False

# ==================== Global Instance ====================

cache_manager = CacheManager()
