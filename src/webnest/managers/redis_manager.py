"""
Redis connection manager.

Redis is optional for WebNest. When `REDIS_URL` is configured the deadline reminder
scheduler uses it for a cross-instance tick lock. Without it, `get_redis()` returns `None`
and callers fall back to in-process coordination.
"""

from typing import Optional

import redis.asyncio as redis

from webnest.config import settings
from webnest.managers.logging_manager import get_logger

logger = get_logger(prefix="[REDIS]")

# Deletes the lock only if it still holds our token
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisManager:
    """
    Lazily created `redis.asyncio` client shared across the application.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self._client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def get_redis(self) -> Optional[redis.Redis]:
        if not self.enabled:
            return None
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
            logger.info("Redis client created")
        return self._client

    async def acquire_lock(self, key: str, token: str, ttl_seconds: int) -> bool:
        """`SET key token NX EX ttl`. Returns True when the lock was taken."""
        client = await self.get_redis()
        if client is None:
            return True
        return bool(await client.set(key, token, nx=True, ex=ttl_seconds))

    async def release_lock(self, key: str, token: str) -> None:
        client = await self.get_redis()
        if client is None:
            return
        await client.eval(RELEASE_LOCK_SCRIPT, 1, key, token)

    async def health_check(self) -> Optional[bool]:
        """`None` when Redis is not configured, otherwise whether it answers a ping."""
        client = await self.get_redis()
        if client is None:
            return None
        try:
            return bool(await client.ping())
        except redis.RedisError as e:
            logger.error("Redis health check failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis client closed")


redis_manager = RedisManager(settings.REDIS_URL)
