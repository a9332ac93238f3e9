import logging
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.lock import Lock
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..settings import get_settings

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 120.0


class RedisService:
    """Thin async wrapper over a Redis connection used for session storage."""

    def __init__(self, url: str) -> None:
        """Create a service for the given URL (e.g. redis://localhost:6379/0)."""
        self._url = url
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Connect and ping. Idempotent."""
        if self._client is not None:
            return
        self._client = Redis.from_url(self._url, decode_responses=True)
        try:
            await self._client.ping()
            logger.info("Redis connection established: %s", self._url.split("@")[-1])
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis ping failed: %s", e)
            await self._client.aclose()
            self._client = None
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Redis connection closed")

    @property
    def client(self) -> Redis | None:
        return self._client

    def _require_client(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis is not connected")
        return self._client

    async def get(self, key: str) -> str | None:
        """Return the value for key, or None if missing."""
        value: Any = await self._require_client().get(key)
        return value if value is None else str(value)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set key to value, expiring after ttl_seconds when given."""
        client = self._require_client()
        if ttl_seconds is not None and ttl_seconds > 0:
            await client.setex(key, ttl_seconds, value)
        else:
            await client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._require_client().delete(key)

    def lock(self, key: str) -> Lock:
        """Distributed lock guarding read-modify-write of a key."""
        return self._require_client().lock(
            f"lock:{key}",
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_TIMEOUT_SECONDS,
        )


def get_redis_service() -> RedisService | None:
    """Return a Redis service if redis_url is configured, else None."""
    settings = get_settings()
    if not settings.redis_url or not settings.redis_url.strip():
        return None
    return RedisService(settings.redis_url.strip())
