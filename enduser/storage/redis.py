"""Redis connection pool and utilities.

Redis holds the posting guards, mention markers, the journal and the
cached news/crypto/weather strings.
"""

import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from enduser.config import get_settings

logger = logging.getLogger(__name__)


class RedisStorage:
    """Redis storage with connection pool."""

    def __init__(self) -> None:
        """Initialize Redis connection pool."""
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Create connection pool and connect to Redis."""
        settings = get_settings()
        self._pool = ConnectionPool.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )
        self._client = Redis(connection_pool=self._pool)

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
        if self._pool:
            await self._pool.disconnect()
        self._client = None
        self._pool = None

    @property
    def client(self) -> Redis:
        """Get Redis client. Raises if not connected."""
        if self._client is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    async def get(self, key: str) -> str | None:
        """Get string value."""
        return await self.client.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set string value with optional expiration."""
        return bool(await self.client.set(key, value, ex=ex))

    async def setnx(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set if not exists with optional expiration."""
        return bool(await self.client.set(key, value, nx=True, ex=ex))

    async def delete(self, *keys: str) -> int:
        """Delete keys."""
        return await self.client.delete(*keys)

    async def count_keys(self, pattern: str, count: int = 100) -> int:
        """Count keys matching pattern using SCAN.

        Args:
            pattern: Key pattern (e.g., "mention:responded:*")
            count: Number of keys to scan per iteration

        Returns:
            Number of matching keys
        """
        total = 0
        async for _ in self.client.scan_iter(match=pattern, count=count):
            total += 1
        return total

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            await self.client.ping()
            return True
        except (RedisError, RuntimeError, OSError) as e:
            logger.warning(f"Redis health check failed: {e}")
            return False


# Global Redis storage instance
redis_storage = RedisStorage()
