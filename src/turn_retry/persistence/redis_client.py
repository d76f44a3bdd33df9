"""
Pooled asyncio Redis client for session persistence.

Sessions persist from inside the event loop, so only the redis-py asyncio
client is provided. One pool is shared per process.
"""

from typing import Optional

from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis
import structlog

from turn_retry.config import Settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Factory handing out clients bound to the shared connection pool."""

    _async_pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get a client on the shared pool, creating the pool on first use.

        Args:
            settings: Application settings (REDIS_URL, REDIS_MAX_CONNECTIONS,
                REDIS_SOCKET_TIMEOUT)
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
            )
            logger.info(
                "Redis pool created",
                extra={"max_connections": settings.REDIS_MAX_CONNECTIONS},
            )
        return AsyncRedis(connection_pool=cls._async_pool)

    @classmethod
    async def ping(cls, settings: Settings) -> bool:
        """Return True if Redis answers; errors are logged, not raised."""
        try:
            return bool(await cls.get_async_client(settings).ping())
        except Exception as e:
            logger.warning("Redis ping failed", extra={"error": str(e)})
            return False

    @classmethod
    async def close(cls) -> None:
        """Disconnect the shared pool. Call on shutdown."""
        if cls._async_pool is None:
            return
        await cls._async_pool.disconnect()
        cls._async_pool = None
        logger.info("Redis pool closed")
