"""
Redis client for the shared key-value backend.

Provides a lazily-connected async client with graceful fallback: when
Redis is not configured or cannot be reached, ``get_client()`` returns
None and the key-value store keeps working in memory.
"""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Async Redis client with connection management.

    A client without a URL never attempts a connection.
    """

    def __init__(self, redis_url: Optional[str] = None) -> None:
        self.redis_url = redis_url
        self._client: Optional[redis.Redis] = None
        self._is_available: bool = False
        self._connection_error: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.redis_url)

    async def get_client(self) -> Optional[redis.Redis]:
        """
        Get or create a Redis client instance.

        Returns:
            Redis client if available, None if unconfigured or unreachable.
        """
        if not self.redis_url:
            return None

        if self._client is None:
            try:
                self._client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                    retry_on_timeout=True,
                )
                await self._client.ping()
                self._is_available = True
                self._connection_error = None
                logger.info("Redis connection established successfully")
            except redis.ConnectionError as e:
                self._mark_unavailable(f"Redis connection failed: {str(e)}")
            except redis.TimeoutError as e:
                self._mark_unavailable(f"Redis connection timeout: {str(e)}")
            except Exception as e:
                self._mark_unavailable(f"Redis error: {str(e)}")

        return self._client

    def _mark_unavailable(self, error: str) -> None:
        self._connection_error = error
        logger.warning(error)
        self._is_available = False
        self._client = None

    async def close(self) -> None:
        """Close the Redis connection and release the pool."""
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except Exception as e:
                logger.warning(f"Error closing Redis connection: {str(e)}")
            finally:
                self._client = None
                self._is_available = False

    async def health_check(self) -> dict:
        """
        Report backend health for the /health endpoint.

        Returns:
            Dictionary with status, connectivity and, when connected, the
            server version.
        """
        if not self.redis_url:
            return {
                "status": "disabled",
                "connected": False,
                "backend": "memory",
            }

        try:
            client = await self.get_client()
            if client is None:
                return {
                    "status": "unavailable",
                    "connected": False,
                    "backend": "memory",
                    "error": self._connection_error,
                }

            await client.ping()
            info = await client.info("server")

            return {
                "status": "healthy",
                "connected": True,
                "backend": "redis",
                "redis_version": info.get("redis_version", "unknown"),
            }
        except redis.ConnectionError as e:
            self._is_available = False
            self._connection_error = str(e)
            return {
                "status": "unhealthy",
                "connected": False,
                "backend": "memory",
                "error": f"Connection error: {str(e)}",
            }
        except Exception as e:
            return {
                "status": "error",
                "connected": False,
                "backend": "memory",
                "error": str(e),
            }

    @property
    def is_available(self) -> bool:
        return self._is_available

    async def reconnect(self) -> bool:
        """
        Drop the current connection and try again.

        Returns:
            True if the new connection is usable.
        """
        if self._client:
            await self.close()

        self._client = None
        self._is_available = False

        client = await self.get_client()
        return client is not None


_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """Get the process-wide Redis client built from REDIS_URL."""
    global _redis_client
    if _redis_client is None:
        from erm.config import get_settings

        _redis_client = RedisClient(get_settings().redis.redis_url)
    return _redis_client
