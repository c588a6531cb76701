"""
Redis Connection Factory

Builds the distributed cache client used by the Redis cache adapter.

The adapter only depends on the ``DistributedCacheClient`` capability set,
so tests and alternative backends can hand it any object providing the
same coroutines.
"""

from typing import Callable, List, Optional, Protocol

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError

from ...core.config import Settings, get_settings
from .exceptions import RedisConfigurationException, RedisConnectionException

logger = structlog.get_logger(__name__)

ErrorCallback = Callable[[Exception], None]


class DistributedCacheClient(Protocol):
    """Capability set the Redis cache adapter needs from a client."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def setex(self, key: str, ttl_seconds: int, value: str) -> object:
        ...

    async def delete(self, *keys: str) -> int:
        ...

    async def keys(self, pattern: str) -> List[str]:
        ...

    def on_error(self, callback: ErrorCallback) -> None:
        ...

    async def close(self) -> None:
        ...


ClientFactory = Callable[[str], DistributedCacheClient]


class RedisClientHandle:
    """
    ``DistributedCacheClient`` backed by a ``redis.asyncio`` client.

    Connection-level failures are reported to registered error callbacks
    before being re-raised, mirroring a connection "error" event.
    """

    SCAN_COUNT = 100

    def __init__(self, client: redis.Redis):
        self._client = client
        self._error_callbacks: List[ErrorCallback] = []

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    def _notify_error(self, error: Exception) -> None:
        for callback in self._error_callbacks:
            try:
                callback(error)
            except Exception as e:
                logger.warning("Redis error callback failed", error=str(e))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisConnectionError as e:
            self._notify_error(e)
            raise

    async def setex(self, key: str, ttl_seconds: int, value: str) -> object:
        try:
            return await self._client.setex(key, ttl_seconds, value)
        except RedisConnectionError as e:
            self._notify_error(e)
            raise

    async def delete(self, *keys: str) -> int:
        try:
            return await self._client.delete(*keys)
        except RedisConnectionError as e:
            self._notify_error(e)
            raise

    async def keys(self, pattern: str) -> List[str]:
        """Collect keys matching ``pattern`` with SCAN instead of KEYS."""
        try:
            return [
                key
                async for key in self._client.scan_iter(
                    match=pattern, count=self.SCAN_COUNT
                )
            ]
        except RedisConnectionError as e:
            self._notify_error(e)
            raise

    async def close(self) -> None:
        await self._client.aclose()


def create_redis_client(
    redis_url: str, settings: Optional[Settings] = None
) -> RedisClientHandle:
    """
    Create the default Redis client.

    The underlying pool connects lazily, so no network I/O happens here.

    Raises:
        RedisConfigurationException: If the URL cannot be parsed
        RedisConnectionException: If the client cannot be constructed
    """
    settings = settings or get_settings()

    try:
        client = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_CONNECTION_TIMEOUT,
            socket_timeout=settings.REDIS_OPERATION_TIMEOUT,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    except ValueError as e:
        raise RedisConfigurationException(
            message=f"Invalid Redis URL: {e}", config_key="REDIS_URL"
        ) from e
    except Exception as e:
        raise RedisConnectionException(
            message=f"Redis client creation failed: {e}", original_error=e
        )

    return RedisClientHandle(client)
