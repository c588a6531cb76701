"""
Redis Cache Adapter

Fail-open adapter around the distributed cache tier.

Every public method either succeeds or degrades to a miss / no-op: missing
configuration, a client that cannot be built, transport errors, timeouts
and an open circuit breaker are logged and absorbed here so that request
handlers never see them.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from ...core.config import Settings, get_settings
from ...domain.cache.value_objects import KeyPattern
from .circuit_breaker import CircuitBreakerConfig, RedisCircuitBreaker
from .connection_factory import (
    ClientFactory,
    DistributedCacheClient,
    create_redis_client,
)


class AdapterState(str, Enum):
    """Lifecycle of the distributed tier."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class RedisCacheAdapter:
    """
    Lazily initialized, fail-open client for the distributed cache tier.

    Initialization runs at most once per adapter; concurrent callers share
    the same in-flight attempt. Once the adapter is ``UNAVAILABLE`` it stays
    that way and all operations short-circuit.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
        logger: Any = None,
        legacy_patterns: bool = False,
    ):
        self.redis_url = redis_url
        self.legacy_patterns = legacy_patterns
        self.state = AdapterState.UNINITIALIZED
        self.logger = logger or structlog.get_logger(__name__)

        self._client_factory = client_factory or create_redis_client
        self._circuit_breaker = circuit_breaker or RedisCircuitBreaker()
        self._client: Optional[DistributedCacheClient] = None
        self._dropped_clients: List[DistributedCacheClient] = []
        self._init_future: Optional[asyncio.Future] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
        logger: Any = None,
    ) -> "RedisCacheAdapter":
        """Build an adapter from application settings."""
        settings = settings or get_settings()
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=float(settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT),
                operation_timeout=settings.REDIS_OPERATION_TIMEOUT,
                failure_exceptions=(
                    RedisConnectionError,
                    RedisTimeoutError,
                    ConnectionError,
                    TimeoutError,
                    OSError,
                ),
            )
        )
        if client_factory is None:

            def client_factory(url: str) -> DistributedCacheClient:
                return create_redis_client(url, settings)

        return cls(
            redis_url=settings.REDIS_URL,
            client_factory=client_factory,
            circuit_breaker=breaker,
            legacy_patterns=settings.CACHE_LEGACY_PATTERN_MATCHING,
            logger=logger,
        )

    @property
    def is_available(self) -> bool:
        """Whether calls are currently forwarded to the distributed tier."""
        return self.state == AdapterState.READY and self._client is not None

    @property
    def circuit_breaker(self) -> RedisCircuitBreaker:
        return self._circuit_breaker

    def start_initialization(self) -> None:
        """Kick off initialization in the background if an event loop is running.

        Without a running loop the first awaited operation initializes
        the adapter instead.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._init_future is None:
            self._init_future = asyncio.ensure_future(self._initialize())

    async def ensure_initialized(self) -> None:
        """Wait for the single initialization attempt to finish."""
        if self._init_future is None:
            self._init_future = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_future)

    async def _initialize(self) -> None:
        self.state = AdapterState.INITIALIZING

        if not self.redis_url:
            self.logger.info("Redis URL not configured, using memory cache only")
            self.state = AdapterState.UNAVAILABLE
            return

        try:
            client = self._client_factory(self.redis_url)
            if inspect.isawaitable(client):
                client = await client
            client.on_error(self._handle_client_error)
        except Exception as e:
            self.logger.warning(
                "Redis initialization failed, using memory cache",
                error=str(e),
                error_type=type(e).__name__,
            )
            self._client = None
            self.state = AdapterState.UNAVAILABLE
            return

        # An error event may already have fired while wiring the client up
        if self.state == AdapterState.UNAVAILABLE:
            return

        self._client = client
        self.state = AdapterState.READY
        self.logger.info("Redis cache initialized successfully")

    def _handle_client_error(self, error: Exception) -> None:
        """Drop the client after a connection-level error event."""
        self.logger.error(
            "Redis connection error, falling back to memory cache",
            error=str(error),
            error_type=type(error).__name__,
        )
        if self._client is not None:
            self._dropped_clients.append(self._client)
        self._client = None
        self.state = AdapterState.UNAVAILABLE

    async def get(self, key: str) -> Optional[str]:
        """Fetch the serialized value for ``key``; ``None`` on miss or error."""
        await self.ensure_initialized()
        client = self._client
        if client is None:
            return None

        try:
            return await self._circuit_breaker.call("get", client.get, key)
        except Exception as e:
            self.logger.error(
                "Cache get error", key=key, error=str(e), error_type=type(e).__name__
            )
            return None

    async def set_with_ttl(self, key: str, payload: str, ttl_seconds: int) -> bool:
        """Store ``payload`` with an expiry. Returns whether the write happened."""
        await self.ensure_initialized()
        client = self._client
        if client is None:
            return False

        try:
            await self._circuit_breaker.call(
                "setex", client.setex, key, ttl_seconds, payload
            )
            return True
        except Exception as e:
            self.logger.error(
                "Cache set error", key=key, error=str(e), error_type=type(e).__name__
            )
            return False

    async def delete(self, key: str) -> bool:
        """Delete ``key``. Returns whether the delete call succeeded."""
        await self.ensure_initialized()
        client = self._client
        if client is None:
            return False

        try:
            await self._circuit_breaker.call("delete", client.delete, key)
            return True
        except Exception as e:
            self.logger.error(
                "Cache delete error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def delete_keys_matching(self, pattern: str) -> int:
        """Delete every remote key matching ``pattern`` in one batched call.

        ``pattern`` is a cache glob (``*`` only); it is escaped for Redis so
        both tiers select the same keys.

        Returns:
            Number of keys deleted (0 on error or when nothing matched)
        """
        await self.ensure_initialized()
        client = self._client
        if client is None:
            return 0

        try:
            glob = KeyPattern(pattern).to_redis_glob(self.legacy_patterns)
            keys = await self._circuit_breaker.call("keys", client.keys, glob)
            if not keys:
                return 0
            await self._circuit_breaker.call("delete", client.delete, *keys)
            return len(keys)
        except Exception as e:
            self.logger.error(
                "Cache invalidate error",
                pattern=pattern,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

    def get_status(self) -> Dict[str, Any]:
        """Get adapter status for monitoring."""
        return {
            "state": self.state.value,
            "configured": bool(self.redis_url),
            "available": self.is_available,
            "circuit_breaker": self._circuit_breaker.get_status(),
        }

    async def close(self) -> None:
        """Release the client and any client dropped after an error."""
        if self._init_future is not None and not self._init_future.done():
            await asyncio.shield(self._init_future)

        clients = self._dropped_clients
        if self._client is not None:
            clients = clients + [self._client]
        self._client = None
        self._dropped_clients = []
        if self.state != AdapterState.UNINITIALIZED:
            self.state = AdapterState.UNAVAILABLE

        for client in clients:
            try:
                await client.close()
            except Exception as e:
                self.logger.warning("Failed to close Redis client", error=str(e))

        if clients:
            self.logger.info("Redis cache adapter closed")
