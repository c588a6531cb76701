"""
Cache Manager Service

Two-tier read-through / write-through cache: a bounded in-process store in
front of an optional Redis tier.

Reads hit the in-process store first and only fall through to Redis on a
miss, backfilling the in-process store with a clamped TTL. Writes go to
both tiers. Redis problems never surface to callers; the only error a
caller can see is a malformed payload coming back from Redis.
"""

import inspect
import json
import random
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar, Union

import structlog
from opentelemetry import trace
from pydantic import BaseModel, ValidationError

from ...core.config import Settings, get_settings
from ...domain.cache.value_objects import TTL
from ...infrastructure.redis.exceptions import (
    CacheDeserializationException,
    CacheException,
)
from ...infrastructure.redis.redis_service import RedisCacheAdapter
from .memory_store import MemoryStore

tracer = trace.get_tracer(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Loader = Callable[[], Union[Any, Awaitable[Any]]]

_MISSING = object()


class CacheManager:
    """
    High-level two-tier cache.

    Construct one per process and hand it to whatever owns the server
    lifecycle. Tests construct a fresh instance each.
    """

    def __init__(
        self,
        memory_store: Optional[MemoryStore] = None,
        distributed: Optional[RedisCacheAdapter] = None,
        settings: Optional[Settings] = None,
        logger: Any = None,
        rng: Callable[[], float] = random.random,
    ):
        settings = settings or get_settings()
        self.logger = logger or structlog.get_logger(__name__)

        self.default_ttl = settings.CACHE_DEFAULT_TTL
        self.memory_ttl_ceiling = settings.CACHE_MEMORY_TTL_CEILING
        self.opportunistic_cleanup_rate = settings.CACHE_OPPORTUNISTIC_CLEANUP_RATE
        self._rng = rng

        # An empty MemoryStore is falsy, so test against None explicitly
        if memory_store is None:
            memory_store = MemoryStore(
                max_size=settings.CACHE_MEMORY_MAX_SIZE,
                legacy_patterns=settings.CACHE_LEGACY_PATTERN_MATCHING,
            )
        if distributed is None:
            distributed = RedisCacheAdapter.from_settings(settings, logger=logger)
        self.memory = memory_store
        self.distributed = distributed

        # Start connecting right away when constructed inside a running loop
        self.distributed.start_initialization()

    def _memory_ttl(self, ttl: TTL) -> int:
        return ttl.clamp(self.memory_ttl_ceiling).seconds

    def _maybe_cleanup(self) -> None:
        if self.opportunistic_cleanup_rate <= 0:
            return
        if self._rng() < self.opportunistic_cleanup_rate:
            self.memory.sweep_expired()

    @staticmethod
    def _serialize(value: Any) -> str:
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        return json.dumps(value, default=str)

    @staticmethod
    def _deserialize(key: str, payload: Union[str, bytes]) -> Any:
        try:
            return json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheDeserializationException(key, original_error=e)

    async def get(self, key: str) -> Any:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value or None on a miss in both tiers

        Raises:
            CacheDeserializationException: If Redis returned a malformed payload
        """
        with tracer.start_as_current_span("cache_manager.get") as span:
            span.set_attribute("cache.key", key)
            self._maybe_cleanup()

            value = self.memory.get(key, _MISSING)
            if value is not _MISSING:
                span.set_attribute("cache.hit", True)
                span.set_attribute("cache.tier", "memory")
                return value

            payload = await self.distributed.get(key)
            if not payload:
                span.set_attribute("cache.hit", False)
                return None

            value = self._deserialize(key, payload)
            self.memory.set(key, value, self._memory_ttl(TTL(self.default_ttl)))

            span.set_attribute("cache.hit", True)
            span.set_attribute("cache.tier", "redis")
            return value

    async def get_typed(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """
        Get a cached value validated as ``model``.

        Raises:
            CacheDeserializationException: If the cached value does not fit ``model``
        """
        value = await self.get(key)
        if value is None:
            return None
        if isinstance(value, model):
            return value

        try:
            return model.model_validate(value)
        except ValidationError as e:
            raise CacheDeserializationException(key, original_error=e)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """
        Cache a value in both tiers.

        The in-process copy never outlives ``memory_ttl_ceiling``; Redis
        keeps the full TTL.

        Args:
            key: Cache key
            value: Value to cache (JSON-serializable or a pydantic model)
            ttl_seconds: Time to live, defaults to ``default_ttl``

        Raises:
            ValueError: If ``ttl_seconds`` is not positive
        """
        ttl = TTL(self.default_ttl if ttl_seconds is None else ttl_seconds)

        with tracer.start_as_current_span("cache_manager.set") as span:
            span.set_attribute("cache.key", key)
            span.set_attribute("cache.ttl", ttl.seconds)

            self.memory.set(key, value, self._memory_ttl(ttl))

            try:
                payload = self._serialize(value)
            except (TypeError, ValueError) as e:
                self.logger.error("Cache serialization error", key=key, error=str(e))
                return

            await self.distributed.set_with_ttl(key, payload, ttl.seconds)

    async def delete(self, key: str) -> None:
        """Delete ``key`` from both tiers."""
        with tracer.start_as_current_span("cache_manager.delete") as span:
            span.set_attribute("cache.key", key)
            try:
                await self.distributed.delete(key)
            except Exception as e:
                self.logger.error("Cache delete error", key=key, error=str(e))
            finally:
                self.memory.delete(key)

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Remove every key matching ``pattern`` from both tiers.

        The in-process tier is always invalidated, whatever happened in Redis.

        Returns:
            Number of keys removed across both tiers
        """
        with tracer.start_as_current_span("cache_manager.invalidate_pattern") as span:
            span.set_attribute("cache.pattern", pattern)
            removed = 0
            try:
                removed += await self.distributed.delete_keys_matching(pattern)
            except Exception as e:
                self.logger.error("Cache invalidate error", pattern=pattern, error=str(e))
            finally:
                removed += self.memory.invalidate_pattern(pattern)

            span.set_attribute("cache.removed", removed)
            return removed

    async def get_or_set(
        self, key: str, loader: Loader, ttl_seconds: Optional[int] = None
    ) -> Any:
        """
        Cache-aside read: return the cached value or load, cache and return it.

        A failed cache read is logged and treated as a miss. ``None`` results
        from the loader are not cached.
        """
        try:
            cached = await self.get(key)
        except CacheException as e:
            self.logger.warning(
                "Cache read failed, proceeding with loader", key=key, error=str(e)
            )
            cached = None

        if cached is not None:
            return cached

        value = loader()
        if inspect.isawaitable(value):
            value = await value

        if value is not None:
            await self.set(key, value, ttl_seconds)
        return value

    def clear(self) -> int:
        """Clear the in-process tier. Redis entries expire on their own TTL."""
        return self.memory.clear()

    def stats(self) -> Dict[str, Any]:
        """In-process tier statistics."""
        return self.memory.stats()

    def cleanup(self) -> int:
        """Sweep expired in-process entries."""
        return self.memory.sweep_expired()

    def get_status(self) -> Dict[str, Any]:
        """Status of both tiers for health reporting."""
        return {
            "memory": {
                "size": len(self.memory),
                "max_size": self.memory.max_size,
                "evictions": self.memory.evictions,
            },
            "redis": self.distributed.get_status(),
        }

    async def close(self) -> None:
        """Release the distributed client."""
        await self.distributed.close()
