"""
Redis Infrastructure Module

Distributed cache tier with lazy initialization, circuit breaker
protection and fail-open error handling.

This module provides:
- RedisCacheAdapter: fail-open adapter used by the cache manager
- DistributedCacheClient: capability set any client must provide
- create_redis_client: default redis.asyncio-backed client factory
- Circuit breaker pattern for resilience
- Exception hierarchy for cache and Redis errors
"""

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerMetrics,
    CircuitState,
    RedisCircuitBreaker,
)
from .connection_factory import (
    ClientFactory,
    DistributedCacheClient,
    RedisClientHandle,
    create_redis_client,
)
from .exceptions import (
    CacheDeserializationException,
    CacheException,
    RedisCircuitBreakerOpenException,
    RedisConfigurationException,
    RedisConnectionException,
    RedisException,
    RedisOperationTimeoutException,
)
from .redis_service import AdapterState, RedisCacheAdapter

__all__ = [
    # Adapter
    "AdapterState",
    "RedisCacheAdapter",
    # Client
    "ClientFactory",
    "DistributedCacheClient",
    "RedisClientHandle",
    "create_redis_client",
    # Circuit breaker
    "CircuitBreakerConfig",
    "CircuitBreakerMetrics",
    "CircuitState",
    "RedisCircuitBreaker",
    # Exceptions
    "CacheDeserializationException",
    "CacheException",
    "RedisCircuitBreakerOpenException",
    "RedisConfigurationException",
    "RedisConnectionException",
    "RedisException",
    "RedisOperationTimeoutException",
]
