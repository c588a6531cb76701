"""
Main pytest configuration for the release cache tests.

All tests run offline: the distributed tier is a FakeRedisClient and time
is driven by a FakeClock.
"""

import os

import pytest

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.pop("REDIS_URL", None)

from release_cache.core.config import Settings
from release_cache.infrastructure.redis.circuit_breaker import (
    CircuitBreakerConfig,
    RedisCircuitBreaker,
)
from release_cache.infrastructure.redis.redis_service import RedisCacheAdapter
from release_cache.services.cache.cache_manager import CacheManager
from release_cache.services.cache.memory_store import MemoryStore
from tests.fixtures.fake_redis import FakeClock, FakeRedisClient

TEST_REDIS_URL = "redis://localhost:6379/0"


@pytest.fixture
def clock():
    """Controllable clock shared by both tiers."""
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    """Fake distributed client."""
    return FakeRedisClient(clock=clock)


@pytest.fixture
def test_settings():
    """Settings isolated from the process environment and .env files."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        REDIS_URL=TEST_REDIS_URL,
        CACHE_OPPORTUNISTIC_CLEANUP_RATE=0.0,
        CACHE_CLEANUP_ENABLED=False,
    )


@pytest.fixture
def circuit_breaker():
    """Breaker that stays closed for the failure counts used in tests."""
    return RedisCircuitBreaker(
        CircuitBreakerConfig(failure_threshold=100, operation_timeout=0.5)
    )


@pytest.fixture
def memory_store(clock):
    return MemoryStore(max_size=1000, clock=clock)


@pytest.fixture
def redis_adapter(fake_redis, circuit_breaker):
    """Adapter wired to the fake client."""
    return RedisCacheAdapter(
        redis_url=TEST_REDIS_URL,
        client_factory=lambda url: fake_redis,
        circuit_breaker=circuit_breaker,
    )


@pytest.fixture
def cache_manager(memory_store, redis_adapter, test_settings):
    """Two-tier manager over the fake client."""
    return CacheManager(
        memory_store=memory_store,
        distributed=redis_adapter,
        settings=test_settings,
    )


@pytest.fixture
def memory_only_manager(memory_store, test_settings):
    """Manager with no distributed tier configured."""
    return CacheManager(
        memory_store=memory_store,
        distributed=RedisCacheAdapter(redis_url=None),
        settings=test_settings,
    )
