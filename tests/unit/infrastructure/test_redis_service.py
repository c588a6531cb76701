"""
Unit tests for the fail-open Redis cache adapter.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from release_cache.core.config import Settings
from release_cache.infrastructure.redis.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    RedisCircuitBreaker,
)
from release_cache.infrastructure.redis.redis_service import (
    AdapterState,
    RedisCacheAdapter,
)

TEST_REDIS_URL = "redis://localhost:6379/0"


class TestRedisCacheAdapterInitialization:
    """Lazy, memoized initialization."""

    @pytest.mark.asyncio
    async def test_no_url_means_unavailable(self):
        factory = MagicMock()
        adapter = RedisCacheAdapter(redis_url=None, client_factory=factory)

        await adapter.ensure_initialized()

        assert adapter.state == AdapterState.UNAVAILABLE
        assert await adapter.get("k") is None
        assert await adapter.set_with_ttl("k", "v", 60) is False
        assert await adapter.delete("k") is False
        assert await adapter.delete_keys_matching("*") == 0
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_factory_failure_means_unavailable(self):
        factory = MagicMock(side_effect=ValueError("bad url"))
        adapter = RedisCacheAdapter(redis_url=TEST_REDIS_URL, client_factory=factory)

        assert await adapter.get("k") is None
        assert adapter.state == AdapterState.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_ready_after_initialization(self, redis_adapter):
        assert redis_adapter.state == AdapterState.UNINITIALIZED

        await redis_adapter.ensure_initialized()

        assert redis_adapter.state == AdapterState.READY
        assert redis_adapter.is_available

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_attempt(self, fake_redis):
        factory = MagicMock(return_value=fake_redis)
        adapter = RedisCacheAdapter(redis_url=TEST_REDIS_URL, client_factory=factory)

        await asyncio.gather(
            adapter.get("a"),
            adapter.get("b"),
            adapter.set_with_ttl("c", "1", 60),
            adapter.ensure_initialized(),
        )

        factory.assert_called_once_with(TEST_REDIS_URL)

    @pytest.mark.asyncio
    async def test_failed_initialization_not_retried(self):
        factory = MagicMock(side_effect=OSError("refused"))
        adapter = RedisCacheAdapter(redis_url=TEST_REDIS_URL, client_factory=factory)

        await adapter.get("a")
        await adapter.get("b")

        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_async_factory_supported(self, fake_redis):
        async def factory(url):
            return fake_redis

        adapter = RedisCacheAdapter(redis_url=TEST_REDIS_URL, client_factory=factory)
        await adapter.ensure_initialized()

        assert adapter.state == AdapterState.READY

    @pytest.mark.asyncio
    async def test_start_initialization_schedules_attempt(self, redis_adapter):
        redis_adapter.start_initialization()
        await redis_adapter.ensure_initialized()

        assert redis_adapter.state == AdapterState.READY

    def test_start_initialization_without_loop_is_deferred(self, redis_adapter):
        redis_adapter.start_initialization()

        assert redis_adapter.state == AdapterState.UNINITIALIZED
        assert redis_adapter._init_future is None

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            ENVIRONMENT="test",
            REDIS_URL=TEST_REDIS_URL,
            REDIS_OPERATION_TIMEOUT=2.0,
            CIRCUIT_BREAKER_FAILURE_THRESHOLD=3,
            CACHE_LEGACY_PATTERN_MATCHING=True,
        )

        adapter = RedisCacheAdapter.from_settings(settings)

        assert adapter.redis_url == TEST_REDIS_URL
        assert adapter.legacy_patterns is True
        assert adapter.circuit_breaker.config.operation_timeout == 2.0
        assert adapter.circuit_breaker.config.failure_threshold == 3
        assert RedisConnectionError in adapter.circuit_breaker.config.failure_exceptions


class TestRedisCacheAdapterOperations:
    """Forwarding and error absorption."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, redis_adapter, fake_redis):
        assert await redis_adapter.set_with_ttl("k", '"v"', 60) is True
        assert fake_redis.ttls["k"] == 60
        assert await redis_adapter.get("k") == '"v"'

        assert await redis_adapter.delete("k") is True
        assert await redis_adapter.get("k") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [RedisConnectionError("reset"), ConnectionError("reset"), RuntimeError("odd")],
    )
    async def test_errors_are_absorbed(self, redis_adapter, fake_redis, error):
        fake_redis.fail_all(error)

        assert await redis_adapter.get("k") is None
        assert await redis_adapter.set_with_ttl("k", "v", 60) is False
        assert await redis_adapter.delete("k") is False
        assert await redis_adapter.delete_keys_matching("*") == 0

    @pytest.mark.asyncio
    async def test_delete_keys_matching_batches_one_delete(
        self, redis_adapter, fake_redis
    ):
        for key in ("user:1", "user:2", "post:1"):
            await redis_adapter.set_with_ttl(key, "1", 60)

        removed = await redis_adapter.delete_keys_matching("user:*")

        assert removed == 2
        deletes = fake_redis.calls_for("delete")
        assert len(deletes) == 1
        assert sorted(deletes[0][1:]) == ["user:1", "user:2"]
        assert list(fake_redis.store) == ["post:1"]

    @pytest.mark.asyncio
    async def test_delete_keys_matching_skips_delete_without_matches(
        self, redis_adapter, fake_redis
    ):
        await redis_adapter.set_with_ttl("post:1", "1", 60)

        assert await redis_adapter.delete_keys_matching("user:*") == 0
        assert fake_redis.calls_for("delete") == []

    @pytest.mark.asyncio
    async def test_delete_keys_matching_escapes_redis_glob_syntax(
        self, redis_adapter, fake_redis
    ):
        for key in ("note:a?b", "note:axb", "note:a\\b"):
            await redis_adapter.set_with_ttl(key, "1", 60)

        assert await redis_adapter.delete_keys_matching("note:a?b") == 1
        assert fake_redis.calls_for("keys")[-1] == ("keys", "note:a\\?b")
        assert await redis_adapter.delete_keys_matching("note:a\\b") == 1
        assert list(fake_redis.store) == ["note:axb"]

    @pytest.mark.asyncio
    async def test_legacy_patterns_sent_unescaped(self, fake_redis):
        adapter = RedisCacheAdapter(
            redis_url=TEST_REDIS_URL,
            client_factory=lambda url: fake_redis,
            legacy_patterns=True,
        )
        for key in ("note:a?b", "note:axb"):
            await adapter.set_with_ttl(key, "1", 60)

        assert await adapter.delete_keys_matching("note:a?b") == 2
        assert fake_redis.calls_for("keys")[-1] == ("keys", "note:a?b")

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self, fake_redis):
        breaker = RedisCircuitBreaker(CircuitBreakerConfig(operation_timeout=0.05))
        adapter = RedisCacheAdapter(
            redis_url=TEST_REDIS_URL,
            client_factory=lambda url: fake_redis,
            circuit_breaker=breaker,
        )
        fake_redis.store["k"] = "v"
        fake_redis.stall("get", 1.0)

        assert await adapter.get("k") is None
        assert breaker.metrics.timeout_calls == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_client(self, fake_redis):
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=2, recovery_timeout=60.0)
        )
        adapter = RedisCacheAdapter(
            redis_url=TEST_REDIS_URL,
            client_factory=lambda url: fake_redis,
            circuit_breaker=breaker,
        )
        fake_redis.fail("get", ConnectionError("reset"))

        await adapter.get("a")
        await adapter.get("b")
        assert breaker.state == CircuitState.OPEN

        await adapter.get("c")
        assert len(fake_redis.calls_for("get")) == 2
        assert breaker.metrics.rejected_calls == 1


class TestRedisCacheAdapterErrorEvents:
    """Connection error events and shutdown."""

    @pytest.mark.asyncio
    async def test_error_event_makes_adapter_unavailable(
        self, redis_adapter, fake_redis
    ):
        await redis_adapter.ensure_initialized()

        fake_redis.emit_error(RedisConnectionError("socket closed"))

        assert redis_adapter.state == AdapterState.UNAVAILABLE
        assert not redis_adapter.is_available
        assert await redis_adapter.get("k") is None
        assert fake_redis.calls_for("get") == []

    @pytest.mark.asyncio
    async def test_close_releases_dropped_client(self, redis_adapter, fake_redis):
        await redis_adapter.ensure_initialized()
        fake_redis.emit_error(RedisConnectionError("socket closed"))

        await redis_adapter.close()

        assert fake_redis.closed is True

    @pytest.mark.asyncio
    async def test_close(self, redis_adapter, fake_redis):
        await redis_adapter.ensure_initialized()

        await redis_adapter.close()

        assert fake_redis.closed is True
        assert redis_adapter.state == AdapterState.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_close_before_initialization(self, redis_adapter, fake_redis):
        await redis_adapter.close()

        assert fake_redis.closed is False
        assert redis_adapter.state == AdapterState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_get_status(self, redis_adapter):
        await redis_adapter.ensure_initialized()

        status = redis_adapter.get_status()

        assert status["state"] == "ready"
        assert status["configured"] is True
        assert status["available"] is True
        assert status["circuit_breaker"]["state"] == "closed"
