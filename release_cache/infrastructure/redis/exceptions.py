"""
Cache exceptions.

Transport failures (everything under ``RedisException``) are caught at the
distributed adapter boundary and never reach cache callers. Only
``CacheDeserializationException`` is allowed to propagate out of the cache.
"""

from typing import Any, Dict, Optional


def _error_details(original_error: Optional[BaseException], **details: Any) -> Dict[str, Any]:
    result = {name: value for name, value in details.items() if value is not None}
    if original_error is not None:
        result["original_error"] = str(original_error)
        result["original_error_type"] = type(original_error).__name__
    return result


class CacheException(Exception):
    """Base exception for cache errors."""

    error_code = "CACHE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.error_code
        self.details = details or {}


class CacheDeserializationException(CacheException):
    """A cached payload could not be decoded or validated.

    Points at corrupted data or an incompatible serialization change in the
    distributed tier, so it is surfaced instead of being treated as a miss.
    """

    error_code = "CACHE_DESERIALIZATION_ERROR"

    def __init__(self, key: str, original_error: Optional[Exception] = None):
        super().__init__(
            f"Cached value for '{key}' is malformed",
            details=_error_details(original_error, key=key),
        )
        self.key = key
        self.__cause__ = original_error


class RedisException(CacheException):
    """Base exception for Redis-related errors."""

    error_code = "REDIS_ERROR"


class RedisConnectionException(RedisException):
    """The Redis client could not be created or lost its connection."""

    error_code = "REDIS_CONNECTION_ERROR"

    def __init__(
        self,
        message: str = "Redis connection failed",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details=_error_details(original_error))
        self.__cause__ = original_error


class RedisOperationTimeoutException(RedisException):
    """A single Redis call exceeded the operation timeout."""

    error_code = "REDIS_TIMEOUT_ERROR"

    def __init__(self, operation: str, timeout_seconds: float, key: Optional[str] = None):
        super().__init__(
            f"Redis operation '{operation}' timed out after {timeout_seconds}s",
            details=_error_details(
                None, operation=operation, timeout_seconds=timeout_seconds, key=key
            ),
        )


class RedisCircuitBreakerOpenException(RedisException):
    """Calls are being rejected while the circuit breaker is open."""

    error_code = "REDIS_CIRCUIT_BREAKER_OPEN"

    def __init__(self, message: str = "Redis circuit breaker is open"):
        super().__init__(message, details={"service_status": "unavailable"})


class RedisConfigurationException(RedisException):
    """Redis settings are unusable (for example an unparsable URL)."""

    error_code = "REDIS_CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
    ):
        super().__init__(
            message,
            details=_error_details(
                None,
                config_key=config_key,
                config_value=None if config_value is None else str(config_value),
            ),
        )
