"""
Circuit breaker for distributed cache calls.

Every call made by the Redis cache adapter goes through ``call()``, which
bounds it with ``operation_timeout`` and keeps a struggling Redis from
being hit by every request: after ``failure_threshold`` consecutive
failures calls are rejected outright until ``recovery_timeout`` has
passed, then a few trial calls decide whether to close the circuit again.
"""

import asyncio
import inspect
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Type

import structlog

from .exceptions import (
    RedisCircuitBreakerOpenException,
    RedisOperationTimeoutException,
)

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Thresholds for a ``RedisCircuitBreaker``."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    # Trial successes needed in HALF_OPEN before closing
    success_threshold: int = 3
    operation_timeout: float = 10.0
    # Only these count towards opening; anything else is re-raised untouched
    failure_exceptions: Tuple[Type[BaseException], ...] = (
        ConnectionError,
        TimeoutError,
        OSError,
    )


@dataclass
class CircuitBreakerMetrics:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    timeout_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0

    @property
    def success_rate(self) -> float:
        return self.successful_calls / self.total_calls if self.total_calls else 0.0

    @property
    def failure_rate(self) -> float:
        return self.failed_calls / self.total_calls if self.total_calls else 0.0


class RedisCircuitBreaker:
    """
    Three-state breaker (closed, open, half-open) with a per-call timeout.

    State changes happen synchronously between awaits, so one breaker can
    be shared by every task on the event loop without a lock.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self.metrics = CircuitBreakerMetrics()
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.last_state_change_time = clock()

    async def call(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run ``func(*args, **kwargs)`` under breaker protection.

        Args:
            operation: Command name, used in logs and timeout errors
            func: Callable returning the value or an awaitable of it

        Raises:
            RedisCircuitBreakerOpenException: If the circuit is open
            RedisOperationTimeoutException: If the call exceeds operation_timeout
        """
        self.metrics.total_calls += 1
        self._admit()

        try:
            result = await asyncio.wait_for(
                self._invoke(func, *args, **kwargs),
                timeout=self.config.operation_timeout,
            )
        except asyncio.TimeoutError:
            self.metrics.timeout_calls += 1
            self._on_failure(operation, "timeout")
            raise RedisOperationTimeoutException(operation, self.config.operation_timeout)
        except self.config.failure_exceptions as e:
            self._on_failure(operation, type(e).__name__)
            raise

        self._on_success()
        return result

    @staticmethod
    async def _invoke(func: Callable[..., Any], *args, **kwargs) -> Any:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _admit(self) -> None:
        """Reject the call while open, or move to half-open once recovery is due."""
        if self.state != CircuitState.OPEN:
            return

        elapsed = self._clock() - (self.last_failure_time or 0.0)
        if elapsed < self.config.recovery_timeout:
            self.metrics.rejected_calls += 1
            raise RedisCircuitBreakerOpenException()

        self.success_count = 0
        self._transition(CircuitState.HALF_OPEN)

    def _on_success(self) -> None:
        self.metrics.successful_calls += 1

        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.success_threshold:
                self.failure_count = 0
                self.success_count = 0
                self._transition(CircuitState.CLOSED)
        elif self.failure_count:
            # Successes gradually forgive earlier failures
            self.failure_count -= 1

    def _on_failure(self, operation: str, failure_type: str) -> None:
        self.metrics.failed_calls += 1
        self.last_failure_time = self._clock()

        if self.state == CircuitState.HALF_OPEN:
            self.success_count = 0
            self._open(operation, failure_type)
            return

        self.failure_count += 1
        logger.warning(
            "Redis call failed",
            operation=operation,
            failure_type=failure_type,
            failure_count=self.failure_count,
        )
        if self.failure_count >= self.config.failure_threshold:
            self._open(operation, failure_type)

    def _open(self, operation: str, failure_type: str) -> None:
        self.metrics.circuit_opens += 1
        self._transition(
            CircuitState.OPEN, operation=operation, failure_type=failure_type
        )

    def _transition(self, state: CircuitState, **context: Any) -> None:
        previous = self.state
        self.state = state
        self.last_state_change_time = self._clock()
        logger.info(
            "Circuit breaker state changed",
            previous=previous.value,
            state=state.value,
            failure_count=self.failure_count,
            **context,
        )

    def get_status(self) -> Dict[str, Any]:
        """Snapshot for health reporting."""
        config = asdict(self.config)
        config.pop("failure_exceptions")
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure_time": self.last_failure_time,
            "last_state_change_time": self.last_state_change_time,
            "metrics": {
                **asdict(self.metrics),
                "success_rate": self.metrics.success_rate,
                "failure_rate": self.metrics.failure_rate,
            },
            "config": config,
        }

    async def reset(self) -> None:
        """Force the circuit closed and forget past failures."""
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
        self._transition(CircuitState.CLOSED, reason="manual_reset")
