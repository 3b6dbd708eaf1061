"""
Redis Circuit Breaker

Stops issuing cache commands to a Redis connection that keeps failing,
so callers get a fast, explicit error instead of piling up timeouts.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from .exceptions import RedisCircuitBreakerOpenException

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSPORT_ERRORS: Tuple[Type[BaseException], ...] = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"  # probing after the recovery timeout


@dataclass
class CircuitBreakerConfig:
    """Thresholds of one connection's breaker."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    success_threshold: int = 3
    operation_timeout: float = 10.0
    failure_exceptions: Tuple[Type[BaseException], ...] = TRANSPORT_ERRORS


@dataclass
class CircuitBreakerMetrics:
    """Call counters of one breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0

    @property
    def failure_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.failed_calls / self.total_calls


class RedisCircuitBreaker:
    """Circuit breaker guarding the commands of one cache connection."""

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Await `func(*args, **kwargs)` unless the circuit is open.

        Raises:
            RedisCircuitBreakerOpenException: If the circuit is open
            Exception: Whatever the call raised
        """
        await self._admit()

        try:
            result = await asyncio.wait_for(
                func(*args, **kwargs), timeout=self.config.operation_timeout
            )
        except self.config.failure_exceptions as e:
            await self._on_failure(type(e).__name__)
            raise

        await self._on_success()
        return result

    async def _admit(self) -> None:
        async with self._lock:
            self.metrics.total_calls += 1
            if self.state != CircuitState.OPEN:
                return

            if not self._recovery_due():
                self.metrics.rejected_calls += 1
                raise RedisCircuitBreakerOpenException(
                    f"Redis circuit breaker for '{self.name}' is open"
                )

            self.state = CircuitState.HALF_OPEN
            logger.info(
                f"Circuit breaker for {self.name} half-open, probing Redis",
                extra={"connection_name": self.name},
            )

    def _recovery_due(self) -> bool:
        if self.last_failure_time is None:
            return True
        return time.time() - self.last_failure_time >= self.config.recovery_timeout

    def _open(self, failure_type: str) -> None:
        self.state = CircuitState.OPEN
        self.success_count = 0
        self.metrics.circuit_opens += 1
        logger.warning(
            f"Circuit breaker for {self.name} opened",
            extra={
                "connection_name": self.name,
                "failure_count": self.failure_count,
                "failure_type": failure_type,
            },
        )

    async def _on_success(self) -> None:
        async with self._lock:
            self.metrics.successful_calls += 1

            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.config.success_threshold:
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
                    self.success_count = 0
                    logger.info(
                        f"Circuit breaker for {self.name} closed",
                        extra={"connection_name": self.name},
                    )
            elif self.failure_count:
                self.failure_count -= 1

    async def _on_failure(self, failure_type: str) -> None:
        async with self._lock:
            self.metrics.failed_calls += 1
            self.last_failure_time = time.time()

            if self.state == CircuitState.HALF_OPEN:
                self._open(failure_type)
            elif self.state == CircuitState.CLOSED:
                self.failure_count += 1
                if self.failure_count >= self.config.failure_threshold:
                    self._open(failure_type)

    def get_status(self) -> dict:
        """Breaker state and counters, for health checks."""
        metrics = asdict(self.metrics)
        metrics["failure_rate"] = self.metrics.failure_rate
        return {
            "connection": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
            "metrics": metrics,
        }

    async def reset(self) -> None:
        """Force the circuit closed."""
        async with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.last_failure_time = None

        logger.info(
            f"Circuit breaker for {self.name} reset",
            extra={"connection_name": self.name},
        )
