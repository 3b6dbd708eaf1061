"""
Redis Infrastructure Module

Redis connections for the cache handlers.

This module provides:
- RedisConnectionFactory: One client and circuit breaker per connection name
- Circuit breaker pattern for resilience
- Redis exception hierarchy
"""

from .connection_factory import RedisConnectionFactory
from .circuit_breaker import (
    RedisCircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CircuitBreakerMetrics,
)
from .exceptions import (
    RedisException,
    RedisConnectionException,
    RedisCircuitBreakerOpenException,
    RedisConfigurationException,
)

__all__ = [
    # Connection management
    "RedisConnectionFactory",
    # Circuit breaker
    "RedisCircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitBreakerMetrics",
    # Exceptions
    "RedisException",
    "RedisConnectionException",
    "RedisCircuitBreakerOpenException",
    "RedisConfigurationException",
]
