"""
Redis Connection Factory

Connection management for Redis-backed cache handlers.
One connection pool and one circuit breaker per connection name.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ...core.config import Settings, get_settings
from .circuit_breaker import CircuitBreakerConfig, RedisCircuitBreaker
from .exceptions import RedisConfigurationException

logger = logging.getLogger(__name__)


class RedisConnectionFactory:
    """
    Factory for creating and managing Redis connections per cache connection name.

    Pools are created lazily on first use; a connection may point at its own
    Redis URL, otherwise the default REDIS_URL is used.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._clients: Dict[str, Redis] = {}
        self._breakers: Dict[str, RedisCircuitBreaker] = {}

    def _connection_kwargs(self) -> Dict[str, Any]:
        return {
            "decode_responses": True,
            "socket_connect_timeout": self.settings.REDIS_CONNECTION_TIMEOUT,
            "socket_timeout": self.settings.REDIS_OPERATION_TIMEOUT,
            "retry_on_timeout": True,
            "health_check_interval": self.settings.REDIS_HEALTH_CHECK_INTERVAL,
            "max_connections": self.settings.REDIS_MAX_CONNECTIONS,
        }

    def get_client(self, name: str, redis_url: Optional[str] = None) -> Redis:
        """
        Get the Redis client of a connection name.

        Raises:
            RedisConfigurationException: If the Redis URL is invalid
        """
        client = self._clients.get(name)
        if client is not None:
            return client

        url = redis_url or self.settings.REDIS_URL
        try:
            client = Redis.from_url(url, **self._connection_kwargs())
        except ValueError as e:
            raise RedisConfigurationException(
                message=f"Invalid Redis URL for connection '{name}'",
                config_key="redis_url",
                original_error=e,
            )

        self._clients[name] = client

        logger.debug(
            f"Created Redis connection pool for cache connection: {name}",
            extra={
                "connection_name": name,
                "max_connections": self.settings.REDIS_MAX_CONNECTIONS,
            },
        )
        return client

    def get_circuit_breaker(self, name: str) -> RedisCircuitBreaker:
        """Get the circuit breaker of a connection name."""
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = RedisCircuitBreaker(
                name,
                CircuitBreakerConfig(
                    failure_threshold=self.settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                    recovery_timeout=float(
                        self.settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT
                    ),
                    operation_timeout=self.settings.REDIS_OPERATION_TIMEOUT * 2,
                ),
            )
            self._breakers[name] = breaker
        return breaker

    async def health_check(self) -> Dict[str, Any]:
        """Ping every open connection."""
        health_status: Dict[str, Any] = {
            "status": "healthy",
            "timestamp": time.time(),
            "connections": {},
        }

        for name, client in self._clients.items():
            start_time = time.time()
            try:
                await client.ping()
                health_status["connections"][name] = {
                    "status": "healthy",
                    "response_time_ms": round((time.time() - start_time) * 1000, 2),
                    "circuit_breaker": self._breakers[name].get_status()
                    if name in self._breakers
                    else None,
                }
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Redis health check failed for {name}: {e}")
                health_status["status"] = "degraded"
                health_status["connections"][name] = {
                    "status": "unhealthy",
                    "error": str(e),
                }

        return health_status

    async def close(self) -> None:
        """Close all connection pools."""
        for name, client in self._clients.items():
            try:
                await client.aclose()
                logger.debug(f"Closed Redis connection pool: {name}")
            except (RedisError, OSError) as e:
                logger.warning(f"Error closing Redis pool {name}: {e}")

        self._clients.clear()
        logger.info("Redis connection factory closed")
