"""
Cache Handler Registry

Maps handler type tags to constructors and resolves the per-connection
configuration into an immutable connection name -> handler mapping.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from ...domain.cache.exceptions import CacheConfigurationError
from ...domain.cache.repository_interfaces import CacheHandler
from ...domain.cache.value_objects import CacheConfig
from ..redis.connection_factory import RedisConnectionFactory
from .memory_handler import MemoryHandler
from .redis_handler import RedisHandler

logger = logging.getLogger(__name__)

DEFAULT_HANDLER = "redis"


class HandlerContext:
    """Shared resources handed to handler factories."""

    def __init__(self, connection_factory: Optional[RedisConnectionFactory] = None):
        self._connection_factory = connection_factory

    @property
    def connection_factory(self) -> RedisConnectionFactory:
        if self._connection_factory is None:
            self._connection_factory = RedisConnectionFactory()
        return self._connection_factory


HandlerFactory = Callable[[CacheConfig, Mapping[str, Any], HandlerContext], CacheHandler]


def _build_redis_handler(
    config: CacheConfig, options: Mapping[str, Any], context: HandlerContext
) -> CacheHandler:
    factory = context.connection_factory
    return RedisHandler(
        config,
        factory.get_client(config.name, options.get("redis_url")),
        circuit_breaker=factory.get_circuit_breaker(config.name),
    )


def _build_memory_handler(
    config: CacheConfig, options: Mapping[str, Any], context: HandlerContext
) -> CacheHandler:
    return MemoryHandler(config, max_entries=options.get("max_entries"))


HANDLER_REGISTRY: Dict[str, HandlerFactory] = {
    "redis": _build_redis_handler,
    "memory": _build_memory_handler,
}


def register_handler(tag: str, factory: HandlerFactory) -> None:
    """Register a handler constructor under a type tag."""
    if not tag:
        raise ValueError("Handler tag cannot be empty")
    HANDLER_REGISTRY[tag] = factory


def build_handlers(
    databases: Mapping[str, Mapping[str, Any]],
    connection_factory: Optional[RedisConnectionFactory] = None,
) -> Mapping[str, CacheHandler]:
    """
    Build one handler per configured connection name.

    Args:
        databases: {name: {"handler": tag, "cache": {...options}}}
        connection_factory: Redis connections for redis handlers

    Returns:
        Read-only mapping of connection name to handler

    Raises:
        CacheConfigurationError: If a handler tag is unknown or options are invalid
    """
    context = HandlerContext(connection_factory)
    handlers: Dict[str, CacheHandler] = {}

    for name, item in databases.items():
        item = item or {}
        tag = item.get("handler") or DEFAULT_HANDLER
        factory = HANDLER_REGISTRY.get(tag)
        if factory is None:
            raise CacheConfigurationError(
                f"Unknown cache handler '{tag}' for connection '{name}'",
                connection_name=name,
                details={"available": sorted(HANDLER_REGISTRY)},
            )

        options = item.get("cache") or {}
        config = CacheConfig.from_options(options, name)
        handlers[name] = factory(config, options, context)

        logger.debug(
            f"Registered {tag} cache handler for connection {name}",
            extra={"connection_name": name, "handler": tag, "ttl": config.ttl},
        )

    return MappingProxyType(handlers)
