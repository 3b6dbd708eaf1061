"""
Model Cache

Cache-aside layer for records addressed by primary key.
"""

from .domain.cache.exceptions import CacheConfigurationError
from .domain.cache.repository_interfaces import CacheHandler, RecordStore
from .domain.cache.value_objects import (
    CacheConfig,
    EntityDescriptor,
    build_cache_key,
    render_identifier,
)
from .infrastructure.handlers import (
    MemoryHandler,
    RedisHandler,
    build_handlers,
    register_handler,
)
from .infrastructure.repositories import SQLAlchemyRecordStore
from .services.cache import CacheManager

__version__ = "0.1.0"

__all__ = [
    "CacheConfig",
    "CacheConfigurationError",
    "CacheHandler",
    "CacheManager",
    "EntityDescriptor",
    "MemoryHandler",
    "RecordStore",
    "RedisHandler",
    "SQLAlchemyRecordStore",
    "build_cache_key",
    "build_handlers",
    "register_handler",
    "render_identifier",
]
