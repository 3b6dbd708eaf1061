"""
Cache Handlers

Concrete cache backends and the handler registry.
"""

from .memory_handler import MemoryHandler
from .redis_handler import RedisHandler
from .registry import HANDLER_REGISTRY, build_handlers, register_handler

__all__ = [
    "MemoryHandler",
    "RedisHandler",
    "HANDLER_REGISTRY",
    "build_handlers",
    "register_handler",
]
