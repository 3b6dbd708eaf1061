"""
Main pytest configuration for all backend tests.

Fixtures shared by unit and integration tests.
"""

import os

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from model_cache.services.cache.cache_manager import CacheManager

from tests.fixtures.records import InMemoryRecordStore


@pytest.fixture
def store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def databases_config():
    """Cache configuration with one in-memory connection."""
    return {
        "default": {
            "handler": "memory",
            "cache": {"prefix": "test", "ttl": 600},
        }
    }


@pytest.fixture
def cache_manager(databases_config, store):
    """Cache manager using in-memory handlers."""
    return CacheManager(databases_config, store)


# Test markers and configuration
def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "redis" in item.nodeid:
            item.add_marker(pytest.mark.redis)
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
