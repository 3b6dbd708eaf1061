"""
Unit tests for the in-memory cache handler.
"""

from unittest.mock import patch

import pytest

from model_cache.domain.cache.value_objects import CacheConfig
from model_cache.infrastructure.handlers.memory_handler import MemoryHandler


@pytest.fixture
def handler():
    return MemoryHandler(CacheConfig(name="default"))


class TestMemoryHandler:
    """Test MemoryHandler semantics."""

    @pytest.mark.asyncio
    async def test_three_way_get(self, handler):
        await handler.set("hit", {"id": 1}, 60)
        await handler.set("negative", {}, 60)

        assert await handler.get("hit") == {"id": 1}
        assert await handler.get("negative") == {}
        assert await handler.get("missing") is None

    @pytest.mark.asyncio
    async def test_entries_expire(self, handler):
        with patch("model_cache.infrastructure.handlers.memory_handler.time") as clock:
            clock.monotonic.return_value = 100.0
            await handler.set("k", {"id": 1}, 10)

            clock.monotonic.return_value = 109.0
            assert await handler.has("k")

            clock.monotonic.return_value = 110.0
            assert await handler.get("k") is None
            assert not await handler.has("k")

    @pytest.mark.asyncio
    async def test_get_returns_copies(self, handler):
        await handler.set("k", {"id": 1, "tags": ["a"]}, 60)

        data = await handler.get("k")
        data["tags"].append("b")

        assert await handler.get("k") == {"id": 1, "tags": ["a"]}

    @pytest.mark.asyncio
    async def test_get_multiple_skips_negative_and_missing(self, handler):
        await handler.set("a", {"id": 1}, 60)
        await handler.set("b", {}, 60)

        assert await handler.get_multiple(["a", "b", "c"]) == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_delete_multiple(self, handler):
        await handler.set("a", {"id": 1}, 60)

        assert await handler.delete_multiple(["a", "missing"]) is True
        assert len(handler) == 0

    @pytest.mark.asyncio
    async def test_incr(self, handler):
        await handler.set("a", {"id": 1, "views": 3}, 60)
        await handler.set("b", {}, 60)

        assert await handler.incr("a", "views", 2) is True
        assert await handler.incr("b", "views", 1) is True
        assert await handler.incr("missing", "views", 1) is False

        assert (await handler.get("a"))["views"] == 5
        assert await handler.get("b") == {"views": 1}

    @pytest.mark.asyncio
    async def test_incr_rejects_non_numeric(self, handler):
        await handler.set("a", {"id": 1, "name": "x"}, 60)

        with pytest.raises(TypeError):
            await handler.incr("a", "name", 1)

    @pytest.mark.asyncio
    async def test_expired_entries_swept_on_write(self, handler):
        with patch("model_cache.infrastructure.handlers.memory_handler.time") as clock:
            clock.monotonic.return_value = 100.0
            for i in range(1000):
                await handler.set(f"old:{i}", {"id": i}, 10)

            clock.monotonic.return_value = 200.0
            for i in range(10):
                await handler.set(f"new:{i}", {"id": i}, 10)

        assert len(handler) == 10

    @pytest.mark.asyncio
    async def test_expired_entries_swept_on_batch_read(self, handler):
        with patch("model_cache.infrastructure.handlers.memory_handler.time") as clock:
            clock.monotonic.return_value = 100.0
            await handler.set("a", {"id": 1}, 10)
            await handler.set("b", {"id": 2}, 60)

            clock.monotonic.return_value = 120.0
            assert await handler.get_multiple(["b"]) == [{"id": 2}]

        assert len(handler) == 1


class TestMemoryHandlerLimit:
    """Test max_entries eviction."""

    @pytest.mark.asyncio
    async def test_least_recently_used_evicted(self):
        handler = MemoryHandler(CacheConfig(name="default"), max_entries=2)

        await handler.set("a", {"id": 1}, 60)
        await handler.set("b", {"id": 2}, 60)
        await handler.get("a")
        await handler.set("c", {"id": 3}, 60)

        assert len(handler) == 2
        assert await handler.get("b") is None
        assert await handler.get("a") == {"id": 1}
        assert await handler.get("c") == {"id": 3}

    @pytest.mark.asyncio
    async def test_overwrite_does_not_evict(self):
        handler = MemoryHandler(CacheConfig(name="default"), max_entries=2)

        await handler.set("a", {"id": 1}, 60)
        await handler.set("b", {"id": 2}, 60)
        await handler.set("a", {"id": 1, "views": 1}, 60)

        assert await handler.get("b") == {"id": 2}
        assert await handler.get("a") == {"id": 1, "views": 1}

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            MemoryHandler(CacheConfig(name="default"), max_entries=0)
