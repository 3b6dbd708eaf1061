"""
Integration tests for the SQLAlchemy record store.
"""

import uuid
from datetime import datetime

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from model_cache.core.config import Settings
from model_cache.core.database import DatabaseManager
from model_cache.domain.cache.value_objects import EntityDescriptor

from tests.fixtures.models import Product, Tag


class TestLookups:
    """Test primary key queries."""

    @pytest.mark.asyncio
    async def test_describe(self, record_store):
        assert record_store.describe(Product) == EntityDescriptor(
            "default", "products", "id"
        )
        assert record_store.describe(Tag) == EntityDescriptor("catalog", "tags", "slug")

    @pytest.mark.asyncio
    async def test_find_by_primary_key(self, record_store, seed):
        descriptor = record_store.describe(Product)

        product = await record_store.find_by_primary_key(Product, descriptor, 2)
        missing = await record_store.find_by_primary_key(Product, descriptor, 99)

        assert product.name == "product-2"
        assert missing is None

    @pytest.mark.asyncio
    async def test_find_many_by_primary_key(self, record_store, seed):
        descriptor = record_store.describe(Product)

        products = await record_store.find_many_by_primary_key(
            Product, descriptor, [3, 1, 99]
        )

        assert sorted(p.id for p in products) == [1, 3]
        assert await record_store.find_many_by_primary_key(Product, descriptor, []) == []

    @pytest.mark.asyncio
    async def test_string_primary_key(self, record_store, seed):
        tag = await record_store.find_by_primary_key(
            Tag, record_store.describe(Tag), "sale"
        )

        assert tag.label == "On sale"


class TestFieldMaps:
    """Test conversion between records and cacheable field maps."""

    @pytest.mark.asyncio
    async def test_to_field_map_is_json_friendly(self, record_store, seed):
        fields = record_store.to_field_map(seed[0])

        assert fields == {
            "id": 1,
            "name": "product-1",
            "price": 9.5,
            "external_id": str(uuid.UUID(int=1)),
            "created_at": "2024-01-01T12:30:00",
            "stock": 10,
            "note": None,
        }

    def test_from_field_map_coerces_column_types(self, record_store):
        product = record_store.from_field_map(
            Product,
            {
                "id": 5,
                "name": "rebuilt",
                "price": 12,
                "external_id": "00000000-0000-0000-0000-000000000005",
                "created_at": "2024-02-03T04:05:06",
                "stock": 7.0,
                "note": None,
                "unknown": "ignored",
            },
        )

        assert product.price == 12.0 and isinstance(product.price, float)
        assert product.external_id == uuid.UUID(int=5)
        assert product.created_at == datetime(2024, 2, 3, 4, 5, 6)
        assert product.stock == 7 and isinstance(product.stock, int)

    def test_rebuilt_record_is_clean_and_detached(self, record_store):
        product = record_store.from_field_map(
            Product, {"id": 5, "name": "rebuilt", "price": 1.0, "stock": 1}
        )
        state = inspect(product)

        assert state.detached
        assert not state.modified
        assert not state.attrs.name.history.has_changes()

    @pytest.mark.asyncio
    async def test_rebuilt_record_merges_without_update(
        self, record_store, session_factory, seed
    ):
        fields = record_store.to_field_map(seed[1])
        product = record_store.from_field_map(Product, fields)

        async with session_factory() as session:
            merged = await session.merge(product, load=False)
            assert merged not in session.dirty
            merged.stock = 0
            await session.commit()

        reloaded = await record_store.find_by_primary_key(
            Product, record_store.describe(Product), 2
        )
        assert reloaded.stock == 0
        assert reloaded.name == "product-2"


class TestDatabaseManager:
    """Test engine wiring."""

    @pytest.mark.asyncio
    async def test_initialize_requires_url(self):
        manager = DatabaseManager(Settings(_env_file=None, DATABASE_URL=None))

        with pytest.raises(RuntimeError):
            await manager.initialize()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, database):
        assert await database.initialize() is database.session_factory

    @pytest.mark.asyncio
    async def test_failed_connection_disposes_engine(self, tmp_path):
        manager = DatabaseManager(
            Settings(
                _env_file=None,
                DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'x.db'}",
            )
        )

        with pytest.raises(OperationalError):
            await manager.initialize()

        assert manager.engine is None
        assert manager.session_factory is None
