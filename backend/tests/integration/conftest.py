"""
Fixtures for integration tests against a SQLite database and fakeredis.
"""

import uuid
from datetime import datetime

import fakeredis.aioredis
import pytest

from model_cache.core.config import Settings
from model_cache.core.database import DatabaseManager
from model_cache.infrastructure.repositories.record_store import SQLAlchemyRecordStore

from tests.fixtures.models import Base, Product, Tag


@pytest.fixture
async def database(tmp_path):
    """Initialized database manager over a temporary SQLite file."""
    settings = Settings(
        _env_file=None, DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'records.db'}"
    )
    manager = DatabaseManager(settings)
    await manager.initialize()

    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield manager
    await manager.close()


@pytest.fixture
def session_factory(database):
    return database.session_factory


@pytest.fixture
def record_store(session_factory):
    return SQLAlchemyRecordStore(session_factory)


@pytest.fixture
async def seed(session_factory):
    """Insert products 1-3 and one tag."""
    products = [
        Product(
            id=i,
            name=f"product-{i}",
            price=9.5 * i,
            external_id=uuid.UUID(int=i),
            created_at=datetime(2024, 1, i, 12, 30),
            stock=i * 10,
        )
        for i in (1, 2, 3)
    ]
    async with session_factory() as session:
        session.add_all(products)
        session.add(Tag(slug="sale", label="On sale"))
        await session.commit()
    return products


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()
