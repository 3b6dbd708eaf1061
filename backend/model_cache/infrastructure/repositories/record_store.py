"""
SQLAlchemy Record Store

Primary key lookups against SQLAlchemy declarative models, plus the
conversion of model instances to and from cacheable field maps.
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import make_transient_to_detached

from ...domain.cache.repository_interfaces import FieldMap, RecordStore
from ...domain.cache.value_objects import EntityDescriptor, Identifier

logger = structlog.get_logger()


def _encode_value(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    return value


def _coerce_value(column, value: Any) -> Any:
    """Convert a cached value back to the Python type of its column."""
    if value is None:
        return None

    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    if isinstance(value, python_type) and not (
        python_type is int and isinstance(value, bool)
    ):
        return value

    if python_type in (datetime, date, time) and isinstance(value, str):
        return python_type.fromisoformat(value)
    if python_type is uuid.UUID:
        return uuid.UUID(str(value))
    if python_type is Decimal:
        return Decimal(str(value))
    if python_type is int and isinstance(value, float) and value.is_integer():
        return int(value)
    if python_type is float and isinstance(value, int):
        return float(value)
    return value


class SQLAlchemyRecordStore(RecordStore):
    """
    Record store over SQLAlchemy declarative models.

    Each lookup runs in its own short-lived session; returned instances
    are detached and fully loaded.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize record store.

        Args:
            session_factory: async_sessionmaker bound to the database engine

        Raises:
            TypeError: If session_factory is not callable
        """
        if not callable(session_factory):
            raise TypeError(
                f"session_factory must be an async_sessionmaker, got {type(session_factory).__name__}"
            )
        self.session_factory = session_factory

    def describe(self, entity_type: type) -> EntityDescriptor:
        return EntityDescriptor.from_model(entity_type)

    async def find_by_primary_key(
        self, entity_type: type, descriptor: EntityDescriptor, id: Identifier
    ) -> Optional[Any]:
        primary_key = getattr(entity_type, descriptor.primary_key_name)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(entity_type).where(primary_key == id)
                )
                record = result.scalar_one_or_none()

            logger.debug(
                "RecordStore: Primary key lookup",
                model=entity_type.__name__,
                entity_id=str(id),
                found=record is not None,
            )
            return record

        except Exception as e:
            logger.error(
                "RecordStore: Failed to load record",
                model=entity_type.__name__,
                entity_id=str(id),
                error=str(e),
                exc_info=True,
            )
            raise

    async def find_many_by_primary_key(
        self,
        entity_type: type,
        descriptor: EntityDescriptor,
        ids: Sequence[Identifier],
    ) -> List[Any]:
        if not ids:
            return []

        primary_key = getattr(entity_type, descriptor.primary_key_name)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(entity_type).where(primary_key.in_(list(ids)))
                )
                records = list(result.scalars().all())

            logger.debug(
                "RecordStore: Batch primary key lookup",
                model=entity_type.__name__,
                requested=len(ids),
                found=len(records),
            )
            return records

        except Exception as e:
            logger.error(
                "RecordStore: Failed to load records",
                model=entity_type.__name__,
                requested=len(ids),
                error=str(e),
                exc_info=True,
            )
            raise

    def to_field_map(self, record: Any) -> FieldMap:
        mapper = sa_inspect(type(record))
        return {
            attr.key: _encode_value(getattr(record, attr.key))
            for attr in mapper.column_attrs
        }

    def from_field_map(self, entity_type: type, data: FieldMap) -> Any:
        """
        Build a detached instance whose state reads as freshly loaded.

        Unknown fields are ignored. Attach the result to a session with
        `session.merge(record, load=False)`.
        """
        mapper = sa_inspect(entity_type)
        values = {
            attr.key: _coerce_value(attr.columns[0], data[attr.key])
            for attr in mapper.column_attrs
            if attr.key in data
        }

        record = entity_type(**values)
        make_transient_to_detached(record)
        return record
