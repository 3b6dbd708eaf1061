"""
Cache Manager Service

Cache-aside access to records by primary key. Lookups are served from the
cache handler registered for the entity's connection; misses are loaded
from the record store and written back, and ids missing from the store
are remembered as negative entries on the single-record path.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog
from opentelemetry import trace

from ...core.config import Settings
from ...domain.cache.exceptions import CacheConfigurationError
from ...domain.cache.repository_interfaces import CacheHandler, RecordStore
from ...domain.cache.value_objects import (
    EntityDescriptor,
    Identifier,
    build_cache_key,
    render_identifier,
)
from ...infrastructure.handlers.registry import build_handlers
from ...infrastructure.redis.connection_factory import RedisConnectionFactory
from .metrics import FALLBACK, HIT, MISS, NEGATIVE_HIT, CacheMetrics
from .single_flight import SingleFlight

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)


class CacheManager:
    """
    Cache-aside manager for records addressed by primary key.

    Holds one cache handler per connection name, built once from
    configuration. Entity types whose connection has no handler are served
    straight from the record store.
    """

    def __init__(
        self,
        databases: Optional[Mapping[str, Mapping[str, Any]]],
        store: RecordStore,
        *,
        connection_factory: Optional[RedisConnectionFactory] = None,
        single_flight: bool = False,
        metrics: Optional[CacheMetrics] = None,
    ):
        """
        Build the handler registry.

        Args:
            databases: {connection name: {"handler": tag, "cache": {...}}}
            store: Record store queried on cache misses
            connection_factory: Redis connections for redis handlers
            single_flight: Share one store query between concurrent misses of a key
            metrics: Counter sink (a private one is created by default)

        Raises:
            CacheConfigurationError: If the configuration section is missing or invalid
        """
        if databases is None:
            raise CacheConfigurationError(
                "Cache configuration section 'databases' does not exist"
            )

        self.store = store
        self._connection_factory = connection_factory or RedisConnectionFactory()
        self.handlers: Mapping[str, CacheHandler] = build_handlers(
            databases, self._connection_factory
        )
        self._single_flight = SingleFlight() if single_flight else None
        self.metrics = metrics or CacheMetrics()

        logger.info(
            "Cache manager initialized",
            connections=sorted(self.handlers),
            single_flight=single_flight,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: RecordStore,
        connection_factory: Optional[RedisConnectionFactory] = None,
    ) -> "CacheManager":
        """Build a manager from the DATABASES section of settings."""
        return cls(
            settings.databases_config(),
            store,
            connection_factory=connection_factory or RedisConnectionFactory(settings),
            single_flight=settings.MODEL_CACHE_SINGLE_FLIGHT,
        )

    def has_handler(self, connection_name: str) -> bool:
        return connection_name in self.handlers

    def handler_for(self, entity_type: type) -> Optional[CacheHandler]:
        """Handler serving an entity type, or None when it falls back to the store."""
        return self._resolve(entity_type)[1]

    def _resolve(
        self, entity_type: type
    ) -> Tuple[EntityDescriptor, Optional[CacheHandler]]:
        descriptor = self.store.describe(entity_type)
        return descriptor, self.handlers.get(descriptor.connection_name)

    # Lookups

    async def fetch_one(self, id: Identifier, entity_type: type) -> Optional[Any]:
        """
        Fetch one record, from cache when possible.

        Args:
            id: Primary key value
            entity_type: Model class of the record

        Returns:
            The record, or None if it does not exist
        """
        descriptor, handler = self._resolve(entity_type)
        connection = descriptor.connection_name

        with tracer.start_as_current_span("model_cache.fetch_one") as span:
            span.set_attribute("model_cache.connection", connection)
            span.set_attribute("model_cache.table", descriptor.table_name)

            if handler is None:
                logger.warning(
                    "Cache handler not exist, fetch data from database.",
                    connection=connection,
                    model=entity_type.__name__,
                )
                self.metrics.record_lookup(connection, FALLBACK)
                self.metrics.record_store_query(connection)
                return await self.store.find_by_primary_key(entity_type, descriptor, id)

            key = build_cache_key(id, descriptor, handler.get_config())
            data = await handler.get(key)

            if data:
                span.set_attribute("cache_hit", True)
                self.metrics.record_lookup(connection, HIT)
                return self.store.from_field_map(entity_type, data)

            if data is not None:
                span.set_attribute("cache_hit", True)
                span.set_attribute("negative_hit", True)
                self.metrics.record_lookup(connection, NEGATIVE_HIT)
                return None

            span.set_attribute("cache_hit", False)
            self.metrics.record_lookup(connection, MISS)

            if self._single_flight is not None:
                return await self._single_flight.do(
                    key, lambda: self._load_one(id, entity_type, descriptor, handler, key)
                )
            return await self._load_one(id, entity_type, descriptor, handler, key)

    async def _load_one(
        self,
        id: Identifier,
        entity_type: type,
        descriptor: EntityDescriptor,
        handler: CacheHandler,
        key: str,
    ) -> Optional[Any]:
        config = handler.get_config()
        self.metrics.record_store_query(descriptor.connection_name)
        record = await self.store.find_by_primary_key(entity_type, descriptor, id)

        if record is not None:
            await handler.set(key, self.store.to_field_map(record), config.ttl)
        else:
            await handler.set(key, {}, config.negative_ttl)
            logger.debug(
                "Cached negative entry",
                connection=descriptor.connection_name,
                model=entity_type.__name__,
                entity_id=render_identifier(id),
            )

        return record

    async def fetch_many(
        self, ids: Sequence[Identifier], entity_type: type
    ) -> List[Any]:
        """
        Fetch many records, in the order of `ids`.

        Duplicate ids yield the record once per occurrence; ids found neither
        in cache nor in the store are left out. Unlike `fetch_one`, ids absent
        from the store are not negatively cached, and negative entries do not
        prevent a store query.

        Args:
            ids: Primary key values
            entity_type: Model class of the records

        Returns:
            Found records in request order
        """
        ids = list(ids)
        if not ids:
            return []

        descriptor, handler = self._resolve(entity_type)
        connection = descriptor.connection_name

        with tracer.start_as_current_span("model_cache.fetch_many") as span:
            span.set_attribute("model_cache.connection", connection)
            span.set_attribute("model_cache.table", descriptor.table_name)
            span.set_attribute("model_cache.requested", len(ids))

            if handler is None:
                logger.warning(
                    "Cache handler not exist, fetch data from database.",
                    connection=connection,
                    model=entity_type.__name__,
                )
                self.metrics.record_lookup(connection, FALLBACK, len(ids))
                self.metrics.record_store_query(connection)
                return await self.store.find_many_by_primary_key(
                    entity_type, descriptor, ids
                )

            config = handler.get_config()
            primary_key = descriptor.primary_key_name
            keys = [build_cache_key(id, descriptor, config) for id in ids]

            resolved: Dict[str, Any] = {}
            for item in await handler.get_multiple(keys):
                if item.get(primary_key) is not None:
                    resolved[render_identifier(item[primary_key])] = (
                        self.store.from_field_map(entity_type, item)
                    )

            target_ids: List[Identifier] = []
            seen = set(resolved)
            for id in ids:
                rendered = render_identifier(id)
                if rendered not in seen:
                    seen.add(rendered)
                    target_ids.append(id)

            span.set_attribute("model_cache.cached", len(resolved))
            self.metrics.record_lookup(connection, HIT, len(resolved))
            self.metrics.record_lookup(connection, MISS, len(target_ids))

            if target_ids:
                self.metrics.record_store_query(connection)
                records = await self.store.find_many_by_primary_key(
                    entity_type, descriptor, target_ids
                )
                for record in records:
                    fields = self.store.to_field_map(record)
                    record_id = fields[primary_key]
                    await handler.set(
                        build_cache_key(record_id, descriptor, config),
                        fields,
                        config.ttl,
                    )
                    resolved[render_identifier(record_id)] = record

            return [
                resolved[rendered]
                for rendered in map(render_identifier, ids)
                if rendered in resolved
            ]

    # Invalidation and counters

    async def destroy(self, ids: Sequence[Identifier], entity_type: type) -> bool:
        """
        Remove the cache entries of `ids`.

        Store rows are untouched. Returns False when the entity's connection
        has no cache handler.
        """
        descriptor, handler = self._resolve(entity_type)

        with tracer.start_as_current_span("model_cache.destroy") as span:
            span.set_attribute("model_cache.connection", descriptor.connection_name)
            span.set_attribute("model_cache.requested", len(ids))

            if handler is None:
                logger.warning(
                    "Cache handler not exist, destroy skipped.",
                    connection=descriptor.connection_name,
                    model=entity_type.__name__,
                )
                return False

            config = handler.get_config()
            keys = [build_cache_key(id, descriptor, config) for id in ids]
            return await handler.delete_multiple(keys)

    async def increment(
        self, id: Identifier, column: str, amount: float, entity_type: type
    ) -> bool:
        """
        Add `amount` to a field of a cached record.

        Only entries already present in cache are incremented; nothing is
        written to the store and no entry is created. Returns False when the
        entry is absent or the connection has no cache handler.
        """
        descriptor, handler = self._resolve(entity_type)

        with tracer.start_as_current_span("model_cache.increment") as span:
            span.set_attribute("model_cache.connection", descriptor.connection_name)
            span.set_attribute("model_cache.column", column)

            if handler is None:
                logger.warning(
                    "Cache handler not exist, increment failed.",
                    connection=descriptor.connection_name,
                    model=entity_type.__name__,
                )
                return False

            key = build_cache_key(id, descriptor, handler.get_config())
            if await handler.has(key):
                return await handler.incr(key, column, amount)

            span.set_attribute("cache_hit", False)
            return False

    async def close(self) -> None:
        """Close Redis connections opened for the handlers."""
        await self._connection_factory.close()
