"""
Cache Value Objects

Immutable value objects for the model cache: per-connection cache
configuration, entity descriptors and cache key derivation.
"""

import string
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
from uuid import UUID

from sqlalchemy import inspect as sa_inspect

from .exceptions import CacheConfigurationError

Identifier = Union[int, str, UUID]

DEFAULT_CACHE_KEY = "mc:{}:m:{}:{}:{}"
DEFAULT_TTL = 3600
DEFAULT_CONNECTION = "default"


def render_identifier(value: Identifier) -> str:
    """
    Render a primary key value for use inside a cache key.

    Integers render as decimal, strings unchanged and UUIDs in canonical
    lowercase form. Anything else (bool included) is rejected.
    """
    if isinstance(value, bool):
        raise TypeError("Boolean values are not valid identifiers")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Unsupported identifier type: {type(value).__name__}")


def _count_placeholders(template: str) -> int:
    """Count positional `{}` fields, rejecting named or indexed ones."""
    try:
        fields = list(string.Formatter().parse(template))
    except ValueError as e:
        raise CacheConfigurationError(
            f"Malformed cache key template: {template}"
        ) from e

    count = 0
    for _, field_name, _, _ in fields:
        if field_name is None:
            continue
        if field_name != "":
            raise CacheConfigurationError(
                f"Cache key template must use positional '{{}}' fields only: {template}"
            )
        count += 1
    return count


@dataclass(frozen=True)
class CacheConfig:
    """
    Immutable cache configuration for one connection name.

    The key template takes four ordered placeholders: prefix, table name,
    primary key name and id.
    """

    name: str
    cache_key: str = DEFAULT_CACHE_KEY
    prefix: str = ""
    ttl: int = DEFAULT_TTL
    empty_model_ttl: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        placeholders = _count_placeholders(self.cache_key)

        if placeholders != 4:
            raise CacheConfigurationError(
                f"Cache key template needs exactly 4 placeholders, got {placeholders}",
                connection_name=self.name,
                details={"cache_key": self.cache_key},
            )

        if not isinstance(self.ttl, int) or isinstance(self.ttl, bool) or self.ttl <= 0:
            raise CacheConfigurationError(
                "TTL must be a positive integer", connection_name=self.name
            )

        if self.empty_model_ttl is not None and (
            not isinstance(self.empty_model_ttl, int)
            or isinstance(self.empty_model_ttl, bool)
            or self.empty_model_ttl <= 0
        ):
            raise CacheConfigurationError(
                "Empty model TTL must be a positive integer",
                connection_name=self.name,
            )

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]], name: str) -> "CacheConfig":
        """Build configuration from a `cache` options mapping."""
        options = options or {}
        prefix = options.get("prefix")
        return cls(
            name=name,
            cache_key=options.get("cache_key", DEFAULT_CACHE_KEY),
            prefix=name if prefix is None else prefix,
            ttl=options.get("ttl", DEFAULT_TTL),
            empty_model_ttl=options.get("empty_model_ttl"),
        )

    @property
    def negative_ttl(self) -> int:
        """TTL used for negative entries."""
        return self.empty_model_ttl or self.ttl


@dataclass(frozen=True)
class EntityDescriptor:
    """Where and how an entity type is cached."""

    connection_name: str
    table_name: str
    primary_key_name: str

    @classmethod
    def from_model(cls, model: type) -> "EntityDescriptor":
        """Describe a SQLAlchemy declarative model class."""
        mapper = sa_inspect(model)
        primary_key = mapper.primary_key
        if len(primary_key) != 1:
            raise CacheConfigurationError(
                f"{model.__name__} must have a single-column primary key"
            )

        column = primary_key[0]
        attribute = mapper.get_property_by_column(column).key

        return cls(
            connection_name=getattr(model, "__connection__", DEFAULT_CONNECTION),
            table_name=mapper.local_table.name,
            primary_key_name=attribute,
        )


def build_cache_key(
    id: Identifier, descriptor: EntityDescriptor, config: CacheConfig
) -> str:
    """Render the cache key of one record."""
    return config.cache_key.format(
        config.prefix,
        descriptor.table_name,
        descriptor.primary_key_name,
        render_identifier(id),
    )
