"""
Cache Repository Interfaces

Abstract contracts consumed by the cache manager: the fast key-value
backend (handler) and the persistent record store queried on a miss.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from .value_objects import CacheConfig, EntityDescriptor, Identifier

FieldMap = Dict[str, Any]


class CacheHandler(ABC):
    """
    Abstract cache backend.

    `get` distinguishes three outcomes: a non-empty field map (hit), an
    empty map (negative entry) and None (key not cached at all).
    """

    @abstractmethod
    def get_config(self) -> CacheConfig:
        """Configuration this handler was built with."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[FieldMap]:
        """Read one entry."""
        pass

    @abstractmethod
    async def set(self, key: str, fields: FieldMap, ttl: int) -> None:
        """Write one entry, replacing any previous value."""
        pass

    @abstractmethod
    async def get_multiple(self, keys: Sequence[str]) -> List[FieldMap]:
        """Read many entries, returning only non-empty field maps."""
        pass

    @abstractmethod
    async def delete_multiple(self, keys: Sequence[str]) -> bool:
        """Remove entries."""
        pass

    @abstractmethod
    async def has(self, key: str) -> bool:
        """Check whether an entry (positive or negative) exists."""
        pass

    @abstractmethod
    async def incr(self, key: str, column: str, amount: float) -> bool:
        """Atomically add `amount` to one field of an existing entry."""
        pass


class RecordStore(ABC):
    """
    Abstract persistent store accessed by primary key.

    Records are opaque to the cache manager; the store converts them to
    and from field maps.
    """

    @abstractmethod
    def describe(self, entity_type: type) -> EntityDescriptor:
        """Connection, table and primary key of an entity type."""
        pass

    @abstractmethod
    async def find_by_primary_key(
        self, entity_type: type, descriptor: EntityDescriptor, id: Identifier
    ) -> Optional[Any]:
        """Load one record, or None when it does not exist."""
        pass

    @abstractmethod
    async def find_many_by_primary_key(
        self,
        entity_type: type,
        descriptor: EntityDescriptor,
        ids: Sequence[Identifier],
    ) -> List[Any]:
        """Load every existing record among `ids`, in no particular order."""
        pass

    @abstractmethod
    def to_field_map(self, record: Any) -> FieldMap:
        """Serialize a record to a field map."""
        pass

    @abstractmethod
    def from_field_map(self, entity_type: type, data: FieldMap) -> Any:
        """Build a record from cached fields, marked as loaded and clean."""
        pass
