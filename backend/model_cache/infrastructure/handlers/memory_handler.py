"""
In-Memory Cache Handler

Process-local cache handler with TTL expiry. Suitable for tests and
single-process deployments; entries are not shared between processes.
"""

import asyncio
import copy
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...domain.cache.repository_interfaces import CacheHandler, FieldMap
from ...domain.cache.value_objects import CacheConfig


@dataclass
class _Entry:
    fields: FieldMap
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class MemoryHandler(CacheHandler):
    """
    Cache handler keeping entries in a dictionary.

    Expired entries are swept on every write and batch read. With
    `max_entries` set, the least recently used entries are evicted once
    the limit is reached.
    """

    def __init__(self, config: CacheConfig, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.config = config
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = asyncio.Lock()

    def get_config(self) -> CacheConfig:
        return self.config

    def _live_entry(self, key: str) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(time.monotonic()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def _cleanup_expired(self) -> int:
        now = time.monotonic()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_entries(self, count: int) -> None:
        for _ in range(min(count, len(self._entries))):
            self._entries.popitem(last=False)

    async def get(self, key: str) -> Optional[FieldMap]:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            return copy.deepcopy(entry.fields)

    async def set(self, key: str, fields: FieldMap, ttl: int) -> None:
        async with self._lock:
            self._cleanup_expired()
            self._entries.pop(key, None)
            if self.max_entries is not None and len(self._entries) >= self.max_entries:
                self._evict_entries(len(self._entries) - self.max_entries + 1)

            self._entries[key] = _Entry(
                fields=copy.deepcopy(dict(fields)),
                expires_at=time.monotonic() + ttl,
            )

    async def get_multiple(self, keys: Sequence[str]) -> List[FieldMap]:
        async with self._lock:
            self._cleanup_expired()
            results = []
            for key in keys:
                entry = self._live_entry(key)
                if entry is not None and entry.fields:
                    results.append(copy.deepcopy(entry.fields))
            return results

    async def delete_multiple(self, keys: Sequence[str]) -> bool:
        async with self._lock:
            for key in keys:
                self._entries.pop(key, None)
            return True

    async def has(self, key: str) -> bool:
        async with self._lock:
            return self._live_entry(key) is not None

    async def incr(self, key: str, column: str, amount: float) -> bool:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            current = entry.fields.get(column, 0)
            if isinstance(current, bool) or not isinstance(current, (int, float)):
                raise TypeError(f"Field '{column}' is not numeric")
            entry.fields[column] = current + amount
            return True

    def __len__(self) -> int:
        return len(self._entries)
