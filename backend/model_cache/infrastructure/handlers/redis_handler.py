"""
Redis Cache Handler

Stores each cached record as a Redis hash, one JSON-encoded value per field.

Redis cannot hold an empty hash, so every written hash also carries a
placeholder field. A hash holding nothing but the placeholder is a
negative entry: the record is known not to exist in the store.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from redis.asyncio import Redis

from ...domain.cache.repository_interfaces import CacheHandler, FieldMap
from ...domain.cache.value_objects import CacheConfig
from ..redis.circuit_breaker import TRANSPORT_ERRORS, RedisCircuitBreaker
from ..redis.exceptions import RedisConnectionException

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Increment only when the key already holds a hash.
INCR_SCRIPT = """
if redis.call('type', KEYS[1]).ok == 'hash' then
    return tostring(redis.call('HINCRBYFLOAT', KEYS[1], ARGV[1], ARGV[2]))
end
return false
"""


class RedisHandler(CacheHandler):
    """Cache handler backed by Redis hashes."""

    DEFAULT_KEY = "HF-DATA"
    DEFAULT_VALUE = "DEFAULT"

    def __init__(
        self,
        config: CacheConfig,
        redis: Redis,
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
    ):
        self.config = config
        self.redis = redis
        self.circuit_breaker = circuit_breaker
        self._transport_errors = TRANSPORT_ERRORS
        if circuit_breaker is not None:
            self._transport_errors += tuple(circuit_breaker.config.failure_exceptions)
        self._incr_script = redis.register_script(INCR_SCRIPT)

    def get_config(self) -> CacheConfig:
        return self.config

    async def _execute(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run one Redis command, through the circuit breaker when configured."""
        try:
            if self.circuit_breaker is not None:
                return await self.circuit_breaker.call(func)
            return await func()
        except self._transport_errors as e:
            logger.error(
                f"Redis {operation} failed for connection {self.config.name}: {e}"
            )
            raise RedisConnectionException(
                message=f"Redis {operation} failed: {str(e)}",
                connection_name=self.config.name,
                original_error=e,
            )

    def _encode(self, fields: FieldMap) -> Dict[str, str]:
        encoded = {
            str(field): json.dumps(value, default=str) for field, value in fields.items()
        }
        encoded[self.DEFAULT_KEY] = self.DEFAULT_VALUE
        return encoded

    def _decode(self, raw: Dict[str, str]) -> FieldMap:
        data: FieldMap = {}
        for field, value in raw.items():
            if field == self.DEFAULT_KEY:
                continue
            try:
                data[field] = json.loads(value)
            except json.JSONDecodeError:
                data[field] = value
        return data

    async def get(self, key: str) -> Optional[FieldMap]:
        raw = await self._execute("get", lambda: self.redis.hgetall(key))
        if not raw:
            return None
        return self._decode(raw)

    async def set(self, key: str, fields: FieldMap, ttl: int) -> None:
        async def write() -> Any:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=self._encode(fields))
                pipe.expire(key, ttl)
                return await pipe.execute()

        await self._execute("set", write)

    async def get_multiple(self, keys: Sequence[str]) -> List[FieldMap]:
        if not keys:
            return []

        async def read() -> List[Dict[str, str]]:
            async with self.redis.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.hgetall(key)
                return await pipe.execute()

        results = []
        for raw in await self._execute("get_multiple", read):
            data = self._decode(raw or {})
            if data:
                results.append(data)
        return results

    async def delete_multiple(self, keys: Sequence[str]) -> bool:
        if not keys:
            return True
        await self._execute("delete_multiple", lambda: self.redis.delete(*keys))
        return True

    async def has(self, key: str) -> bool:
        return bool(await self._execute("has", lambda: self.redis.exists(key)))

    async def incr(self, key: str, column: str, amount: float) -> bool:
        result = await self._execute(
            "incr", lambda: self._incr_script(keys=[key], args=[column, amount])
        )
        return result is not None
