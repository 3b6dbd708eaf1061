"""
Single-flight call de-duplication.

Concurrent callers asking for the same key share the result of one
in-flight call instead of each running their own.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict


class SingleFlight:
    """Per-key de-duplication of concurrent coroutine calls."""

    def __init__(self):
        self._calls: Dict[str, asyncio.Future] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    async def do(self, key: str, func: Callable[[], Awaitable[Any]]) -> Any:
        """Run `func` unless a call for `key` is already running; share its outcome."""
        future = self._calls.get(key)
        if future is not None:
            return await asyncio.shield(future)

        future = asyncio.get_running_loop().create_future()
        self._calls[key] = future
        try:
            result = await func()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure is not logged twice.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._calls.pop(key, None)
