"""Per-(restaurant, date) mutual exclusion around the booking check-and-write.

Production uses a Redis lease (``SET NX PX`` plus a token-checked delete) so
every API worker shares the same lock; ``LocalBookingLock`` covers a single
process. Keys are always taken in sorted order so two bookings that touch the
same pair of dates cannot deadlock.
"""
from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from datetime import date
from typing import Protocol
from uuid import uuid4

import redis.asyncio as redis

from backend.app.core.config import settings
from backend.app.core.errors import NoAvailability

logger = logging.getLogger(__name__)

redis_client: redis.Redis | None = None

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


async def init_redis() -> None:
    """Open the shared Redis connection used for booking leases."""
    global redis_client
    redis_client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


def booking_key(restaurant_id: str, day: date) -> str:
    return f"booking:{restaurant_id}:{day.isoformat()}"


def _busy(keys: Sequence[str]) -> NoAvailability:
    logger.info("Booking lock wait timed out", extra={"lock_keys": list(keys)})
    # A lost race is indistinguishable from a full book for the caller.
    return NoAvailability("No available tables for the requested time")


class BookingLock(Protocol):
    def hold(self, keys: Sequence[str]) -> AbstractAsyncContextManager[None]: ...


class RedisBookingLock:
    def __init__(
        self,
        client: redis.Redis,
        *,
        ttl_ms: int = 30_000,
        wait_seconds: float = 5.0,
        poll_seconds: float = 0.05,
    ) -> None:
        self._client = client
        self._ttl_ms = ttl_ms
        self._wait_seconds = wait_seconds
        self._poll_seconds = poll_seconds

    async def _acquire(self, key: str, deadline: float) -> str | None:
        token = str(uuid4())
        delay = self._poll_seconds
        while True:
            if await self._client.set(key, token, nx=True, px=self._ttl_ms):
                return token
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(delay)
            delay = min(delay * 2, 0.5)

    async def _release(self, key: str, token: str) -> None:
        await self._client.eval(_RELEASE_SCRIPT, 1, key, token)

    @asynccontextmanager
    async def hold(self, keys: Sequence[str]) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        deadline = time.monotonic() + self._wait_seconds
        async with AsyncExitStack() as stack:
            for key in ordered:
                token = await self._acquire(key, deadline)
                if token is None:
                    raise _busy(ordered)
                stack.push_async_callback(self._release, key, token)
            yield


class LocalBookingLock:
    def __init__(self, *, wait_seconds: float = 5.0) -> None:
        self._wait_seconds = wait_seconds
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, keys: Sequence[str]) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        locks = [self._lock_for(key) for key in ordered]
        deadline = time.monotonic() + self._wait_seconds
        async with AsyncExitStack() as stack:
            for lock in locks:
                remaining = max(deadline - time.monotonic(), 0.001)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=remaining)
                except asyncio.TimeoutError:
                    raise _busy(ordered) from None
                stack.callback(lock.release)
            yield
