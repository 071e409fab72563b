import asyncio
from datetime import date

import pytest

from backend.app.core.booking_lock import LocalBookingLock, RedisBookingLock, booking_key
from backend.app.core.errors import NoAvailability

pytestmark = pytest.mark.asyncio


class FakeRedis:
    """Just enough of redis.asyncio.Redis for SET NX PX and the release script."""

    def __init__(self):
        self.values = {}
        self.calls = []

    async def set(self, key, value, nx=False, px=None):
        self.calls.append(("set", key, px))
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        self.calls.append(("eval", key))
        if self.values.get(key) == token:
            del self.values[key]
            return 1
        return 0


async def test_booking_key():
    assert booking_key("resto-1", date(2030, 1, 2)) == "booking:resto-1:2030-01-02"


async def test_redis_lock_acquires_in_order_and_releases():
    client = FakeRedis()
    lock = RedisBookingLock(client, ttl_ms=1_000, wait_seconds=1)

    async with lock.hold(["booking:r:2030-01-03", "booking:r:2030-01-02"]):
        assert set(client.values) == {"booking:r:2030-01-02", "booking:r:2030-01-03"}

    assert client.values == {}
    sets = [call for call in client.calls if call[0] == "set"]
    assert sets == [("set", "booking:r:2030-01-02", 1_000), ("set", "booking:r:2030-01-03", 1_000)]


async def test_redis_lock_released_when_body_raises():
    client = FakeRedis()
    lock = RedisBookingLock(client, wait_seconds=1)

    with pytest.raises(RuntimeError):
        async with lock.hold(["k"]):
            raise RuntimeError("boom")
    assert client.values == {}


async def test_redis_lock_times_out_as_no_availability():
    client = FakeRedis()
    client.values["k"] = "someone-else"
    lock = RedisBookingLock(client, wait_seconds=0.1, poll_seconds=0.01)

    with pytest.raises(NoAvailability):
        async with lock.hold(["k"]):
            pass
    # the other holder keeps its lease
    assert client.values == {"k": "someone-else"}


async def test_redis_lock_partial_acquire_is_rolled_back():
    client = FakeRedis()
    client.values["b"] = "someone-else"
    lock = RedisBookingLock(client, wait_seconds=0.05, poll_seconds=0.01)

    with pytest.raises(NoAvailability):
        async with lock.hold(["a", "b"]):
            pass
    assert client.values == {"b": "someone-else"}


async def test_expired_lease_is_not_deleted_by_old_holder():
    client = FakeRedis()
    lock = RedisBookingLock(client, wait_seconds=1)

    async with lock.hold(["k"]):
        # lease expired and another worker took it
        client.values["k"] = "new-holder"
    assert client.values == {"k": "new-holder"}


async def test_local_lock_serialises_holders():
    lock = LocalBookingLock(wait_seconds=1)
    order = []

    async def worker(name):
        async with lock.hold(["k"]):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


async def test_local_lock_times_out():
    lock = LocalBookingLock(wait_seconds=0.05)
    entered = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with lock.hold(["k"]):
            entered.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await entered.wait()
    with pytest.raises(NoAvailability):
        async with lock.hold(["k"]):
            pass

    release.set()
    await task
    # free again once the holder leaves
    async with lock.hold(["k"]):
        pass


async def test_local_lock_independent_keys_do_not_block():
    lock = LocalBookingLock(wait_seconds=0.05)
    async with lock.hold(["a"]):
        async with lock.hold(["b"]):
            pass
