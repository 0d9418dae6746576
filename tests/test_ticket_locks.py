import asyncio
import uuid

import pytest

from shared.cache.redis_client import DistributedLock, LockNotAcquired
from services.ticket_validation.services.ticket_locks import (
    LocalTicketLocks,
    RedisTicketLocks,
    build_ticket_locks,
    lock_key,
)


async def test_local_lock_serializes_same_ticket():
    locks = LocalTicketLocks()
    ticket_id = uuid.uuid4()
    active = 0
    max_active = 0

    async def critical_section():
        nonlocal active, max_active
        async with locks.hold(ticket_id):
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(critical_section() for _ in range(5)))

    assert max_active == 1
    assert len(locks) == 0


async def test_local_lock_does_not_block_other_tickets():
    locks = LocalTicketLocks(timeout=0.5)
    first, second = uuid.uuid4(), uuid.uuid4()

    async with locks.hold(first):
        async with locks.hold(second):
            assert len(locks) == 2

    assert len(locks) == 0


async def test_local_lock_times_out():
    locks = LocalTicketLocks(timeout=0.05)
    ticket_id = uuid.uuid4()

    async with locks.hold(ticket_id):
        with pytest.raises(LockNotAcquired):
            async with locks.hold(ticket_id):
                pass

    assert len(locks) == 0


async def test_redis_lock_is_exclusive_per_ticket(fake_redis):
    locks = RedisTicketLocks(timeout=0.2, expire=5)
    ticket_id = uuid.uuid4()

    async with locks.hold(ticket_id):
        assert await fake_redis.exists(f"lock:{lock_key(ticket_id)}")
        with pytest.raises(LockNotAcquired):
            async with locks.hold(ticket_id):
                pass
        async with locks.hold(uuid.uuid4()):
            pass

    assert not await fake_redis.exists(f"lock:{lock_key(ticket_id)}")


async def test_redis_lock_release_only_by_owner(fake_redis):
    lock = DistributedLock("scan:ticket:owner-check", timeout=0.1, expire=5)
    assert await lock.acquire()

    await fake_redis.set("lock:scan:ticket:owner-check", "someone-else")
    await lock.release()

    assert await fake_redis.get("lock:scan:ticket:owner-check") == "someone-else"


def test_build_ticket_locks():
    assert isinstance(build_ticket_locks("local", timeout=1, expire=5), LocalTicketLocks)
    assert isinstance(build_ticket_locks("redis", timeout=1, expire=5), RedisTicketLocks)
    with pytest.raises(ValueError):
        build_ticket_locks("zookeeper", timeout=1, expire=5)
