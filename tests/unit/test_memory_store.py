"""
In-Memory Result Store Unit Tests
"""

from datetime import timedelta

import pytest

from bookstore.core.idempotency import IdempotencyRecord

TTL = timedelta(minutes=10)


@pytest.fixture
def record(clock):
    return IdempotencyRecord.start("k1", clock(), TTL)


class TestInMemoryResultStore:
    """Tests for InMemoryResultStore."""

    @pytest.mark.asyncio
    async def test_insert_if_absent(self, memory_store, record, clock):
        other = IdempotencyRecord.start("k1", clock(), TTL)

        assert await memory_store.insert_if_absent(record, TTL) is True
        assert await memory_store.insert_if_absent(other, TTL) is False
        assert (await memory_store.get("k1")).attempt_id == record.attempt_id

    @pytest.mark.asyncio
    async def test_expired_entry_is_absent(self, memory_store, record, clock):
        await memory_store.insert_if_absent(record, TTL)
        clock.advance(600)

        assert await memory_store.get("k1") is None
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_insert_after_expiry(self, memory_store, record, clock):
        await memory_store.insert_if_absent(record, TTL)
        clock.advance(601)

        assert await memory_store.insert_if_absent(
            IdempotencyRecord.start("k1", clock(), TTL), TTL
        ) is True

    @pytest.mark.asyncio
    async def test_update_requires_owning_attempt(self, memory_store, record, clock):
        await memory_store.insert_if_absent(record, TTL)
        intruder = IdempotencyRecord.start("k1", clock(), TTL).complete("{}", clock())

        assert await memory_store.update(intruder, TTL) is False
        assert await memory_store.update(record.complete("{}", clock()), TTL) is True

    @pytest.mark.asyncio
    async def test_update_does_not_resurrect(self, memory_store, record, clock):
        await memory_store.insert_if_absent(record, TTL)
        clock.advance(601)

        assert await memory_store.update(record.complete("{}", clock()), TTL) is False
        assert await memory_store.get("k1") is None

    @pytest.mark.asyncio
    async def test_update_with_spent_ttl(self, memory_store, record, clock):
        await memory_store.insert_if_absent(record, TTL)

        assert await memory_store.update(record.complete("{}", clock()), timedelta(0)) is False

    @pytest.mark.asyncio
    async def test_replace_is_compare_and_set(self, memory_store, record, clock):
        await memory_store.insert_if_absent(record, TTL)
        failed = record.fail("e", clock())
        await memory_store.update(failed, TTL)

        retry_a = IdempotencyRecord.start("k1", clock(), TTL)
        retry_b = IdempotencyRecord.start("k1", clock(), TTL)

        assert await memory_store.replace(failed, retry_a, TTL) is True
        assert await memory_store.replace(failed, retry_b, TTL) is False
        assert (await memory_store.get("k1")).attempt_id == retry_a.attempt_id

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, memory_store, clock):
        for key in ("a", "b", "c"):
            await memory_store.insert_if_absent(IdempotencyRecord.start(key, clock(), TTL), TTL)

        assert await memory_store.delete("a") is True
        assert await memory_store.delete("a") is False
        assert await memory_store.clear() == 2
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_ping(self, memory_store):
        assert await memory_store.ping() is True
