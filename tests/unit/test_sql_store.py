"""
SQL Result Store Unit Tests
"""

from datetime import timedelta

import pytest

from bookstore.core.idempotency import IdempotencyRecord, RecordStatus
from bookstore.core.idempotency.sql_store import SqlResultStore

TTL = timedelta(minutes=10)


@pytest.fixture
def store(session_factory, clock):
    return SqlResultStore(session_factory, clock=clock)


@pytest.fixture
def record(clock):
    return IdempotencyRecord.start("k1", clock(), TTL)


class TestSqlResultStore:
    """Tests for SqlResultStore against SQLite."""

    @pytest.mark.asyncio
    async def test_insert_if_absent(self, store, record, clock):
        assert await store.insert_if_absent(record, TTL) is True
        assert await store.insert_if_absent(IdempotencyRecord.start("k1", clock(), TTL), TTL) is False

        stored = await store.get("k1")
        assert stored.attempt_id == record.attempt_id

    @pytest.mark.asyncio
    async def test_expired_row_is_absent_and_reclaimable(self, store, record, clock):
        await store.insert_if_absent(record, TTL)
        clock.advance(601)

        assert await store.get("k1") is None
        assert await store.insert_if_absent(IdempotencyRecord.start("k1", clock(), TTL), TTL) is True

    @pytest.mark.asyncio
    async def test_update_finalizes_owned_record(self, store, record, clock):
        await store.insert_if_absent(record, TTL)

        assert await store.update(record.complete('{"id": 1}', clock()), TTL) is True

        stored = await store.get("k1")
        assert stored.status is RecordStatus.COMPLETED
        assert stored.result == '{"id": 1}'

    @pytest.mark.asyncio
    async def test_update_rejects_other_attempt(self, store, record, clock):
        await store.insert_if_absent(record, TTL)
        intruder = IdempotencyRecord.start("k1", clock(), TTL)

        assert await store.update(intruder.fail("e", clock()), TTL) is False

    @pytest.mark.asyncio
    async def test_update_does_not_resurrect(self, store, record, clock):
        await store.insert_if_absent(record, TTL)
        clock.advance(601)

        assert await store.update(record.complete("{}", clock()), TTL) is False

    @pytest.mark.asyncio
    async def test_replace_is_compare_and_set(self, store, record, clock):
        await store.insert_if_absent(record, TTL)
        first = IdempotencyRecord.start("k1", clock(), TTL)
        second = IdempotencyRecord.start("k1", clock(), TTL)

        assert await store.replace(record, first, TTL) is True
        assert await store.replace(record, second, TTL) is False
        assert (await store.get("k1")).attempt_id == first.attempt_id

    @pytest.mark.asyncio
    async def test_purge_expired(self, store, clock):
        await store.insert_if_absent(IdempotencyRecord.start("old", clock(), TTL), TTL)
        clock.advance(300)
        await store.insert_if_absent(IdempotencyRecord.start("new", clock(), TTL), TTL)
        clock.advance(301)

        assert await store.purge_expired() == 1
        assert await store.get("new") is not None

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, store, clock):
        for key in ("a", "b"):
            await store.insert_if_absent(IdempotencyRecord.start(key, clock(), TTL), TTL)

        assert await store.delete("a") is True
        assert await store.delete("a") is False
        assert await store.clear() == 1

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True
