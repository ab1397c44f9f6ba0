"""
SQL Result Store

Relational idempotency records for deployments without a shared Redis.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from bookstore.core.idempotency.exceptions import StoreUnavailableError
from bookstore.core.idempotency.models import IdempotencyRecord
from bookstore.core.idempotency.store import Clock, ResultStore, utcnow
from bookstore.db.models.idempotency import IdempotencyRecordRow
from bookstore.monitoring.metrics import idempotency_records_purged_counter

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlResultStore(ResultStore):
    """
    SQLAlchemy-backed result store.

    Each call runs in its own session so idempotency bookkeeping commits
    independently of the caller's transaction. The unique key column makes
    inserts atomic; conditional UPDATEs guard finalizing writes. Expired rows
    are filtered on read and removed by ``purge_expired``.
    """

    def __init__(self, session_factory: async_sessionmaker, clock: Clock = utcnow):
        """
        Initialize SQL store.

        Args:
            session_factory: SQLAlchemy async sessionmaker (not a session)
            clock: Source of the current UTC time
        """
        self.session_factory = session_factory
        self._clock = clock

    def _now(self) -> datetime:
        return _naive_utc(self._clock())

    @asynccontextmanager
    async def _translate_errors(self, operation: str, key: Optional[str] = None):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"SQL {operation} failed for key {key}: {e}")
            raise StoreUnavailableError(f"SQL {operation} failed: {e}") from e

    async def insert_if_absent(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        now = self._now()
        async with self._translate_errors("insert", record.key):
            async with self.session_factory() as session:
                # An expired row must not block a new claim
                await session.execute(
                    delete(IdempotencyRecordRow).where(
                        IdempotencyRecordRow.key == record.key,
                        IdempotencyRecordRow.expires_at <= now,
                    )
                )
                session.add(IdempotencyRecordRow(
                    key=record.key,
                    attempt_id=record.attempt_id,
                    status=record.status.value,
                    payload=record.to_json(),
                    error=record.error,
                    expires_at=now + ttl,
                ))
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return False
        return True

    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        async with self._translate_errors("get", key):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(IdempotencyRecordRow.payload).where(
                        IdempotencyRecordRow.key == key,
                        IdempotencyRecordRow.expires_at > self._now(),
                    )
                )
                payload = result.scalar_one_or_none()

        if payload is None:
            return None
        return IdempotencyRecord.from_json(payload)

    async def _set_if_attempt(
        self,
        key: str,
        attempt_id: str,
        record: IdempotencyRecord,
        ttl: timedelta,
    ) -> bool:
        if ttl <= timedelta(0):
            return False

        now = self._now()
        async with self._translate_errors("update", key):
            async with self.session_factory() as session:
                result = await session.execute(
                    update(IdempotencyRecordRow)
                    .where(
                        IdempotencyRecordRow.key == key,
                        IdempotencyRecordRow.attempt_id == attempt_id,
                        IdempotencyRecordRow.expires_at > now,
                    )
                    .values(
                        attempt_id=record.attempt_id,
                        status=record.status.value,
                        payload=record.to_json(),
                        error=record.error,
                        expires_at=now + ttl,
                    )
                )
                await session.commit()
        return result.rowcount > 0

    async def update(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        return await self._set_if_attempt(record.key, record.attempt_id, record, ttl)

    async def replace(
        self,
        expected: IdempotencyRecord,
        record: IdempotencyRecord,
        ttl: timedelta,
    ) -> bool:
        return await self._set_if_attempt(expected.key, expected.attempt_id, record, ttl)

    async def delete(self, key: str) -> bool:
        async with self._translate_errors("delete", key):
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(IdempotencyRecordRow).where(IdempotencyRecordRow.key == key)
                )
                await session.commit()
        return result.rowcount > 0

    async def clear(self) -> int:
        async with self._translate_errors("clear"):
            async with self.session_factory() as session:
                result = await session.execute(delete(IdempotencyRecordRow))
                await session.commit()

        logger.info(f"Cleared {result.rowcount} idempotency records")
        return result.rowcount

    async def purge_expired(self) -> int:
        """
        Delete rows whose TTL has elapsed.

        Returns:
            Number of rows removed
        """
        async with self._translate_errors("purge"):
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(IdempotencyRecordRow).where(
                        IdempotencyRecordRow.expires_at <= self._now()
                    )
                )
                await session.commit()

        purged = result.rowcount
        if purged:
            idempotency_records_purged_counter.inc(purged)
            logger.info(f"Purged {purged} expired idempotency records")
        return purged

    async def ping(self) -> bool:
        async with self._translate_errors("ping"):
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        return True
