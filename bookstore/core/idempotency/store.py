"""
Result Store

Interface the coordinator uses to persist idempotency records, plus an
in-process implementation for tests and single-instance development.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from bookstore.core.idempotency.models import IdempotencyRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultStore(ABC):
    """
    TTL-capable key-value store for idempotency records.

    All mutual exclusion between concurrent requests for the same key is
    delegated to the atomic primitives of the implementation. Expired
    entries must be reported as absent. Backend failures are raised as
    StoreUnavailableError.
    """

    @abstractmethod
    async def insert_if_absent(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        """
        Atomically store ``record`` unless its key is already present.

        Returns:
            True if stored, False if a live record already exists
        """

    @abstractmethod
    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        """Return the live record for ``key``, or None."""

    @abstractmethod
    async def update(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        """
        Overwrite the record for ``record.key``.

        Succeeds only while the key exists, has not expired and still belongs
        to ``record.attempt_id``. Expired keys are never resurrected.
        """

    @abstractmethod
    async def replace(
        self,
        expected: IdempotencyRecord,
        record: IdempotencyRecord,
        ttl: timedelta,
    ) -> bool:
        """Compare-and-set: overwrite only if the live record is ``expected``'s attempt."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a record (operator cache clears)."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every record. Returns the number removed."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check the backend is reachable."""


class InMemoryResultStore(ResultStore):
    """
    Thread-safe in-process store.

    A single lock makes each check-then-write sequence atomic within the
    process. State is lost on restart and is not shared between instances.
    """

    def __init__(self, clock: Clock = utcnow):
        self._entries: Dict[str, Tuple[IdempotencyRecord, datetime]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[IdempotencyRecord]:
        """Return the unexpired record for key, evicting it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        record, deadline = entry
        if deadline <= self._clock():
            del self._entries[key]
            return None
        return record

    def _put(self, record: IdempotencyRecord, ttl: timedelta) -> None:
        self._entries[record.key] = (record, self._clock() + ttl)

    async def insert_if_absent(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        with self._lock:
            if self._live(record.key) is not None:
                return False
            self._put(record, ttl)
            return True

    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        with self._lock:
            return self._live(key)

    async def update(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        if ttl <= timedelta(0):
            return False
        with self._lock:
            current = self._live(record.key)
            if current is None or current.attempt_id != record.attempt_id:
                return False
            self._put(record, ttl)
            return True

    async def replace(
        self,
        expected: IdempotencyRecord,
        record: IdempotencyRecord,
        ttl: timedelta,
    ) -> bool:
        with self._lock:
            current = self._live(expected.key)
            if current is None or current.attempt_id != expected.attempt_id:
                return False
            self._put(record, ttl)
            return True

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} in-memory idempotency records")
        return count

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
