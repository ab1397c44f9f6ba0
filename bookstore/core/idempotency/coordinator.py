"""
Idempotency Coordinator

Wraps a write operation so that repeated calls carrying the same idempotency
key apply it at most once within the TTL window and observe the same result.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from bookstore.config import settings
from bookstore.core.idempotency.codecs import ResultCodec, json_codec
from bookstore.core.idempotency.exceptions import (
    ConcurrentDuplicateError,
    StoreUnavailableError,
)
from bookstore.core.idempotency.keys import is_blank, validate_key
from bookstore.core.idempotency.models import IdempotencyRecord, RecordStatus
from bookstore.core.idempotency.store import Clock, ResultStore, utcnow
from bookstore.monitoring.logging import get_logger
from bookstore.monitoring.metrics import (
    idempotency_operation_duration,
    idempotency_requests_counter,
    idempotency_stale_recoveries_counter,
)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]

_MAX_ERROR_LENGTH = 500


def _as_timedelta(value: Union[int, float, timedelta]) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


def _describe(exc: BaseException) -> str:
    message = str(exc)
    text = f"{type(exc).__name__}: {message}" if message else type(exc).__name__
    return text[:_MAX_ERROR_LENGTH]


@dataclass(frozen=True)
class IdempotentResult(Generic[T]):
    """Outcome of an idempotent call."""
    value: T
    is_duplicate: bool
    key: Optional[str] = None


class IdempotencyCoordinator:
    """
    Coordinator for at-most-once writes.

    Flow for a non-blank key:
    1. Insert an IN_PROGRESS record if absent (atomic in the store)
    2. If the key is taken: replay a COMPLETED result, reject a live
       IN_PROGRESS one, or take over a FAILED or stale record
    3. Run the operation
    4. Finalize the record as COMPLETED (with the encoded result) or FAILED

    The coordinator keeps no state between calls. TTL counts from the claim,
    not from completion.
    """

    def __init__(
        self,
        store: ResultStore,
        ttl: Union[int, float, timedelta] = 3600,
        stale_after: Union[int, float, timedelta] = 300,
        operation_timeout: Optional[float] = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize coordinator.

        Args:
            store: Result store shared by every instance of the service
            ttl: How long a key is remembered after it is first claimed
            stale_after: Age after which an IN_PROGRESS record is treated as FAILED
            operation_timeout: Optional bound on the wrapped operation, in seconds
            clock: Source of the current UTC time
        """
        self.store = store
        self.ttl = _as_timedelta(ttl)
        self.stale_after = _as_timedelta(stale_after)
        self.operation_timeout = operation_timeout
        self.clock = clock
        self.logger = get_logger(__name__)

    async def execute(
        self,
        key: Optional[str],
        operation: Operation,
        codec: ResultCodec = json_codec,
    ) -> IdempotentResult:
        """
        Run ``operation`` at most once for ``key``.

        Args:
            key: Idempotency key; blank or None disables deduplication
            operation: Zero-argument callable returning an awaitable
            codec: Encodes the result for storage and decodes it on replay

        Returns:
            IdempotentResult with ``is_duplicate=True`` when the stored result
            of an earlier call was replayed

        Raises:
            ConcurrentDuplicateError: the key is being processed by another request
            StoreUnavailableError: the store is unreachable; nothing was executed
            InvalidIdempotencyKeyError: the key is longer than allowed
            Exception: whatever ``operation`` raised, unchanged
        """
        if is_blank(key):
            idempotency_requests_counter.labels(outcome="bypassed").inc()
            value = await self._run(operation)
            return IdempotentResult(value=value, is_duplicate=False)

        key = validate_key(key)
        log = self.logger.bind(idempotency_key=key)
        record = IdempotencyRecord.start(key, self.clock(), self.ttl)

        try:
            existing = await self._claim(record, log)
        except ConcurrentDuplicateError:
            idempotency_requests_counter.labels(outcome="conflict").inc()
            log.info("idempotency_conflict")
            raise
        except StoreUnavailableError:
            idempotency_requests_counter.labels(outcome="store_unavailable").inc()
            log.error("idempotency_store_unavailable", stage="claim")
            raise

        if existing is not None:
            value = codec.decode(existing.result)
            idempotency_requests_counter.labels(outcome="replayed").inc()
            log.info("idempotency_replayed", completed_at=existing.updated_at.isoformat())
            return IdempotentResult(value=value, is_duplicate=True, key=key)

        value = await self._execute_claimed(record, operation, codec, log)
        idempotency_requests_counter.labels(outcome="executed").inc()
        return IdempotentResult(value=value, is_duplicate=False, key=key)

    async def _claim(self, record: IdempotencyRecord, log) -> Optional[IdempotencyRecord]:
        """
        Claim the key for ``record``.

        Returns:
            None if the key was claimed, or the COMPLETED record to replay
        """
        if await self.store.insert_if_absent(record, self.ttl):
            log.debug("idempotency_claimed", attempt_id=record.attempt_id)
            return None

        existing = await self.store.get(record.key)

        if existing is None:
            # Expired between the insert and the read
            if await self.store.insert_if_absent(record, self.ttl):
                log.debug("idempotency_claimed", attempt_id=record.attempt_id)
                return None
            # Another attempt claimed it in the gap; judge its record as usual
            existing = await self.store.get(record.key)
            if existing is None:
                raise ConcurrentDuplicateError(record.key)

        now = self.clock()
        if not existing.is_expired(now):
            if existing.status is RecordStatus.COMPLETED:
                return existing

            if existing.status is RecordStatus.IN_PROGRESS:
                if not existing.is_stale(now, self.stale_after):
                    retry_after = int(
                        (existing.created_at + self.stale_after - now).total_seconds()
                    )
                    raise ConcurrentDuplicateError(record.key, retry_after=max(retry_after, 1))
                idempotency_stale_recoveries_counter.inc()
                log.warning(
                    "idempotency_stale_record_recovered",
                    stale_attempt_id=existing.attempt_id,
                    claimed_at=existing.created_at.isoformat(),
                )

        if await self.store.replace(existing, record, self.ttl):
            log.info(
                "idempotency_reclaimed",
                previous_status=existing.status.value,
                attempt_id=record.attempt_id,
            )
            return None

        raise ConcurrentDuplicateError(record.key)

    async def _execute_claimed(
        self,
        record: IdempotencyRecord,
        operation: Operation,
        codec: ResultCodec,
        log,
    ) -> Any:
        started = time.monotonic()
        try:
            value = await self._run(operation)
        except BaseException as exc:
            # BaseException so cancellation also releases the key
            idempotency_operation_duration.observe(time.monotonic() - started)
            idempotency_requests_counter.labels(outcome="failed").inc()
            await self._mark_failed(record, exc, log)
            raise
        idempotency_operation_duration.observe(time.monotonic() - started)

        try:
            encoded = codec.encode(value)
        except Exception as exc:
            # The write happened, so the key must not be freed for a rerun.
            # It stays IN_PROGRESS until the stale threshold.
            idempotency_requests_counter.labels(outcome="unencodable").inc()
            log.error(
                "idempotency_result_encoding_failed",
                operation_applied=True,
                error=_describe(exc),
                attempt_id=record.attempt_id,
            )
            raise

        now = self.clock()
        completed = record.complete(encoded, now)
        try:
            stored = await self.store.update(completed, completed.remaining_ttl(now))
        except StoreUnavailableError:
            idempotency_requests_counter.labels(outcome="store_unavailable").inc()
            log.error("idempotency_store_unavailable", stage="complete", operation_applied=True)
            raise

        if not stored:
            log.warning(
                "idempotency_record_lost",
                reason="expired or superseded before completion",
                attempt_id=record.attempt_id,
            )
        return value

    async def _mark_failed(self, record: IdempotencyRecord, exc: BaseException, log) -> None:
        now = self.clock()
        failed = record.fail(_describe(exc), now)
        try:
            await self.store.update(failed, failed.remaining_ttl(now))
        except StoreUnavailableError:
            # The operation's error still propagates; the stale threshold frees the key
            log.error("idempotency_mark_failed_error", error=failed.error, exc_info=True)
            return
        log.info("idempotency_operation_failed", error=failed.error)

    async def _run(self, operation: Operation) -> Any:
        if self.operation_timeout is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout=self.operation_timeout)


def build_coordinator(store: ResultStore, **overrides: Any) -> IdempotencyCoordinator:
    """Create a coordinator configured from application settings."""
    options = {
        "ttl": settings.idempotency_ttl,
        "stale_after": settings.idempotency_stale_after,
        "operation_timeout": settings.idempotency_operation_timeout,
    }
    options.update(overrides)
    return IdempotencyCoordinator(store, **options)
