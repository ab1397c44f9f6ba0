"""Idempotent write coordination"""

from bookstore.core.idempotency.codecs import JsonCodec, PydanticCodec, ResultCodec, json_codec
from bookstore.core.idempotency.coordinator import (
    IdempotencyCoordinator,
    IdempotentResult,
    build_coordinator,
)
from bookstore.core.idempotency.exceptions import (
    ConcurrentDuplicateError,
    IdempotencyError,
    InvalidIdempotencyKeyError,
    InvalidTransitionError,
    StoreUnavailableError,
)
from bookstore.core.idempotency.models import IdempotencyRecord, RecordStatus
from bookstore.core.idempotency.store import InMemoryResultStore, ResultStore

__all__ = [
    "ConcurrentDuplicateError",
    "IdempotencyCoordinator",
    "IdempotencyError",
    "IdempotencyRecord",
    "IdempotentResult",
    "InMemoryResultStore",
    "InvalidIdempotencyKeyError",
    "InvalidTransitionError",
    "JsonCodec",
    "PydanticCodec",
    "RecordStatus",
    "ResultCodec",
    "ResultStore",
    "StoreUnavailableError",
    "build_coordinator",
    "json_codec",
]
