"""
Idempotency Record

The value stored per idempotency key, and the state transitions it allows.
"""

import enum
import uuid
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

from bookstore.core.idempotency.exceptions import InvalidTransitionError

MAX_KEY_LENGTH = 255


class RecordStatus(str, enum.Enum):
    """Processing state of an idempotency key."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: Dict[RecordStatus, FrozenSet[RecordStatus]] = {
    RecordStatus.IN_PROGRESS: frozenset({RecordStatus.COMPLETED, RecordStatus.FAILED}),
    RecordStatus.COMPLETED: frozenset(),
    RecordStatus.FAILED: frozenset(),
}


def _new_attempt_id() -> str:
    return uuid.uuid4().hex


class IdempotencyRecord(BaseModel):
    """
    Idempotency Record.

    One record exists per key. It is created IN_PROGRESS by the request that
    claims the key and finalized (COMPLETED or FAILED) by that same request,
    identified by ``attempt_id``. Records are immutable; transitions return
    a new instance.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, max_length=MAX_KEY_LENGTH)
    status: RecordStatus = RecordStatus.IN_PROGRESS
    attempt_id: str = Field(default_factory=_new_attempt_id)
    result: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @classmethod
    def start(cls, key: str, now: datetime, ttl: timedelta) -> "IdempotencyRecord":
        """Create a fresh IN_PROGRESS record expiring ``ttl`` after ``now``."""
        return cls(
            key=key,
            created_at=now,
            updated_at=now,
            expires_at=now + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_stale(self, now: datetime, stale_after: timedelta) -> bool:
        """Whether an IN_PROGRESS record has outlived the staleness threshold."""
        return (
            self.status is RecordStatus.IN_PROGRESS
            and now - self.created_at >= stale_after
        )

    def remaining_ttl(self, now: datetime) -> timedelta:
        return self.expires_at - now

    def complete(self, result: str, now: datetime) -> "IdempotencyRecord":
        self._check_transition(RecordStatus.COMPLETED)
        return self.model_copy(update={
            "status": RecordStatus.COMPLETED,
            "result": result,
            "error": None,
            "updated_at": now,
        })

    def fail(self, error: Optional[str], now: datetime) -> "IdempotencyRecord":
        self._check_transition(RecordStatus.FAILED)
        return self.model_copy(update={
            "status": RecordStatus.FAILED,
            "result": None,
            "error": error,
            "updated_at": now,
        })

    def _check_transition(self, target: RecordStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.key, self.status.value, target.value)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data) -> "IdempotencyRecord":
        return cls.model_validate_json(data)
