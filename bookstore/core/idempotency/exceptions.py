"""
Idempotency Errors

Exceptions raised by the coordinator and the result stores.
"""

from typing import Optional


class IdempotencyError(Exception):
    """Base class for idempotency failures."""


class ConcurrentDuplicateError(IdempotencyError):
    """Another request is currently processing the same idempotency key."""

    def __init__(self, key: str, retry_after: Optional[int] = None):
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"Request with idempotency key '{key}' is already being processed")


class StoreUnavailableError(IdempotencyError):
    """The result store could not be reached; deduplication cannot be guaranteed."""


class InvalidTransitionError(IdempotencyError):
    """An idempotency record was moved between states that are not connected."""

    def __init__(self, key: str, current: str, target: str):
        self.key = key
        self.current = current
        self.target = target
        super().__init__(f"Record '{key}' cannot move from {current} to {target}")


class InvalidIdempotencyKeyError(IdempotencyError, ValueError):
    """The supplied idempotency key is malformed."""
