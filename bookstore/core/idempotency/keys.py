"""
Idempotency Key Generation

Validation of client-supplied keys and derivation of keys from request data.
"""

import hashlib
import json
from typing import Any, Dict, Optional

from bookstore.core.idempotency.exceptions import InvalidIdempotencyKeyError
from bookstore.core.idempotency.models import MAX_KEY_LENGTH


def is_blank(key: Optional[str]) -> bool:
    """Whether a key is missing, in which case deduplication is skipped."""
    return key is None or not key.strip()


def validate_key(key: str) -> str:
    """
    Check a client-supplied idempotency key.

    Returns:
        The key, stripped of surrounding whitespace

    Raises:
        InvalidIdempotencyKeyError: if the key is blank or too long
    """
    if is_blank(key):
        raise InvalidIdempotencyKeyError("Idempotency key must not be empty")
    key = key.strip()
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidIdempotencyKeyError(
            f"Idempotency key must be at most {MAX_KEY_LENGTH} characters"
        )
    return key


def fingerprint(payload: Optional[Dict[str, Any]] = None, length: int = 16) -> str:
    """
    Stable hash of a request payload.

    Args:
        payload: JSON-compatible request data
        length: Number of hex characters to keep

    Returns:
        Truncated SHA256 of the canonical JSON form
    """
    canonical = json.dumps(payload or {}, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()[:length]


def create_book_key(isbn: str) -> str:
    """Key for creating a book; a book is identified by its ISBN."""
    return f"create_book:{isbn.strip()}"


def create_user_key(email: str, phone_number: str) -> str:
    """Key for creating a user from their natural identifiers."""
    return f"create_user:{email.strip().lower()}:{fingerprint({'phone': phone_number.strip()})}"


def update_key(entity: str, entity_id: int, payload: Dict[str, Any]) -> str:
    """Key for updating an entity with a particular request body."""
    return f"update_{entity}:{entity_id}:{fingerprint(payload)}"


def event_key(event_id: str) -> str:
    """Key for consuming a domain event exactly once."""
    return f"event:{event_id}"
