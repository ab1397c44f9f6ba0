"""
Idempotency Routes

Operator endpoints for inspecting and clearing idempotency records.
"""

from fastapi import APIRouter, HTTPException, status

from bookstore.api.deps import ResultStoreDep
from bookstore.core.idempotency.keys import validate_key
from bookstore.monitoring.logging import get_logger
from bookstore.schemas.idempotency import CacheClearResponse, IdempotencyRecordResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("/{key}", response_model=IdempotencyRecordResponse)
async def get_record(key: str, store: ResultStoreDep) -> IdempotencyRecordResponse:
    """Inspect the record stored under an idempotency key."""
    record = await store.get(validate_key(key))
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No idempotency record for key '{key}'",
        )

    return IdempotencyRecordResponse(
        key=record.key,
        status=record.status,
        attempt_id=record.attempt_id,
        has_result=record.result is not None,
        error=record.error,
        created_at=record.created_at,
        updated_at=record.updated_at,
        expires_at=record.expires_at,
    )


@router.delete("/{key}", response_model=CacheClearResponse)
async def delete_record(key: str, store: ResultStoreDep) -> CacheClearResponse:
    """
    Forget a single idempotency key.

    The next request carrying the key runs as a new operation.
    """
    key = validate_key(key)
    if not await store.delete(key):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No idempotency record for key '{key}'",
        )

    logger.warning("idempotency_key_cleared", idempotency_key=key)
    return CacheClearResponse(message=f"Cleared idempotency key '{key}'", cleared=1)


@router.delete("", response_model=CacheClearResponse)
async def clear_records(store: ResultStoreDep) -> CacheClearResponse:
    """Forget every idempotency key."""
    cleared = await store.clear()
    logger.warning("idempotency_cache_cleared", cleared=cleared)
    return CacheClearResponse(message="Cleared idempotency cache", cleared=cleared)
