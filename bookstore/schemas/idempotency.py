"""
Idempotency Schemas

Pydantic schemas for the idempotency administration endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from bookstore.core.idempotency.models import RecordStatus


class IdempotencyRecordResponse(BaseModel):
    """Schema for inspecting a stored idempotency record."""
    key: str
    status: RecordStatus
    attempt_id: str
    has_result: bool = Field(..., description="Whether a replayable result is stored")
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime


class CacheClearResponse(BaseModel):
    """Schema for operator cache clear responses."""
    message: str
    cleared: int
