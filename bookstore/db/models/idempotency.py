"""
Idempotency Record Model

Database table backing the SQL result store.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bookstore.db.base import TimestampedModel


class IdempotencyRecordRow(TimestampedModel):
    """
    Idempotency Record Model.

    The unique constraint on ``key`` is what makes inserts atomic claims.
    ``payload`` holds the serialized IdempotencyRecord; the other columns are
    copies used for conditional updates and purging. ``expires_at`` is naive
    UTC so comparisons behave the same on every backend.
    """

    __tablename__ = "idempotency_records"

    key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )
    attempt_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<IdempotencyRecordRow(key={self.key}, status={self.status})>"
