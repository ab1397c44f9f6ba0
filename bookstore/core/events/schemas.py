"""
Domain Event Schemas

Events published after books and users are written.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Domain event types."""
    BOOK_CREATED = "BOOK_CREATED"
    BOOK_UPDATED = "BOOK_UPDATED"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"


class DomainEvent(BaseModel):
    """Base event. ``event_id`` lets consumers drop redeliveries."""
    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BookEvent(DomainEvent):
    """Book change event."""
    book_id: int
    title: str
    author: str
    isbn: str
    stock_quantity: int


class UserEvent(DomainEvent):
    """User change event."""
    user_id: int
    first_name: str
    last_name: str
    email: str
    active: Optional[bool] = True
