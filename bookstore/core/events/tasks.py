"""
Celery Task Definitions

Consumers for domain events published by the book and user services.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from celery import Task

from bookstore.config import settings
from bookstore.core.events.app import celery_app
from bookstore.core.events.idempotent import idempotent_consumer
from bookstore.core.events.schemas import BookEvent, EventType, UserEvent
from bookstore.core.idempotency.exceptions import (
    ConcurrentDuplicateError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """
    Base task class for event consumers.

    Features:
    - Automatic retry while another worker holds the event or Redis is down
    - Structured logging
    """

    autoretry_for = (ConcurrentDuplicateError, StoreUnavailableError, ConnectionError)
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Called on task failure."""
        logger.error(
            f"Task failed: {self.name}",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "error": str(exc),
            },
            exc_info=True,
        )

    def on_retry(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Called when task is being retried."""
        logger.warning(
            f"Task retrying: {self.name}",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "error": str(exc),
                "retry_count": self.request.retries,
            },
        )


def _processed(event_id: str, event_type: EventType, **details: Any) -> Dict[str, Any]:
    return {
        "event_id": event_id,
        "event_type": event_type.value,
        "processed_at": datetime.now(timezone.utc).isoformat(),
        **details,
    }


@celery_app.task(base=BaseTask, bind=True, name="bookstore.core.events.tasks.consume_book_event")
@idempotent_consumer()
def consume_book_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Consume a book change event.

    Args:
        payload: Serialized BookEvent

    Returns:
        Processing summary
    """
    event = BookEvent.model_validate(payload)
    logger.info(f"Consuming {event.event_type.value} for book {event.book_id} ({event.isbn})")

    low_stock = event.stock_quantity < settings.low_stock_threshold
    if low_stock:
        logger.warning(f"Book {event.book_id} is low on stock: {event.stock_quantity} left")

    return _processed(event.event_id, event.event_type, book_id=event.book_id, low_stock=low_stock)


@celery_app.task(base=BaseTask, bind=True, name="bookstore.core.events.tasks.consume_user_event")
@idempotent_consumer()
def consume_user_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Consume a user change event.

    Welcome notifications go out for newly created users only.

    Args:
        payload: Serialized UserEvent

    Returns:
        Processing summary
    """
    event = UserEvent.model_validate(payload)
    logger.info(f"Consuming {event.event_type.value} for user {event.user_id}")

    notify = event.event_type is EventType.USER_CREATED
    if notify:
        logger.info(f"Sending welcome notification to {event.email}")

    return _processed(event.event_id, event.event_type, user_id=event.user_id, notified=notify)
