"""
Event Publisher

Hands domain events to the message bus.
"""

import logging
from typing import Optional

from celery import Celery
from kombu.exceptions import OperationalError

from bookstore.config import settings
from bookstore.core.events.app import celery_app
from bookstore.core.events.schemas import BookEvent, DomainEvent
from bookstore.monitoring.metrics import events_published_counter

logger = logging.getLogger(__name__)

BOOK_EVENT_TASK = "bookstore.core.events.tasks.consume_book_event"
USER_EVENT_TASK = "bookstore.core.events.tasks.consume_user_event"


class EventPublisher:
    """
    Publishes domain events as Celery messages.

    Publishing is best effort: a broker outage is logged and counted but never
    fails the write that produced the event.
    """

    def __init__(self, app: Optional[Celery] = None, queue: Optional[str] = None):
        self.app = app or celery_app
        self.queue = queue or settings.events_queue

    def _task_for(self, event: DomainEvent) -> str:
        return BOOK_EVENT_TASK if isinstance(event, BookEvent) else USER_EVENT_TASK

    def publish(self, event: DomainEvent) -> Optional[str]:
        """
        Publish an event.

        Returns:
            The Celery message ID, or None if the broker rejected the event
        """
        event_type = event.event_type.value
        routing_key = f"bookstore.{event_type.lower()}"

        try:
            result = self.app.send_task(
                self._task_for(event),
                args=[event.model_dump(mode="json")],
                queue=self.queue,
                routing_key=routing_key,
            )
        except (OperationalError, ConnectionError) as e:
            events_published_counter.labels(event_type=event_type, status="error").inc()
            logger.error(f"Failed to publish {event_type} event {event.event_id}: {e}")
            return None

        events_published_counter.labels(event_type=event_type, status="sent").inc()
        logger.info(f"Published {event_type} event {event.event_id} as message {result.id}")
        return result.id
