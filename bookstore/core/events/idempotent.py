"""
Idempotent Consumer Decorator

Decorator that makes Celery event consumers process each event once.
"""

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

import redis.asyncio as redis

from bookstore.config import settings
from bookstore.core.idempotency.coordinator import build_coordinator
from bookstore.core.idempotency.keys import event_key
from bookstore.core.idempotency.redis_store import RedisResultStore
from bookstore.core.idempotency.store import ResultStore
from bookstore.monitoring.metrics import events_consumed_counter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_result_store() -> AsyncIterator[ResultStore]:
    """Open a Redis result store for the duration of one delivery."""
    client = redis.from_url(str(settings.redis_url), decode_responses=True)
    try:
        yield RedisResultStore(client)
    finally:
        await client.aclose()


def idempotent_consumer(ttl: Optional[int] = None):
    """
    Decorator to make a bound Celery consumer task idempotent.

    Each delivery is run through the idempotency coordinator keyed by the
    event's ``event_id``, so a redelivered event returns the stored result
    of its first processing instead of running the handler again. Events
    without an ``event_id`` are processed unconditionally.

    Args:
        ttl: How long processed event IDs are remembered, in seconds

    Usage:
        @celery_app.task(base=BaseTask, bind=True)
        @idempotent_consumer()
        def consume_book_event(self, payload: dict):
            ...
    """

    def decorator(func: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
        @functools.wraps(func)
        def wrapper(task_self, payload: Dict[str, Any]) -> Dict[str, Any]:
            event_id = payload.get("event_id")
            event_type = payload.get("event_type", "unknown")

            async def consume():
                async with open_result_store() as store:
                    coordinator = build_coordinator(
                        store,
                        ttl=ttl or settings.idempotency_event_ttl,
                    )

                    async def operation():
                        return func(task_self, payload)

                    return await coordinator.execute(
                        event_key(event_id) if event_id else None,
                        operation,
                    )

            outcome = asyncio.run(consume())

            if outcome.is_duplicate:
                logger.info(f"Duplicate delivery of event {event_id} ignored")
                events_consumed_counter.labels(event_type=event_type, outcome="duplicate").inc()
            else:
                events_consumed_counter.labels(event_type=event_type, outcome="processed").inc()
            return outcome.value

        return wrapper

    return decorator
