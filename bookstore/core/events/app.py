"""
Celery Application

Celery configuration for the domain event bus.
"""

from celery import Celery
from kombu import Exchange, Queue

from bookstore.config import settings

# Create Celery application
celery_app = Celery(
    "bookstore_events",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # Task settings
    task_acks_late=settings.celery_task_acks_late,
    task_reject_on_worker_lost=True,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=settings.celery_worker_prefetch_multiplier,

    # Result backend settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=10,
    task_max_retries=5,

    # Queue configuration
    task_default_queue="default",
    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue(settings.events_queue, Exchange("events", type="topic"), routing_key="bookstore.#"),
    ),

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["bookstore.core.events"])
