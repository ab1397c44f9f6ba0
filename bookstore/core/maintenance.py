"""
Maintenance Scheduler

APScheduler jobs for periodic housekeeping:
- purge expired idempotency rows from the SQL store (Redis expires keys by
  itself, so this job only exists for the SQL backend)
- hourly low-stock check over the active catalog
"""

import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookstore.config import settings
from bookstore.core.idempotency.sql_store import SqlResultStore
from bookstore.db.models.book import Book
from bookstore.monitoring.metrics import low_stock_alerts_counter

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_expired_idempotency_records"
LOW_STOCK_JOB_ID = "check_low_stock_books"


class MaintenanceScheduler:
    """
    Periodic housekeeping for the bookstore.

    Features:
    - Interval purge of expired idempotency records (SQL store only)
    - Interval low-stock check, reading the catalog in id-ordered chunks
    - Coalesced runs, one instance of each job at a time
    """

    def __init__(
        self,
        store: Optional[SqlResultStore] = None,
        interval: Optional[int] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        low_stock_interval: Optional[int] = None,
        low_stock_threshold: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize maintenance scheduler.

        Args:
            store: SQL result store to purge; no purge job without one
            interval: Seconds between purges (defaults to settings)
            session_factory: Sessions for the catalog; no low-stock job without one
            low_stock_interval: Seconds between low-stock checks (defaults to settings)
            low_stock_threshold: Stock below this raises an alert (defaults to settings)
            batch_size: Books read per query during the check (defaults to settings)
        """
        self.store = store
        self.interval = interval or settings.idempotency_purge_interval
        self.session_factory = session_factory
        self.low_stock_interval = low_stock_interval or settings.low_stock_check_interval
        self.low_stock_threshold = (
            low_stock_threshold if low_stock_threshold is not None else settings.low_stock_threshold
        )
        self.batch_size = batch_size or settings.low_stock_batch_size
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _create_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
            timezone="UTC",
        )
        scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        return scheduler

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error(
            f"Job {event.job_id} failed with exception: {event.exception}",
            exc_info=event.exception,
        )

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        logger.warning(f"Job {event.job_id} missed scheduled run time")

    async def purge(self) -> int:
        """Run one purge pass."""
        return await self.store.purge_expired()

    async def check_low_stock(self) -> int:
        """
        Log an alert for every active book below the low-stock threshold.

        Books are read in chunks of ``batch_size`` ordered by id, each chunk in
        its own short session.

        Returns:
            Number of alerts raised
        """
        logger.info(f"Running low stock check (threshold {self.low_stock_threshold})")
        alerts = 0
        last_id = 0

        while True:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Book.id, Book.title, Book.isbn, Book.stock_quantity)
                    .where(
                        Book.active.is_(True),
                        Book.stock_quantity < self.low_stock_threshold,
                        Book.id > last_id,
                    )
                    .order_by(Book.id)
                    .limit(self.batch_size)
                )
                chunk = result.all()

            for book in chunk:
                logger.warning(
                    f"Low stock alert for book {book.id}: {book.title} "
                    f"(ISBN {book.isbn}), {book.stock_quantity} left"
                )
            if chunk:
                low_stock_alerts_counter.inc(len(chunk))
                alerts += len(chunk)
                last_id = chunk[-1].id

            if len(chunk) < self.batch_size:
                break

        logger.info(f"Low stock check complete: {alerts} books below threshold")
        return alerts

    def start(self) -> None:
        """Start the scheduler and register the configured jobs."""
        if self.running:
            logger.warning("Maintenance scheduler already started")
            return

        self._scheduler = self._create_scheduler()
        if self.store is not None:
            self._scheduler.add_job(
                self.purge,
                trigger=IntervalTrigger(seconds=self.interval),
                id=PURGE_JOB_ID,
                name="Purge expired idempotency records",
                replace_existing=True,
            )
        if self.session_factory is not None:
            self._scheduler.add_job(
                self.check_low_stock,
                trigger=IntervalTrigger(seconds=self.low_stock_interval),
                id=LOW_STOCK_JOB_ID,
                name="Check books with low stock",
                replace_existing=True,
            )
        self._scheduler.start()
        logger.info(
            f"Maintenance scheduler started with jobs: "
            f"{[job.id for job in self._scheduler.get_jobs()]}"
        )

    def shutdown(self, wait: bool = False) -> None:
        """Shutdown the scheduler."""
        if not self.running:
            return

        self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Maintenance scheduler shutdown complete")
