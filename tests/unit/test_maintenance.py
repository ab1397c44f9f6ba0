"""
Maintenance Scheduler Unit Tests
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from prometheus_client import REGISTRY

from bookstore.core.maintenance import LOW_STOCK_JOB_ID, PURGE_JOB_ID, MaintenanceScheduler
from bookstore.db.models.book import Book


@pytest.fixture
def sql_store():
    store = MagicMock()
    store.purge_expired = AsyncMock(return_value=3)
    return store


@pytest_asyncio.fixture
async def catalog(session_factory):
    """Seed books with stock levels 0..9, plus an inactive empty book."""
    async with session_factory() as session:
        for stock in range(10):
            session.add(Book(
                title=f"Book {stock}",
                author="Author",
                isbn=f"978000000{stock:04d}",
                price=Decimal("10.00"),
                stock_quantity=stock,
            ))
        session.add(Book(
            title="Retired",
            author="Author",
            isbn="9780000009999",
            price=Decimal("10.00"),
            stock_quantity=0,
            active=False,
        ))
        await session.commit()
    return session_factory


def _alert_total() -> float:
    return REGISTRY.get_sample_value("bookstore_low_stock_alerts_total") or 0.0


class TestMaintenanceScheduler:
    """Tests for MaintenanceScheduler."""

    @pytest.mark.asyncio
    async def test_purge_delegates_to_store(self, sql_store):
        maintenance = MaintenanceScheduler(sql_store, interval=60)

        assert await maintenance.purge() == 3
        sql_store.purge_expired.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_registers_interval_job(self, sql_store):
        maintenance = MaintenanceScheduler(sql_store, interval=60)

        maintenance.start()
        try:
            assert maintenance.running
            job = maintenance._scheduler.get_job(PURGE_JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 60
            assert maintenance._scheduler.get_job(LOW_STOCK_JOB_ID) is None
        finally:
            maintenance.shutdown()

        assert not maintenance.running

    @pytest.mark.asyncio
    async def test_low_stock_job_without_purge(self, session_factory):
        """Test that the low-stock check runs even when there is nothing to purge."""
        maintenance = MaintenanceScheduler(session_factory=session_factory, low_stock_interval=120)

        maintenance.start()
        try:
            assert maintenance._scheduler.get_job(PURGE_JOB_ID) is None
            job = maintenance._scheduler.get_job(LOW_STOCK_JOB_ID)
            assert job.trigger.interval.total_seconds() == 120
        finally:
            maintenance.shutdown()

    @pytest.mark.asyncio
    async def test_start_twice_is_harmless(self, sql_store):
        maintenance = MaintenanceScheduler(sql_store, interval=60)

        maintenance.start()
        scheduler = maintenance._scheduler
        maintenance.start()

        assert maintenance._scheduler is scheduler
        maintenance.shutdown()

    def test_shutdown_before_start(self, sql_store):
        MaintenanceScheduler(sql_store).shutdown()


class TestLowStockCheck:
    """Tests for the low-stock check."""

    @pytest.mark.asyncio
    async def test_counts_active_books_below_threshold(self, catalog):
        maintenance = MaintenanceScheduler(session_factory=catalog, low_stock_threshold=5, batch_size=100)
        before = _alert_total()

        alerts = await maintenance.check_low_stock()

        assert alerts == 5
        assert _alert_total() - before == 5

    @pytest.mark.asyncio
    async def test_reads_in_chunks(self, catalog, caplog):
        """Test that chunking neither skips nor repeats a book."""
        maintenance = MaintenanceScheduler(session_factory=catalog, low_stock_threshold=7, batch_size=2)

        with caplog.at_level("WARNING", logger="bookstore.core.maintenance"):
            alerts = await maintenance.check_low_stock()

        assert alerts == 7
        alerted = [r.getMessage() for r in caplog.records if "Low stock alert" in r.getMessage()]
        assert len(alerted) == 7
        assert len(set(alerted)) == 7
        assert not any("Retired" in message for message in alerted)

    @pytest.mark.asyncio
    async def test_exact_multiple_of_batch_size(self, catalog):
        maintenance = MaintenanceScheduler(session_factory=catalog, low_stock_threshold=4, batch_size=2)

        assert await maintenance.check_low_stock() == 4

    @pytest.mark.asyncio
    async def test_nothing_below_threshold(self, catalog):
        maintenance = MaintenanceScheduler(session_factory=catalog, low_stock_threshold=0)
        before = _alert_total()

        assert await maintenance.check_low_stock() == 0
        assert _alert_total() == before
