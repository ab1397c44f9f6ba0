"""
Database Engine

One async engine per process for the catalog, accounts and SQL idempotency
records. Request handlers, the SQL result store and the maintenance jobs all
open their sessions from ``async_session_maker``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bookstore.config import settings

async_engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.debug,
)

# Rows stay readable after commit so services can build responses from them
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Register the bookstore tables; in development, create any that are missing."""
    from bookstore.db.models import book, user, idempotency  # noqa: F401

    if not settings.is_development:
        return

    from bookstore.db.base import Base
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine's pooled connections on shutdown."""
    await async_engine.dispose()
