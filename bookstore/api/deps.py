"""
API Dependencies Module

Common dependencies used across API routes.
"""

from typing import Annotated, AsyncGenerator, Callable, Optional

from fastapi import Depends, Header, Response
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from bookstore.config import settings
from bookstore.db.session import async_session_maker
from bookstore.core.cache import EntityCache
from bookstore.core.events.publisher import EventPublisher
from bookstore.core.idempotency.coordinator import (
    IdempotencyCoordinator,
    IdempotentResult,
    build_coordinator,
)
from bookstore.core.idempotency.keys import is_blank
from bookstore.core.idempotency.redis_store import RedisResultStore
from bookstore.core.idempotency.sql_store import SqlResultStore
from bookstore.core.idempotency.store import InMemoryResultStore, ResultStore
from bookstore.services.books import BookService
from bookstore.services.users import UserService

# Process-local store for single-instance deployments
memory_store = InMemoryResultStore()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_result_store() -> AsyncGenerator[ResultStore, None]:
    """Get the result store selected by ``idempotency_store``."""
    if settings.idempotency_store == "memory":
        yield memory_store
    elif settings.idempotency_store == "sql":
        yield SqlResultStore(async_session_maker)
    else:
        client = redis.from_url(str(settings.redis_url), decode_responses=True)
        try:
            yield RedisResultStore(client)
        finally:
            await client.aclose()


async def get_coordinator(
    store: Annotated[ResultStore, Depends(get_result_store)]
) -> IdempotencyCoordinator:
    """Get idempotency coordinator dependency."""
    return build_coordinator(store)


def get_event_publisher() -> EventPublisher:
    """Get event publisher dependency."""
    return EventPublisher()


async def get_entity_cache() -> AsyncGenerator[Optional[EntityCache], None]:
    """Get the entity cache on ``redis_cache_db``, or None when disabled."""
    if not settings.entity_cache_enabled:
        yield None
        return

    client = redis.from_url(settings.redis_cache_url, decode_responses=True)
    try:
        yield EntityCache(client)
    finally:
        await client.aclose()


async def get_book_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    publisher: Annotated[EventPublisher, Depends(get_event_publisher)],
    cache: Annotated[Optional[EntityCache], Depends(get_entity_cache)],
) -> BookService:
    return BookService(db, publisher, cache)


async def get_user_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    publisher: Annotated[EventPublisher, Depends(get_event_publisher)],
    cache: Annotated[Optional[EntityCache], Depends(get_entity_cache)],
) -> UserService:
    return UserService(db, publisher, cache)


REPLAYED_HEADER = "Idempotent-Replayed"


def resolve_key(supplied: Optional[str], derive: Callable[[], str]) -> Optional[str]:
    """
    Pick the idempotency key for a write.

    A client-supplied key always wins. Without one, a key is derived from the
    request only when ``idempotency_derive_keys`` is enabled; otherwise the
    write runs without deduplication.
    """
    if not is_blank(supplied):
        return supplied
    if settings.idempotency_derive_keys:
        return derive()
    return None


def mark_replayed(response: Response, outcome: IdempotentResult) -> None:
    """Flag a replayed response so clients can tell it apart."""
    if outcome.is_duplicate:
        response.headers[REPLAYED_HEADER] = "true"


# Type aliases for dependency injection
IdempotencyKey = Annotated[Optional[str], Header(alias="Idempotency-Key")]
DbSession = Annotated[AsyncSession, Depends(get_db)]
ResultStoreDep = Annotated[ResultStore, Depends(get_result_store)]
CoordinatorDep = Annotated[IdempotencyCoordinator, Depends(get_coordinator)]
EntityCacheDep = Annotated[Optional[EntityCache], Depends(get_entity_cache)]
BookServiceDep = Annotated[BookService, Depends(get_book_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
