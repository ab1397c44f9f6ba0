"""
Cache Routes

Operator endpoints for clearing cached books and users.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status

from bookstore.api.deps import EntityCacheDep
from bookstore.core.cache import BOOKS, USERS, EntityCache
from bookstore.monitoring.logging import get_logger
from bookstore.schemas.idempotency import CacheClearResponse

router = APIRouter()
logger = get_logger(__name__)


def _require(cache: Optional[EntityCache]) -> EntityCache:
    if cache is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entity cache is disabled",
        )
    return cache


async def _evict(cache: Optional[EntityCache], entity: str, entity_id: int) -> CacheClearResponse:
    cleared = int(await _require(cache).evict(entity, entity_id))
    logger.info("entity_cache_evicted", entity=entity, entity_id=entity_id, cleared=cleared)
    return CacheClearResponse(message=f"Evicted cached {entity} {entity_id}", cleared=cleared)


async def _clear(cache: Optional[EntityCache], entity: str) -> CacheClearResponse:
    cleared = await _require(cache).clear(entity)
    logger.warning("entity_cache_cleared", entity=entity, cleared=cleared)
    return CacheClearResponse(message=f"Cleared cached {entity}", cleared=cleared)


@router.delete("/books/{book_id}", response_model=CacheClearResponse)
async def evict_book(book_id: int, cache: EntityCacheDep) -> CacheClearResponse:
    """Drop one cached book. The next lookup reads the database."""
    return await _evict(cache, BOOKS, book_id)


@router.delete("/books", response_model=CacheClearResponse)
async def clear_books(cache: EntityCacheDep) -> CacheClearResponse:
    """Drop every cached book."""
    return await _clear(cache, BOOKS)


@router.delete("/users/{user_id}", response_model=CacheClearResponse)
async def evict_user(user_id: int, cache: EntityCacheDep) -> CacheClearResponse:
    """Drop one cached user."""
    return await _evict(cache, USERS, user_id)


@router.delete("/users", response_model=CacheClearResponse)
async def clear_users(cache: EntityCacheDep) -> CacheClearResponse:
    """Drop every cached user."""
    return await _clear(cache, USERS)
