"""
Entity Cache

Read-through Redis cache for book and user lookups. Entries are the JSON
form of the response schemas, kept under ``{prefix}{entity}:{id}``.
"""

import logging
from typing import List, Optional, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from bookstore.config import settings
from bookstore.monitoring.metrics import entity_cache_counter

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

BOOKS = "books"
USERS = "users"


class EntityCache:
    """
    Redis-based entity cache.

    - Lookups that fail on Redis errors count as misses
    - Writers evict entries after they commit
    - Operators can clear one entity or a whole entity type
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl: Optional[int] = None,
        key_prefix: Optional[str] = None,
    ):
        self.redis = redis_client
        self.ttl = ttl or settings.entity_cache_ttl
        self.key_prefix = key_prefix if key_prefix is not None else settings.entity_cache_key_prefix

    def _make_key(self, entity: str, entity_id: int) -> str:
        return f"{self.key_prefix}{entity}:{entity_id}"

    async def get(self, entity: str, entity_id: int, model: Type[M]) -> Optional[M]:
        """Return the cached entity, or None on a miss."""
        key = self._make_key(entity, entity_id)
        try:
            data = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            entity_cache_counter.labels(entity=entity, result="error").inc()
            return None

        if data is None:
            entity_cache_counter.labels(entity=entity, result="miss").inc()
            return None

        try:
            value = model.model_validate_json(data)
        except ValidationError:
            # Written by an older schema; reload from the database
            logger.warning(f"Discarding unreadable cache entry {key}")
            entity_cache_counter.labels(entity=entity, result="miss").inc()
            return None

        entity_cache_counter.labels(entity=entity, result="hit").inc()
        return value

    async def set(self, entity: str, entity_id: int, value: BaseModel) -> None:
        key = self._make_key(entity, entity_id)
        try:
            await self.redis.set(key, value.model_dump_json(), ex=self.ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def evict(self, entity: str, entity_id: int) -> bool:
        """Drop one entry. Returns True if it was cached."""
        key = self._make_key(entity, entity_id)
        try:
            deleted = await self.redis.delete(key)
        except RedisError as e:
            # The entry lives on until its TTL runs out
            logger.error(f"Cache eviction failed for {key}: {e}")
            return False
        return deleted > 0

    async def clear(self, entity: str) -> int:
        """
        Drop every entry of one entity type.

        Raises:
            RedisError: the cache is unreachable
        """
        pattern = f"{self.key_prefix}{entity}:*"
        keys: List[str] = [k async for k in self.redis.scan_iter(match=pattern, count=500)]
        if not keys:
            return 0
        deleted = await self.redis.delete(*keys)

        logger.info(f"Cleared {deleted} cached {entity}")
        return deleted
