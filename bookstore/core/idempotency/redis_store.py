"""
Redis Result Store

Redis-backed idempotency records for multi-instance deployments.
"""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from bookstore.config import settings
from bookstore.core.idempotency.exceptions import StoreUnavailableError
from bookstore.core.idempotency.models import IdempotencyRecord
from bookstore.core.idempotency.store import ResultStore

logger = logging.getLogger(__name__)

# Lua script for atomic check-and-set on the owning attempt.
# SET ... PX only runs while the key exists, so expired keys stay expired.
_SET_IF_ATTEMPT_SCRIPT = """
local current = redis.call("get", KEYS[1])
if not current then
    return 0
end
if cjson.decode(current)["attempt_id"] ~= ARGV[1] then
    return 0
end
redis.call("set", KEYS[1], ARGV[2], "PX", ARGV[3])
return 1
"""


def _ttl_ms(ttl: timedelta) -> int:
    return int(ttl.total_seconds() * 1000)


class RedisResultStore(ResultStore):
    """
    Redis-based result store.

    - Claims use SET NX PX, so exactly one request wins a key
    - Finalizing writes run a Lua script that checks the owning attempt
    - Expiry is left to Redis key TTLs
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: Optional[str] = None):
        """Initialize with Redis client."""
        self.redis = redis_client
        self.key_prefix = key_prefix if key_prefix is not None else settings.idempotency_key_prefix

    def _make_key(self, key: str) -> str:
        """Create full Redis key with prefix."""
        return f"{self.key_prefix}{key}"

    @asynccontextmanager
    async def _translate_errors(self, operation: str, key: Optional[str] = None):
        try:
            yield
        except RedisError as e:
            logger.error(f"Redis {operation} failed for key {key}: {e}")
            raise StoreUnavailableError(f"Redis {operation} failed: {e}") from e

    async def insert_if_absent(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        async with self._translate_errors("insert", record.key):
            acquired = await self.redis.set(
                self._make_key(record.key),
                record.to_json(),
                nx=True,
                px=max(_ttl_ms(ttl), 1),
            )
        return bool(acquired)

    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        async with self._translate_errors("get", key):
            data = await self.redis.get(self._make_key(key))

        if data:
            return IdempotencyRecord.from_json(data)
        return None

    async def _set_if_attempt(
        self,
        key: str,
        attempt_id: str,
        record: IdempotencyRecord,
        ttl: timedelta,
    ) -> bool:
        ttl_ms = _ttl_ms(ttl)
        if ttl_ms <= 0:
            return False

        async with self._translate_errors("update", key):
            result = await self.redis.eval(
                _SET_IF_ATTEMPT_SCRIPT,
                1,
                self._make_key(key),
                attempt_id,
                record.to_json(),
                ttl_ms,
            )
        return bool(result)

    async def update(self, record: IdempotencyRecord, ttl: timedelta) -> bool:
        return await self._set_if_attempt(record.key, record.attempt_id, record, ttl)

    async def replace(
        self,
        expected: IdempotencyRecord,
        record: IdempotencyRecord,
        ttl: timedelta,
    ) -> bool:
        return await self._set_if_attempt(expected.key, expected.attempt_id, record, ttl)

    async def delete(self, key: str) -> bool:
        async with self._translate_errors("delete", key):
            deleted = await self.redis.delete(self._make_key(key))
        return deleted > 0

    async def clear(self) -> int:
        async with self._translate_errors("clear"):
            keys: List[str] = [
                k async for k in self.redis.scan_iter(match=f"{self.key_prefix}*", count=500)
            ]
            if not keys:
                return 0
            deleted = await self.redis.delete(*keys)

        logger.info(f"Cleared {deleted} idempotency records with prefix {self.key_prefix}")
        return deleted

    async def ping(self) -> bool:
        async with self._translate_errors("ping"):
            return bool(await self.redis.ping())
