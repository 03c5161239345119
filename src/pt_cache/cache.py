"""Redis-backed key/value cache with TTL.

Used for two things:
  - read-through cache of market price lookups (coin:price:<asset_id>)
  - aggregate cache of an owner's holdings list (user:holdings:<owner_id>)

Every operation is best-effort. A miss, a backend outage or a payload that no
longer decodes all degrade to "recompute from the source of truth": they are
logged and reported through the return value, never raised to the caller.
"""

import logging
from collections.abc import Iterable
from datetime import timedelta
from functools import lru_cache
from typing import Any

import redis.asyncio as aioredis
from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError
from redis.exceptions import RedisError

from config.settings import settings
from src.pt_common.redis_client import get_redis

logger = logging.getLogger(__name__)

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@lru_cache(maxsize=32)
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


class Cache:
    def __init__(
        self,
        redis: aioredis.Redis,
        default_ttl: int | timedelta = settings.CACHE_DEFAULT_TTL_SECONDS,
    ) -> None:
        self._redis = redis
        self.default_ttl = default_ttl

    async def set(
        self, key: str, value: Any, ttl: int | timedelta | None = None
    ) -> bool:
        """Serialize value to JSON and store it, overwriting any existing entry."""
        expiration = self.default_ttl if ttl is None else ttl
        try:
            payload = _ANY_ADAPTER.dump_json(value)
        except PydanticSerializationError as exc:
            logger.warning("cache set skipped for %s, value not serializable: %s", key, exc)
            return False
        try:
            await self._redis.set(key, payload, ex=expiration)
        except RedisError as exc:
            logger.warning("cache set failed for %s: %s", key, exc)
            return False
        return True

    async def get(self, key: str, type_: Any = None) -> Any:
        """Return the decoded value, or None on miss / expiry / failure.

        When type_ is given the payload is validated into it (dataclasses,
        pydantic models, list[...] and Decimal fields all round-trip).
        """
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            logger.warning("cache get failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None

        adapter = _ANY_ADAPTER if type_ is None else _adapter(type_)
        try:
            return adapter.validate_json(raw)
        except ValueError as exc:
            logger.warning("discarding undecodable cache entry %s: %s", key, exc)
            return None

    async def delete(self, key: str) -> bool:
        """Remove one entry; succeeds even if the key is absent."""
        return await self.delete_many([key])

    async def delete_many(self, keys: Iterable[str]) -> bool:
        """Remove several entries in a single DEL."""
        batch = list(dict.fromkeys(keys))
        if not batch:
            return True
        try:
            await self._redis.delete(*batch)
        except RedisError as exc:
            logger.warning("cache delete failed for %d key(s): %s", len(batch), exc)
            return False
        return True

    async def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob pattern in one atomic DEL.

        Returns the number of keys removed, 0 when nothing matched or the
        backend failed.
        """
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if not keys:
                return 0
            return int(await self._redis.delete(*keys))
        except RedisError as exc:
            logger.warning("cache invalidation failed for pattern %s: %s", pattern, exc)
            return 0


async def get_cache() -> Cache:
    """FastAPI dependency: Cache over the shared Redis pool."""
    return Cache(await get_redis())
