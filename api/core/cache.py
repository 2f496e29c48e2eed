"""
Redis cache client.

Used for two things only:
- advisory listing pages (cache-aside, TTL expiry)
- login sessions

The cache is never a source of truth, so callers decide how to react to
`CacheError`; this module only normalizes the failure type.
"""

from __future__ import annotations

import redis.asyncio as redis

from . import config


# Cache failures are explicit and separable from other runtime errors.
class CacheError(RuntimeError):
    pass


_client: redis.Redis | None = None


async def init_client() -> None:
    global _client
    if _client is not None:
        return None
    instance = redis.from_url(config.redis_url(), decode_responses=True)
    try:
        await instance.ping()
    except redis.RedisError as exc:
        await instance.aclose()
        raise CacheError(f"Redis ping failed: {exc}") from exc
    _client = instance


async def close_client() -> None:
    global _client
    if _client is None:
        return None
    await _client.aclose()
    _client = None


def client() -> redis.Redis:
    if _client is None:
        raise RuntimeError("Redis client is not initialized. Call init_client() on startup.")
    return _client


class CacheClient:
    """
    Thin key/value adapter over a `redis.asyncio.Redis` created with
    `decode_responses=True`.
    """

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"cache get failed for {key!r}") from exc

    async def set(self, key: str, value: str, ttl_s: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_s)
        except redis.RedisError as exc:
            raise CacheError(f"cache set failed for {key!r}") from exc

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._redis.delete(*keys))
        except redis.RedisError as exc:
            raise CacheError("cache delete failed") from exc
