"""Redis client management and the Redis-backed link cache.

This module provides the shared Redis client and a CacheLayer implementation
over it, used to shortcut link store reads on the redirect hot path.

Flow Diagram — Cache Get
========================
::
    ┌─────────────┐
    │ get(key)    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Redis GET   │
    └──────┬──────┘
    VALUE?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ raise   │  │ Return  │
│CacheMiss│  │ payload │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Create the client at startup**::
    client = create_redis(settings)
    cache = RedisCache(client)

**Step 2 — Read and write**::
    await cache.set("link:abc", payload, ttl=1800)
    payload = await cache.get("link:abc")

**Step 3 — Cleanup on shutdown**::
    await close_redis(client)

Key Behaviours
===============
- UTF-8 encoding with decode_responses for string payloads.
- A missing key raises CacheMiss; connection problems raise TransientError.
- Nothing here is authoritative: callers treat every failure as a miss.

Classes:
    RedisCache:  CacheLayer over redis.asyncio.

Functions:
    create_redis():  Builds the pooled client from settings.
    close_redis():  Cleanup function for shutdown.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortener.config import Settings
from shortener.contracts import CacheLayer
from shortener.errors import CacheMiss, TransientError

__all__ = ["RedisCache", "create_redis", "close_redis"]


def create_redis(settings: Settings) -> redis.Redis:
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )


async def close_redis(client: redis.Redis) -> None:
    await client.aclose()


class RedisCache(CacheLayer):
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @property
    def client(self) -> redis.Redis:
        return self._client

    async def get(self, key: str) -> str:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise TransientError(f"cache get failed: {exc}") from exc
        if value is None:
            raise CacheMiss(key)
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except RedisError as exc:
            raise TransientError(f"cache set failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise TransientError(f"cache delete failed: {exc}") from exc

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as exc:
            raise TransientError(f"cache ping failed: {exc}") from exc
