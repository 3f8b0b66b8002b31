"""Capability interfaces for the link store, click store and cache.

The allocator, resolver and aggregator only ever talk to these abstract
classes. PostgreSQL, Redis and in-memory backends implement them, so business
logic is tested against the in-memory doubles and run against the real ones
without changes.

Contract Overview
=================
::
    LinkStore                      ClickStore                    CacheLayer
    ├─ create(link) -> Link        ├─ create(click) -> Click     ├─ get(key) -> str
    ├─ get_by_code(code)           ├─ count_by_link(id)          ├─ set(key, value, ttl)
    ├─ get_by_alias(alias)         ├─ group_by_day(id)           └─ delete(key)
    └─ exists(code) -> bool        ├─ group_by_month(id)
                                   ├─ group_by_user_agent(id)
                                   └─ recent_by_link(id, limit)

Error Contract
==============
- ``LinkStore.create`` raises ``ConstraintViolationError`` naming the violated
  unique constraint; any store may raise ``TransientError``.
- ``CacheLayer.get`` raises ``CacheMiss`` for an absent key; any cache call may
  raise ``TransientError``. Callers treat cache failures as advisory.

Grouped results are lists of ``(bucket, count)`` pairs already in the order
the analytics response presents them.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from shortener.errors import TransientError
from shortener.schemas import Click, Link

__all__ = ["LinkStore", "ClickStore", "CacheLayer", "Outcome", "bounded", "link_cache_key"]

T = TypeVar("T")


def link_cache_key(code: str) -> str:
    return f"link:{code}"


async def bounded(call: Awaitable[T], timeout: float | None, operation: str) -> T:
    """Await a store or cache call, failing with ``TransientError`` after ``timeout`` seconds.

    Cancellation of the calling task is not intercepted; it propagates into the
    in-flight call and aborts it.
    """
    try:
        async with asyncio.timeout(timeout):
            return await call
    except TimeoutError as exc:
        raise TransientError(f"{operation} timed out after {timeout}s") from exc


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort side effect that must not fail its caller."""

    operation: str
    ok: bool
    error: Exception | None = None

    @classmethod
    def success(cls, operation: str) -> "Outcome":
        return cls(operation=operation, ok=True)

    @classmethod
    def failure(cls, operation: str, error: Exception) -> "Outcome":
        return cls(operation=operation, ok=False, error=error)


class LinkStore(ABC):
    """Durable storage for links with a unique code/alias namespace."""

    @abstractmethod  # pragma: no cover
    async def create(self, link: Link) -> Link:
        """Insert ``link`` and return it with its store-assigned id."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def get_by_code(self, code: str) -> Link | None:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def get_by_alias(self, alias: str) -> Link | None:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def exists(self, code: str) -> bool:
        """True if ``code`` is used as a code or as a custom alias."""
        raise NotImplementedError


class ClickStore(ABC):
    """Durable storage and aggregate queries for click records."""

    @abstractmethod  # pragma: no cover
    async def create(self, click: Click) -> Click:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def count_by_link(self, link_id: int) -> int:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def group_by_day(self, link_id: int) -> list[tuple[str, int]]:
        """``YYYY-MM-DD`` (UTC) buckets, newest day first."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def group_by_month(self, link_id: int) -> list[tuple[str, int]]:
        """``YYYY-MM`` (UTC) buckets, newest month first."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def group_by_user_agent(self, link_id: int) -> list[tuple[str, int]]:
        """Raw user agent buckets, highest count first; an absent agent counts under ``""``."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def recent_by_link(self, link_id: int, limit: int) -> list[Click]:
        """At most ``limit`` clicks, newest first."""
        raise NotImplementedError


class CacheLayer(ABC):
    """Best-effort key/value cache with TTL."""

    @abstractmethod  # pragma: no cover
    async def get(self, key: str) -> str:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def set(self, key: str, value: str, ttl: int) -> None:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    async def delete(self, key: str) -> None:
        raise NotImplementedError
