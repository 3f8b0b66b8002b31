"""In-memory implementations of the link store, click store and cache.

Responsibilities:
    - Satisfy the LinkStore / ClickStore / CacheLayer contracts without a database
    - Enforce the same unique code/alias namespace as the SQL schema
    - Compute the analytics groupings the SQL backend pushes into the database

Design:
    - Mutations run under an ``asyncio.Lock`` so ``create`` is atomic, the way a
      unique index makes an INSERT atomic.
    - Backs the ``memory`` storage backend and every deterministic unit test.
"""

import asyncio
import datetime
import itertools
import time
from collections import Counter

from shortener.contracts import CacheLayer, ClickStore, LinkStore
from shortener.errors import ALIAS_CONSTRAINT, CODE_CONSTRAINT, CacheMiss, ConstraintViolationError
from shortener.schemas import Click, Link

__all__ = ["InMemoryLinkStore", "InMemoryClickStore", "InMemoryCache"]


class InMemoryLinkStore(LinkStore):
    def __init__(self) -> None:
        # code -> Link; custom links are indexed by their alias too
        self.links: dict[str, Link] = {}
        self.aliases: dict[str, Link] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create(self, link: Link) -> Link:
        async with self._lock:
            if link.code in self.links or link.code in self.aliases:
                raise ConstraintViolationError(CODE_CONSTRAINT)
            alias = link.custom_alias
            if alias is not None and (alias in self.aliases or alias in self.links):
                raise ConstraintViolationError(ALIAS_CONSTRAINT)

            stored = link.model_copy(update={"id": next(self._ids)})
            self.links[stored.code] = stored
            if alias is not None:
                self.aliases[alias] = stored
            return stored

    async def get_by_code(self, code: str) -> Link | None:
        return self.links.get(code)

    async def get_by_alias(self, alias: str) -> Link | None:
        return self.aliases.get(alias)

    async def exists(self, code: str) -> bool:
        return code in self.links or code in self.aliases


class InMemoryClickStore(ClickStore):
    def __init__(self) -> None:
        self.clicks: list[Click] = []
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create(self, click: Click) -> Click:
        async with self._lock:
            stored = click.model_copy(update={"id": next(self._ids)})
            self.clicks.append(stored)
            return stored

    def _for_link(self, link_id: int) -> list[Click]:
        return [c for c in self.clicks if c.link_id == link_id]

    async def count_by_link(self, link_id: int) -> int:
        return len(self._for_link(link_id))

    async def group_by_day(self, link_id: int) -> list[tuple[str, int]]:
        counts = Counter(_utc(c.clicked_at).strftime("%Y-%m-%d") for c in self._for_link(link_id))
        return sorted(counts.items(), reverse=True)

    async def group_by_month(self, link_id: int) -> list[tuple[str, int]]:
        counts = Counter(_utc(c.clicked_at).strftime("%Y-%m") for c in self._for_link(link_id))
        return sorted(counts.items(), reverse=True)

    async def group_by_user_agent(self, link_id: int) -> list[tuple[str, int]]:
        counts = Counter(c.user_agent for c in self._for_link(link_id))
        return counts.most_common()

    async def recent_by_link(self, link_id: int, limit: int) -> list[Click]:
        # Ties on clicked_at fall back to insertion order, newest first.
        ordered = sorted(self._for_link(link_id), key=lambda c: (c.clicked_at, c.id or 0), reverse=True)
        return ordered[:limit]


class InMemoryCache(CacheLayer):
    """Process-local TTL cache; expired keys are dropped lazily on read."""

    def __init__(self) -> None:
        self.entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str:
        entry = self.entries.get(key)
        if entry is None:
            raise CacheMiss(key)
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self.entries[key]
            raise CacheMiss(key)
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self.entries[key] = (value, time.monotonic() + ttl)

    async def delete(self, key: str) -> None:
        self.entries.pop(key, None)


def _utc(value: datetime.datetime) -> datetime.datetime:
    return value.astimezone(datetime.timezone.utc)
