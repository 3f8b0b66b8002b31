"""Cache-aside resolution of short codes.

Flow Diagram — Resolve
======================
::
    ┌─────────────┐
    │ resolve()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐   corrupt payload ► evict, treat as miss
    │ Cache GET   │   error / timeout ► treat as miss
    │ link:{code} │
    └──────┬──────┘
    HIT?   │
    ┌─────┴──────┐
    │ YES         │ NO
    │             ▼
    │      ┌─────────────┐   absent ► LinkNotFoundError
    │      │ LinkStore   │   failure ► TransientError
    │      │ get_by_code │
    │      └──────┬──────┘
    │             ▼
    │      ┌─────────────┐
    │      │ Cache SET   │  (best-effort)
    │      └──────┬──────┘
    ▼             ▼
    ┌─────────────────┐
    │ ClickRecorder.  │  (best-effort)
    │ submit()        │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ Resolution      │
    └─────────────────┘

Key Behaviours
===============
- The cache is never the source of truth; the resolved URL is the same with
  the cache populated, disabled or failing.
- Cache and click failures never fail the redirect. They are logged, counted
  and returned on the Resolution as Outcome values.
"""

import logging
import time
from dataclasses import dataclass

from pydantic import ValidationError

from shortener.clicks import ClickRecorder
from shortener.config import Settings
from shortener.contracts import CacheLayer, LinkStore, Outcome, bounded, link_cache_key
from shortener.enums import CacheStatus, RequestStatus
from shortener.errors import CacheMiss, LinkNotFoundError, ShortenerError
from shortener.metrics import (
    CACHE_ERRORS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    REDIRECT_DURATION,
    REDIRECT_REQUESTS_TOTAL,
)
from shortener.schemas import Click, Link, utcnow

__all__ = ["ClientMetadata", "RedirectResolver", "Resolution"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientMetadata:
    user_agent: str = ""
    ip_address: str = ""


@dataclass(frozen=True)
class Resolution:
    original_url: str
    link: Link
    cache_hit: bool
    cache_write: Outcome | None
    click: Outcome


class RedirectResolver:
    def __init__(
        self,
        links: LinkStore,
        cache: CacheLayer | None,
        recorder: ClickRecorder,
        settings: Settings,
    ) -> None:
        self._links = links
        self._cache = cache
        self._recorder = recorder
        self._settings = settings

    async def resolve(self, code: str, client: ClientMetadata | None = None) -> Resolution:
        """Resolve ``code`` to its Link and record a click.

        Raises:
            LinkNotFoundError: No link has this code.
            TransientError: The link store failed or timed out.
        """
        client = client or ClientMetadata()
        start_time = time.perf_counter()
        cache_write = None

        try:
            link = await self._from_cache(code)
            cache_hit = link is not None
            if link is None:
                link = await bounded(
                    self._links.get_by_code(code), self._settings.STORE_TIMEOUT_SECONDS, "link store get_by_code"
                )
                if link is None:
                    raise LinkNotFoundError()
                cache_write = await self._populate_cache(link)
        except LinkNotFoundError:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=CacheStatus.MISS).inc()
            logger.info("Redirect for unknown code %s", code)
            raise
        except ShortenerError as exc:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR, cache_hit=CacheStatus.MISS).inc()
            logger.error("Redirect lookup failed for %s: %s", code, exc)
            raise

        click = Click(
            link_id=link.id,
            user_agent=client.user_agent,
            ip_address=client.ip_address,
            clicked_at=utcnow(),
        )
        click_outcome = await self._submit_click(click)

        REDIRECT_REQUESTS_TOTAL.labels(
            status=RequestStatus.SUCCESS,
            cache_hit=CacheStatus.HIT if cache_hit else CacheStatus.MISS,
        ).inc()
        REDIRECT_DURATION.observe(time.perf_counter() - start_time)

        return Resolution(
            original_url=link.original_url,
            link=link,
            cache_hit=cache_hit,
            cache_write=cache_write,
            click=click_outcome,
        )

    async def _from_cache(self, code: str) -> Link | None:
        if self._cache is None:
            return None

        key = link_cache_key(code)
        try:
            payload = await bounded(self._cache.get(key), self._settings.CACHE_TIMEOUT_SECONDS, "cache get")
        except CacheMiss:
            CACHE_MISSES_TOTAL.inc()
            return None
        except Exception as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get").inc()
            logger.warning("Cache get failed for %s, falling back to store: %s", code, exc)
            return None

        try:
            link = Link.model_validate_json(payload)
        except ValidationError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="decode").inc()
            logger.warning("Corrupt cache entry for %s, evicting: %s", code, exc)
            await self._evict(key)
            return None

        CACHE_HITS_TOTAL.inc()
        return link

    async def _evict(self, key: str) -> None:
        try:
            await bounded(self._cache.delete(key), self._settings.CACHE_TIMEOUT_SECONDS, "cache delete")
        except Exception as exc:
            CACHE_ERRORS_TOTAL.labels(operation="delete").inc()
            logger.warning("Cache delete failed for %s: %s", key, exc)

    async def _populate_cache(self, link: Link) -> Outcome | None:
        if self._cache is None:
            return None
        try:
            await bounded(
                self._cache.set(link_cache_key(link.code), link.model_dump_json(), self._settings.CACHE_TTL_SECONDS),
                self._settings.CACHE_TIMEOUT_SECONDS,
                "cache set",
            )
        except Exception as exc:
            CACHE_ERRORS_TOTAL.labels(operation="set").inc()
            logger.warning("Cache set failed for %s: %s", link.code, exc)
            return Outcome.failure("cache_set", exc)
        return Outcome.success("cache_set")

    async def _submit_click(self, click: Click) -> Outcome:
        try:
            return await self._recorder.submit(click)
        except Exception as exc:
            logger.warning("Click hand-off failed for link %s: %s", click.link_id, exc)
            return Outcome.failure("click_submit", exc)
