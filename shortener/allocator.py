"""Short code allocation and link creation.

This module turns a long URL (and an optional caller-chosen alias) into a
stored Link whose code is unique across the shared code/alias namespace.

Flow Diagram — Link Creation
============================
::
    ┌─────────────┐
    │ POST        │
    │ /shorten    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate URL│
    │ (validators)│
    └──────┬──────┘
           ▼
    ┌─────────────┐      alias taken
    │ allocate()  │ ───────────────────► AliasExistsError
    │ alias or    │      attempts used up
    │ random code │ ───────────────────► AllocationExhaustedError
    └──────┬──────┘
           ▼
    ┌─────────────┐      unique violation, alias ► AliasExistsError
    │ LinkStore.  │ ──────────────────────────────────────────────
    │ create()    │      unique violation, generated ► retry allocate
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Warm cache  │
    │ (advisory)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Return Link │
    └─────────────┘

Key Behaviours
===============
- Random codes come from ``code_length`` bytes of ``secrets`` randomness,
  URL-safe base64 encoded and truncated to ``code_length`` characters.
- The existence check is only a fast path. Two requests can both pass it; the
  store's unique constraint decides, and its violation is mapped by name.
- Every generation path is bounded by ``CODE_MAX_ATTEMPTS``.
- The cache write after insert is best-effort and reported as an Outcome.

Classes:
    CodeAllocator:  allocate() and create_link().
    Allocation:  A code that was free at allocation time.
    LinkCreation:  The created Link plus the cache warm outcome.

Functions:
    generate_code():  Random URL-safe short code.
    validate_url():  http/https URL validation.
    validate_alias():  Custom alias format check.
"""

import base64
import logging
import re
import secrets
import time
from dataclasses import dataclass
from urllib.parse import urlparse

import validators

from shortener.config import Settings
from shortener.contracts import CacheLayer, LinkStore, Outcome, bounded, link_cache_key
from shortener.enums import CodeProvenance, RequestStatus
from shortener.errors import (
    AliasExistsError,
    AllocationExhaustedError,
    ConstraintViolationError,
    InvalidAliasError,
    InvalidURLError,
    ShortenerError,
    URLRequiredError,
)
from shortener.metrics import ALLOCATION_RETRIES_TOTAL, CACHE_ERRORS_TOTAL, LINK_CREATION_REQUESTS_TOTAL
from shortener.schemas import Link

__all__ = [
    "Allocation",
    "CodeAllocator",
    "LinkCreation",
    "MAX_URL_LENGTH",
    "generate_code",
    "validate_alias",
    "validate_url",
]

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048
ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,32}$")


def generate_code(length: int) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    encoded = base64.urlsafe_b64encode(secrets.token_bytes(length)).decode("ascii").rstrip("=")
    return encoded[:length]


def validate_url(url: str | None) -> str:
    if not url:
        raise URLRequiredError()
    if len(url) > MAX_URL_LENGTH:
        raise InvalidURLError("URL too long")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError("URL scheme must be http or https")
    if not parsed.netloc:
        raise InvalidURLError("URL host is required")
    if not validators.url(url, simple_host=True, strict_query=False):
        raise InvalidURLError()
    return url


def validate_alias(alias: str) -> str:
    if not ALIAS_PATTERN.match(alias):
        raise InvalidAliasError("custom alias must be 3-32 characters of A-Z, a-z, 0-9, '_' or '-'")
    return alias


@dataclass(frozen=True)
class Allocation:
    code: str
    provenance: CodeProvenance


@dataclass(frozen=True)
class LinkCreation:
    link: Link
    cache_write: Outcome | None


class CodeAllocator:
    """Allocates codes in the shared namespace and creates links with them.

    Example:
        >>> allocator = CodeAllocator(links, cache, settings)
        >>> created = await allocator.create_link("https://example.com", custom_alias="promo")
        >>> created.link.code
        'promo'
    """

    def __init__(self, links: LinkStore, cache: CacheLayer | None, settings: Settings) -> None:
        self._links = links
        self._cache = cache
        self._settings = settings

    def build_short_url(self, code: str) -> str:
        return f"{self._settings.BASE_URL.rstrip('/')}/s/{code}"

    async def allocate(self, requested_alias: str | None = None, code_length: int | None = None) -> Allocation:
        """Return a code that is free right now.

        Raises:
            InvalidAliasError: The alias has an invalid format.
            AliasExistsError: The alias is already claimed as a code or alias.
            AllocationExhaustedError: No free random code within the attempt ceiling.
            TransientError: The link store failed or timed out.
        """
        if requested_alias:
            alias = validate_alias(requested_alias)
            if await self._store_call(self._links.get_by_alias(alias), "get_by_alias") is not None:
                raise AliasExistsError()
            if await self._store_call(self._links.exists(alias), "exists"):
                raise AliasExistsError()
            return Allocation(code=alias, provenance=CodeProvenance.CUSTOM)

        length = code_length or self._settings.SHORT_CODE_LENGTH
        for attempt in range(1, self._settings.CODE_MAX_ATTEMPTS + 1):
            code = generate_code(length)
            if not await self._store_call(self._links.exists(code), "exists"):
                return Allocation(code=code, provenance=CodeProvenance.GENERATED)
            ALLOCATION_RETRIES_TOTAL.inc()
            logger.debug("Generated code %s already taken (attempt %d)", code, attempt)

        raise AllocationExhaustedError(
            f"no free short code after {self._settings.CODE_MAX_ATTEMPTS} attempts"
        )

    async def create_link(self, original_url: str | None, custom_alias: str | None = None) -> LinkCreation:
        """Validate, allocate, persist and cache a new link.

        A unique violation from the store outranks the earlier existence check:
        for an alias it means another request claimed it first, for a generated
        code the allocation is retried.
        """
        start_time = time.perf_counter()
        try:
            url = validate_url(original_url)
            link = await self._insert_with_retry(url, custom_alias)
        except (URLRequiredError, InvalidURLError, InvalidAliasError) as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            logger.info("Link creation rejected: %s", exc)
            raise
        except AliasExistsError:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.CONFLICT).inc()
            logger.info("Link creation rejected: alias %r already exists", custom_alias)
            raise
        except ShortenerError as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            logger.error("Link creation failed: %s", exc)
            raise

        cache_write = await self._warm_cache(link)
        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        logger.info(
            "Link created: %s (%s) in %.3fs", link.code, link.provenance, time.perf_counter() - start_time
        )
        return LinkCreation(link=link, cache_write=cache_write)

    async def _insert_with_retry(self, url: str, custom_alias: str | None) -> Link:
        for attempt in range(1, self._settings.CODE_MAX_ATTEMPTS + 1):
            allocation = await self.allocate(custom_alias)
            candidate = Link(code=allocation.code, original_url=url, provenance=allocation.provenance)
            try:
                return await self._store_call(self._links.create(candidate), "create")
            except ConstraintViolationError as exc:
                if not exc.is_namespace_collision:
                    raise
                if allocation.provenance == CodeProvenance.CUSTOM:
                    raise AliasExistsError() from exc
                ALLOCATION_RETRIES_TOTAL.inc()
                logger.warning(
                    "Insert race on generated code %s (%s), retrying (attempt %d)",
                    allocation.code,
                    exc.constraint,
                    attempt,
                )

        raise AllocationExhaustedError(
            f"no free short code after {self._settings.CODE_MAX_ATTEMPTS} insert attempts"
        )

    async def _warm_cache(self, link: Link) -> Outcome | None:
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
            logger.warning("Cache warm failed for %s: %s", link.code, exc)
            return Outcome.failure("cache_set", exc)
        return Outcome.success("cache_set")

    async def _store_call(self, call, operation: str):
        return await bounded(call, self._settings.STORE_TIMEOUT_SECONDS, f"link store {operation}")
