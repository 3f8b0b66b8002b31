"""Dependency injection with a shared service manager.

This module wires the storage backend, the optional Redis cache, the click
recorder and the three core services once at startup, and hands them to the
API endpoints through FastAPI dependencies.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field

import validators
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from shortener.allocator import CodeAllocator
from shortener.analytics import AnalyticsAggregator
from shortener.cache import RedisCache, close_redis, create_redis
from shortener.clicks import ClickRecorder
from shortener.config import Settings, get_settings
from shortener.contracts import CacheLayer, ClickStore, LinkStore, bounded
from shortener.database import close_db, create_engine, create_session_factory, init_db, ping_db
from shortener.enums import HealthStatus, StorageBackend
from shortener.resolver import ClientMetadata, RedirectResolver
from shortener.storage import InMemoryClickStore, InMemoryLinkStore
from shortener.storage.sql import SqlClickStore, SqlLinkStore

__all__ = [
    "RequestContext",
    "ServiceManager",
    "get_aggregator",
    "get_allocator",
    "get_request_context",
    "get_resolver",
    "get_service_manager",
    "resolve_client_ip",
]

# Width of clicks.ip_address.
MAX_IP_LENGTH = 45


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Service manager for shared resources.

    Holds everything that lives for the whole process: settings, logger, the
    database engine or in-memory stores, the Redis client, the click recorder
    and the services built on top of them.

    Args:
        settings: Settings to use instead of ``get_settings()``.
        cache: CacheLayer to use instead of building one from settings.
    """

    def __init__(self, settings: Settings | None = None, cache: CacheLayer | None = None) -> None:
        self.settings = settings
        self.cache = cache
        self.engine: AsyncEngine | None = None
        self.redis_cache: RedisCache | None = None
        self.links: LinkStore | None = None
        self.clicks: ClickStore | None = None
        self.recorder: ClickRecorder | None = None
        self.allocator: CodeAllocator | None = None
        self.resolver: RedirectResolver | None = None
        self.aggregator: AnalyticsAggregator | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return

        self.settings = self.settings or get_settings()
        self.logger = self._setup_logger()
        await self._setup_storage()
        self._setup_cache()

        self.recorder = ClickRecorder(
            self.clicks,
            queue_size=self.settings.CLICK_QUEUE_SIZE,
            drain_timeout=self.settings.CLICK_DRAIN_TIMEOUT_SECONDS,
            store_timeout=self.settings.STORE_TIMEOUT_SECONDS,
        )
        self.recorder.start()

        self.allocator = CodeAllocator(self.links, self.cache, self.settings)
        self.resolver = RedirectResolver(self.links, self.cache, self.recorder, self.settings)
        self.aggregator = AnalyticsAggregator(self.links, self.clicks, self.settings)

        self._initialized = True
        self.logger.info(
            "Service manager initialized (storage=%s, cache=%s)",
            self.settings.STORAGE_BACKEND,
            "enabled" if self.cache is not None else "disabled",
        )

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    async def _setup_storage(self) -> None:
        if self.settings.STORAGE_BACKEND == StorageBackend.MEMORY:
            self.links = InMemoryLinkStore()
            self.clicks = InMemoryClickStore()
            return

        self.engine = create_engine(self.settings)
        await init_db(self.engine)
        sessions = create_session_factory(self.engine)
        self.links = SqlLinkStore(sessions)
        self.clicks = SqlClickStore(sessions)

    def _setup_cache(self) -> None:
        if self.cache is not None or not self.settings.ENABLE_CACHE:
            return
        self.redis_cache = RedisCache(create_redis(self.settings))
        self.cache = self.redis_cache

    async def check_database(self) -> HealthStatus:
        try:
            if self.engine is not None:
                await bounded(ping_db(self.engine), self.settings.STORE_TIMEOUT_SECONDS, "database ping")
        except Exception as exc:
            self.logger.error("Database health check failed: %s", exc)
            return HealthStatus.UNHEALTHY
        return HealthStatus.HEALTHY

    async def check_cache(self) -> HealthStatus:
        if self.cache is None:
            return HealthStatus.DISABLED
        try:
            if self.redis_cache is not None:
                await bounded(self.redis_cache.ping(), self.settings.CACHE_TIMEOUT_SECONDS, "cache ping")
        except Exception as exc:
            self.logger.error("Cache health check failed: %s", exc)
            return HealthStatus.UNHEALTHY
        return HealthStatus.HEALTHY

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if not self._initialized:
            return
        await self.recorder.stop()
        if self.redis_cache is not None:
            await close_redis(self.redis_cache.client)
            self.redis_cache = None
            self.cache = None
        if self.engine is not None:
            await close_db(self.engine)
            self.engine = None
        self._initialized = False


# Global service manager instance
_service_manager = ServiceManager()


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data.

    Attributes:
        service_manager: Shared service manager
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: str = ""
    client_ip: str = ""
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    @property
    def client(self) -> ClientMetadata:
        return ClientMetadata(user_agent=self.user_agent, ip_address=self.client_ip)

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


def is_ip_address(value: str) -> bool:
    return bool(validators.ipv4(value, cidr=False) or validators.ipv6(value, cidr=False))


def resolve_client_ip(request: Request) -> str:
    """Client address: first X-Forwarded-For entry, then X-Real-IP, then the peer.

    Header values that are not a plain IPv4/IPv6 address are skipped, so the
    stored address always fits the ``ip_address`` column.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if is_ip_address(first):
            return first

    real_ip = request.headers.get("x-real-ip", "").strip()
    if is_ip_address(real_ip):
        return real_ip

    return request.client.host[:MAX_IP_LENGTH] if request.client else ""


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager.initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent", ""),
        client_ip=resolve_client_ip(request),
    )


def get_allocator(manager: ServiceManager = Depends(get_service_manager)) -> CodeAllocator:
    return manager.allocator


def get_resolver(manager: ServiceManager = Depends(get_service_manager)) -> RedirectResolver:
    return manager.resolver


def get_aggregator(manager: ServiceManager = Depends(get_service_manager)) -> AnalyticsAggregator:
    return manager.aggregator
