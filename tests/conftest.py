"""Shared pytest fixtures for service and API tests.

Everything runs against the in-memory backend; no database or Redis is needed.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortener.allocator import CodeAllocator
from shortener.analytics import AnalyticsAggregator
from shortener.clicks import ClickRecorder
from shortener.config import Settings
from shortener.dependencies import ServiceManager, get_service_manager
from shortener.enums import StorageBackend
from shortener.main import app
from shortener.resolver import RedirectResolver
from shortener.storage import InMemoryCache, InMemoryClickStore, InMemoryLinkStore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        BASE_URL="http://sho.rt",
        STORAGE_BACKEND=StorageBackend.MEMORY,
        ENABLE_CACHE=False,
        STORE_TIMEOUT_SECONDS=1.0,
        CACHE_TIMEOUT_SECONDS=0.2,
        CLICK_DRAIN_TIMEOUT_SECONDS=1.0,
    )


@pytest.fixture
def link_store() -> InMemoryLinkStore:
    return InMemoryLinkStore()


@pytest.fixture
def click_store() -> InMemoryClickStore:
    return InMemoryClickStore()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def recorder(click_store: InMemoryClickStore, settings: Settings) -> ClickRecorder:
    # Not started: clicks are written inline, so tests can assert on them at once.
    return ClickRecorder(click_store, store_timeout=settings.STORE_TIMEOUT_SECONDS)


@pytest.fixture
def allocator(link_store: InMemoryLinkStore, cache: InMemoryCache, settings: Settings) -> CodeAllocator:
    return CodeAllocator(link_store, cache, settings)


@pytest.fixture
def resolver(
    link_store: InMemoryLinkStore,
    cache: InMemoryCache,
    recorder: ClickRecorder,
    settings: Settings,
) -> RedirectResolver:
    return RedirectResolver(link_store, cache, recorder, settings)


@pytest.fixture
def aggregator(
    link_store: InMemoryLinkStore,
    click_store: InMemoryClickStore,
    settings: Settings,
) -> AnalyticsAggregator:
    return AnalyticsAggregator(link_store, click_store, settings)


@pytest_asyncio.fixture(scope="function")
async def manager(settings: Settings) -> AsyncGenerator[ServiceManager, None]:
    service_manager = ServiceManager(settings=settings)
    await service_manager.initialize()
    yield service_manager
    await service_manager.cleanup()


@pytest_asyncio.fixture(scope="function")
async def client(manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_service_manager() -> ServiceManager:
        return manager

    app.dependency_overrides[get_service_manager] = override_get_service_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
