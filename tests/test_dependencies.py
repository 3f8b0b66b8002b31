"""Service manager wiring and request context tests."""

import pytest
from starlette.requests import Request

from shortener.config import Settings
from shortener.dependencies import MAX_IP_LENGTH, ServiceManager, resolve_client_ip
from shortener.enums import HealthStatus
from shortener.storage import InMemoryCache, InMemoryClickStore, InMemoryLinkStore


def make_request(headers: dict[str, str], peer: tuple[str, int] | None = ("192.0.2.1", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/s/abc",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": peer,
    }
    return Request(scope)


@pytest.mark.parametrize(
    ("headers", "peer", "expected"),
    [
        ({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}, ("192.0.2.1", 5000), "203.0.113.9"),
        ({"X-Real-IP": "198.51.100.4"}, ("192.0.2.1", 5000), "198.51.100.4"),
        ({"X-Forwarded-For": " ", "X-Real-IP": "198.51.100.4"}, ("192.0.2.1", 5000), "198.51.100.4"),
        ({}, ("192.0.2.1", 5000), "192.0.2.1"),
        ({"X-Forwarded-For": "2001:db8::1"}, ("192.0.2.1", 5000), "2001:db8::1"),
        ({}, None, ""),
    ],
)
def test_resolve_client_ip(headers: dict[str, str], peer, expected: str) -> None:
    assert resolve_client_ip(make_request(headers, peer)) == expected


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"X-Forwarded-For": "1" * 60}, "192.0.2.1"),
        ({"X-Forwarded-For": "not-an-ip, 10.0.0.1", "X-Real-IP": "198.51.100.4"}, "198.51.100.4"),
        ({"X-Forwarded-For": "203.0.113.0/24"}, "192.0.2.1"),
        ({"X-Real-IP": "x" * 100}, "192.0.2.1"),
    ],
)
def test_resolve_client_ip_skips_malformed_headers(headers: dict[str, str], expected: str) -> None:
    assert resolve_client_ip(make_request(headers)) == expected


def test_resolve_client_ip_fits_column() -> None:
    request = make_request({"X-Forwarded-For": "a" * 200}, peer=("p" * 200, 5000))
    assert len(resolve_client_ip(request)) <= MAX_IP_LENGTH


@pytest.mark.asyncio
async def test_memory_backend_wiring(settings: Settings) -> None:
    manager = ServiceManager(settings=settings)
    await manager.initialize()
    try:
        assert isinstance(manager.links, InMemoryLinkStore)
        assert isinstance(manager.clicks, InMemoryClickStore)
        assert manager.cache is None
        assert manager.engine is None
        assert manager.recorder.running
        assert await manager.check_database() == HealthStatus.HEALTHY
        assert await manager.check_cache() == HealthStatus.DISABLED
    finally:
        await manager.cleanup()

    assert not manager.initialized
    assert not manager.recorder.running


@pytest.mark.asyncio
async def test_injected_cache_is_shared(settings: Settings) -> None:
    cache = InMemoryCache()
    manager = ServiceManager(settings=settings, cache=cache)
    await manager.initialize()
    try:
        created = await manager.allocator.create_link("https://example.com", custom_alias="promo")
        assert f"link:{created.link.code}" in cache.entries

        resolution = await manager.resolver.resolve("promo")
        assert resolution.cache_hit
        assert await manager.check_cache() == HealthStatus.HEALTHY
    finally:
        await manager.cleanup()


@pytest.mark.asyncio
async def test_cleanup_drains_clicks(settings: Settings) -> None:
    manager = ServiceManager(settings=settings)
    await manager.initialize()
    await manager.allocator.create_link("https://example.com", custom_alias="promo")
    for _ in range(5):
        await manager.resolver.resolve("promo")

    await manager.cleanup()

    assert len(manager.clicks.clicks) == 5


@pytest.mark.asyncio
async def test_initialize_is_idempotent(settings: Settings) -> None:
    manager = ServiceManager(settings=settings)
    await manager.initialize()
    links = manager.links
    await manager.initialize()
    assert manager.links is links
    await manager.cleanup()
