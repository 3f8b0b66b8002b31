"""Shorten endpoint behavior tests."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_shorten_valid_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"original_url": "https://www.google.com"})
    assert response.status_code == 201
    data = response.json()
    assert data["original_url"] == "https://www.google.com"
    assert data["short_url"].startswith("http://sho.rt/s/")
    assert len(data["short_url"].rsplit("/", 1)[1]) == 8


@pytest.mark.asyncio
async def test_shorten_invalid_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"original_url": "not-a-url"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_url"


@pytest.mark.asyncio
async def test_shorten_unsupported_scheme(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"original_url": "ftp://example.com/file"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_url"


@pytest.mark.asyncio
async def test_shorten_empty_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"original_url": ""})
    assert response.status_code == 400
    assert response.json()["code"] == "url_required"


@pytest.mark.asyncio
async def test_shorten_missing_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={})
    assert response.status_code == 400
    assert response.json()["code"] == "url_required"


@pytest.mark.asyncio
async def test_shorten_malformed_body(client: AsyncClient) -> None:
    response = await client.post(
        "/shorten", content="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json() == {
        "error": "invalid request body",
        "code": "invalid_request_body",
        "message": "invalid request body",
    }


@pytest.mark.asyncio
async def test_shorten_with_custom_alias(client: AsyncClient) -> None:
    response = await client.post(
        "/shorten", json={"original_url": "https://www.github.com", "custom_alias": "my-code"}
    )
    assert response.status_code == 201
    assert response.json()["short_url"] == "http://sho.rt/s/my-code"


@pytest.mark.asyncio
async def test_shorten_duplicate_custom_alias(client: AsyncClient) -> None:
    await client.post("/shorten", json={"original_url": "https://www.github.com", "custom_alias": "taken1"})
    response = await client.post(
        "/shorten", json={"original_url": "https://www.example.com", "custom_alias": "taken1"}
    )
    assert response.status_code == 409
    assert response.json() == {
        "error": "custom alias already exists",
        "code": "alias_exists",
        "message": "custom alias already exists",
    }


@pytest.mark.asyncio
async def test_shorten_custom_alias_too_short(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"original_url": "https://www.github.com", "custom_alias": "ab"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_alias"


@pytest.mark.asyncio
async def test_shorten_custom_alias_bad_characters(client: AsyncClient) -> None:
    response = await client.post(
        "/shorten", json={"original_url": "https://www.github.com", "custom_alias": "my code!"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_alias"


@pytest.mark.asyncio
async def test_shorten_multiple_urls(client: AsyncClient) -> None:
    urls = [
        "https://www.google.com",
        "https://www.github.com",
        "https://www.python.org",
    ]
    short_urls = set()
    for url in urls:
        response = await client.post("/shorten", json={"original_url": url})
        assert response.status_code == 201
        short_urls.add(response.json()["short_url"])
    assert len(short_urls) == len(urls)
