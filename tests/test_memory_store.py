"""In-memory store contract tests."""

import pytest

from shortener.enums import CodeProvenance
from shortener.errors import CODE_CONSTRAINT, ConstraintViolationError
from shortener.schemas import Link
from shortener.storage import InMemoryLinkStore


@pytest.mark.asyncio
async def test_create_assigns_ids(link_store: InMemoryLinkStore) -> None:
    first = await link_store.create(Link(code="aaa", original_url="https://example.com/1"))
    second = await link_store.create(Link(code="bbb", original_url="https://example.com/2"))
    assert (first.id, second.id) == (1, 2)


@pytest.mark.asyncio
async def test_alias_and_generated_codes_share_namespace(link_store: InMemoryLinkStore) -> None:
    await link_store.create(Link(code="promo", original_url="https://example.com", provenance=CodeProvenance.CUSTOM))

    with pytest.raises(ConstraintViolationError) as exc_info:
        await link_store.create(Link(code="promo", original_url="https://example.com/other"))
    assert exc_info.value.constraint == CODE_CONSTRAINT

    assert await link_store.exists("promo")
    assert (await link_store.get_by_alias("promo")).code == "promo"
    assert (await link_store.get_by_code("promo")).original_url == "https://example.com"


@pytest.mark.asyncio
async def test_generated_link_is_not_an_alias(link_store: InMemoryLinkStore) -> None:
    await link_store.create(Link(code="Xy12_-ab", original_url="https://example.com"))
    assert await link_store.get_by_alias("Xy12_-ab") is None
    assert await link_store.exists("Xy12_-ab")
    assert not await link_store.exists("other")
