"""Buffered click recorder tests."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from shortener.clicks import ClickRecorder
from shortener.errors import TransientError
from shortener.schemas import Click
from shortener.storage import InMemoryClickStore


class SlowClickStore(InMemoryClickStore):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def create(self, click: Click) -> Click:
        await asyncio.sleep(self.delay)
        return await super().create(click)


@pytest.mark.asyncio
async def test_inline_write_without_worker(click_store: InMemoryClickStore) -> None:
    recorder = ClickRecorder(click_store)

    outcome = await recorder.submit(Click(link_id=1))

    assert outcome.ok
    assert outcome.operation == "click_record"
    assert len(click_store.clicks) == 1


@pytest.mark.asyncio
async def test_worker_writes_queued_clicks(click_store: InMemoryClickStore) -> None:
    recorder = ClickRecorder(click_store)
    recorder.start()
    try:
        outcomes = [await recorder.submit(Click(link_id=1, user_agent=f"ua-{i}")) for i in range(5)]
        assert all(o.ok and o.operation == "click_enqueue" for o in outcomes)

        await recorder.join()
        assert [c.user_agent for c in click_store.clicks] == [f"ua-{i}" for i in range(5)]
    finally:
        await recorder.stop()


@pytest.mark.asyncio
async def test_stop_drains_pending_clicks() -> None:
    store = SlowClickStore(delay=0.01)
    recorder = ClickRecorder(store, drain_timeout=5.0)
    recorder.start()

    for _ in range(20):
        await recorder.submit(Click(link_id=1))
    assert recorder.pending > 0

    await recorder.stop()

    assert len(store.clicks) == 20
    assert not recorder.running


@pytest.mark.asyncio
async def test_stop_gives_up_after_drain_timeout() -> None:
    store = SlowClickStore(delay=1.0)
    recorder = ClickRecorder(store, drain_timeout=0.05)
    recorder.start()

    for _ in range(3):
        await recorder.submit(Click(link_id=1))

    await recorder.stop()

    assert not recorder.running
    assert len(store.clicks) < 3


@pytest.mark.asyncio
async def test_full_queue_drops_click() -> None:
    store = SlowClickStore(delay=1.0)
    recorder = ClickRecorder(store, queue_size=1, drain_timeout=0.01)
    recorder.start()
    try:
        await recorder.submit(Click(link_id=1))
        await asyncio.sleep(0)  # worker takes the first click
        await recorder.submit(Click(link_id=1))

        outcome = await recorder.submit(Click(link_id=1))

        assert not outcome.ok
        assert isinstance(outcome.error, asyncio.QueueFull)
    finally:
        await recorder.stop()


@pytest.mark.asyncio
async def test_store_failure_is_reported() -> None:
    store = AsyncMock()
    store.create.side_effect = TransientError("db down")
    recorder = ClickRecorder(store)

    outcome = await recorder.submit(Click(link_id=1))

    assert not outcome.ok
    assert isinstance(outcome.error, TransientError)


@pytest.mark.asyncio
async def test_worker_survives_store_failures(click_store: InMemoryClickStore) -> None:
    original_create = click_store.create
    click_store.create = AsyncMock(side_effect=[TransientError("db down"), None])
    recorder = ClickRecorder(click_store)
    recorder.start()
    try:
        await recorder.submit(Click(link_id=1))
        await recorder.submit(Click(link_id=2))
        await recorder.join()
        assert click_store.create.await_count == 2
        assert recorder.running
    finally:
        click_store.create = original_create
        await recorder.stop()


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(click_store: InMemoryClickStore) -> None:
    recorder = ClickRecorder(click_store)
    await recorder.stop()
    assert not recorder.running
