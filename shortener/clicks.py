"""Buffered click writer for the redirect path.

Redirects hand clicks to ``ClickRecorder.submit`` and return immediately; a
background task writes them to the ClickStore. On shutdown the queue is
drained within ``CLICK_DRAIN_TIMEOUT_SECONDS`` and any clicks still pending
are logged as lost.

Flow Diagram — Click Recording
==============================
::
    ┌─────────────┐
    │ submit()    │
    └──────┬──────┘
    WORKER  │
    RUNNING?│
    ┌─────┴──────┐
    │ NO          │ YES
    ▼             ▼
┌─────────┐  ┌─────────┐   queue full
│ Write   │  │ Enqueue │ ─────────────► drop + warn
│ inline  │  └────┬────┘
└─────────┘       ▼
             ┌─────────┐
             │ Worker  │
             │ writes  │
             └─────────┘

Key Behaviours
===============
- ``submit`` never raises for storage problems; it returns an Outcome.
- A full queue drops the click instead of blocking the redirect.
- Without a running worker (tests, scripts) clicks are written inline.
"""

import asyncio
import contextlib
import logging

from shortener.contracts import ClickStore, Outcome, bounded
from shortener.metrics import CLICK_RECORD_FAILURES_TOTAL, CLICKS_DROPPED_TOTAL, CLICKS_RECORDED_TOTAL
from shortener.schemas import Click

__all__ = ["ClickRecorder"]

logger = logging.getLogger(__name__)


class ClickRecorder:
    def __init__(
        self,
        store: ClickStore,
        queue_size: int = 10_000,
        drain_timeout: float = 10.0,
        store_timeout: float | None = None,
    ) -> None:
        assert isinstance(queue_size, int) and queue_size > 0, f"queue_size must be positive int, got {queue_size!r}"
        self._store = store
        self._queue_size = queue_size
        self._drain_timeout = drain_timeout
        self._store_timeout = store_timeout
        self._queue: asyncio.Queue[Click] | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._task = asyncio.create_task(self._run(), name="click-recorder")
        logger.info("Click recorder started (queue size %d)", self._queue_size)

    async def submit(self, click: Click) -> Outcome:
        if not self.running:
            return await self._write(click)

        try:
            self._queue.put_nowait(click)
        except asyncio.QueueFull as exc:
            CLICKS_DROPPED_TOTAL.inc()
            logger.warning("Click queue full, dropping click for link %s", click.link_id)
            return Outcome.failure("click_enqueue", exc)
        return Outcome.success("click_enqueue")

    async def join(self) -> None:
        """Wait until every queued click has been written (or failed)."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Drain pending clicks, then stop the worker."""
        if self._task is None:
            return

        task, self._task = self._task, None
        queue = self._queue
        try:
            async with asyncio.timeout(self._drain_timeout):
                await queue.join()
        except TimeoutError:
            lost = queue.qsize()
            CLICKS_DROPPED_TOTAL.inc(lost)
            logger.error("Click drain timed out after %.1fs, %d clicks lost", self._drain_timeout, lost)

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._queue = None
        logger.info("Click recorder stopped")

    async def _run(self) -> None:
        while True:
            click = await self._queue.get()
            try:
                await self._write(click)
            finally:
                self._queue.task_done()

    async def _write(self, click: Click) -> Outcome:
        try:
            await bounded(self._store.create(click), self._store_timeout, "click store create")
        except Exception as exc:
            CLICK_RECORD_FAILURES_TOTAL.inc()
            logger.warning("Failed to record click for link %s: %s", click.link_id, exc)
            return Outcome.failure("click_record", exc)
        CLICKS_RECORDED_TOTAL.inc()
        return Outcome.success("click_record")
