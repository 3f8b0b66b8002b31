"""Click analytics for a short code.

Totals and breakdowns are computed on every request and never cached.
The link lookup and the count/day/month/user-agent queries are mandatory;
the recent-clicks query is best-effort and its failure leaves
``recent_clicks`` unset.
"""

import logging

from shortener.config import Settings
from shortener.contracts import ClickStore, LinkStore, bounded
from shortener.enums import RequestStatus
from shortener.errors import LinkNotFoundError, ShortenerError
from shortener.metrics import ANALYTICS_REQUESTS_TOTAL, RECENT_CLICKS_FAILURES_TOTAL
from shortener.schemas import Analytics, Click

__all__ = ["AnalyticsAggregator"]

logger = logging.getLogger(__name__)


class AnalyticsAggregator:
    def __init__(self, links: LinkStore, clicks: ClickStore, settings: Settings) -> None:
        self._links = links
        self._clicks = clicks
        self._settings = settings

    async def aggregate(self, code: str) -> Analytics:
        """Build the analytics view of ``code``.

        Raises:
            LinkNotFoundError: No link has this code.
            TransientError: A mandatory store query failed or timed out.
        """
        try:
            analytics = await self._aggregate(code)
        except LinkNotFoundError:
            ANALYTICS_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            raise
        except ShortenerError as exc:
            ANALYTICS_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            logger.error("Analytics failed for %s: %s", code, exc)
            raise
        ANALYTICS_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        return analytics

    async def _aggregate(self, code: str) -> Analytics:
        link = await self._store(self._links.get_by_code(code), "get_by_code")
        if link is None:
            raise LinkNotFoundError()

        total = await self._store(self._clicks.count_by_link(link.id), "count_by_link")
        by_day = await self._store(self._clicks.group_by_day(link.id), "group_by_day")
        by_month = await self._store(self._clicks.group_by_month(link.id), "group_by_month")
        by_user_agent = await self._store(self._clicks.group_by_user_agent(link.id), "group_by_user_agent")

        return Analytics(
            link_id=link.id,
            short_url=link.code,
            total_clicks=total,
            by_day=dict(by_day),
            by_month=dict(by_month),
            by_user_agent=dict(by_user_agent),
            recent_clicks=await self._recent(link.id),
        )

    async def _recent(self, link_id: int) -> list[Click] | None:
        try:
            return await self._store(
                self._clicks.recent_by_link(link_id, self._settings.RECENT_CLICKS_LIMIT), "recent_by_link"
            )
        except Exception as exc:
            RECENT_CLICKS_FAILURES_TOTAL.inc()
            logger.warning("Recent clicks unavailable for link %s: %s", link_id, exc)
            return None

    async def _store(self, call, operation: str):
        return await bounded(call, self._settings.STORE_TIMEOUT_SECONDS, f"click analytics {operation}")
