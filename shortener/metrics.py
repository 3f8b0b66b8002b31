"""Prometheus metrics shared by the allocator, resolver, recorder and aggregator.

Best-effort side effects (cache writes, click inserts) never fail a request, so
these counters are where their failures become visible.
"""

from prometheus_client import Counter, Histogram

__all__ = [
    "LINK_CREATION_REQUESTS_TOTAL",
    "ALLOCATION_RETRIES_TOTAL",
    "REDIRECT_REQUESTS_TOTAL",
    "REDIRECT_DURATION",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "CACHE_ERRORS_TOTAL",
    "CLICKS_RECORDED_TOTAL",
    "CLICK_RECORD_FAILURES_TOTAL",
    "CLICKS_DROPPED_TOTAL",
    "ANALYTICS_REQUESTS_TOTAL",
    "RECENT_CLICKS_FAILURES_TOTAL",
]

# Request metrics
LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortener_link_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
ALLOCATION_RETRIES_TOTAL = Counter(
    "shortener_allocation_retries_total",
    "Generated short codes discarded because they were already taken",
)
REDIRECT_REQUESTS_TOTAL = Counter(
    "shortener_redirect_requests_total",
    "Total redirect resolutions",
    ["status", "cache_hit"],
)
REDIRECT_DURATION = Histogram(
    "shortener_redirect_duration_seconds",
    "Time taken to resolve a short code",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
ANALYTICS_REQUESTS_TOTAL = Counter(
    "shortener_analytics_requests_total",
    "Total analytics aggregations",
    ["status"],
)

# Cache metrics
CACHE_HITS_TOTAL = Counter(
    "shortener_cache_hits_total",
    "Total cache hits for link lookups",
)
CACHE_MISSES_TOTAL = Counter(
    "shortener_cache_misses_total",
    "Total cache misses for link lookups",
)
CACHE_ERRORS_TOTAL = Counter(
    "shortener_cache_errors_total",
    "Cache operations that failed and were ignored",
    ["operation"],
)

# Click metrics
CLICKS_RECORDED_TOTAL = Counter(
    "shortener_clicks_recorded_total",
    "Clicks durably written to the click store",
)
CLICK_RECORD_FAILURES_TOTAL = Counter(
    "shortener_click_record_failures_total",
    "Clicks whose insert failed and was ignored",
)
CLICKS_DROPPED_TOTAL = Counter(
    "shortener_clicks_dropped_total",
    "Clicks discarded because the queue was full or could not be drained",
)
RECENT_CLICKS_FAILURES_TOTAL = Counter(
    "shortener_recent_clicks_failures_total",
    "Analytics responses served without recent clicks",
)
