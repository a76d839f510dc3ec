"""Prometheus metrics for Subrelay monitoring.

Scraped via ``GET /api/v1/metrics``.
"""

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# -- Metric Definitions -------------------------------------------------------

# How each Search call was served: cache_hit, started, joined, handed_off
SEARCH_REQUESTS_TOTAL = Counter(
    "subrelay_search_requests_total",
    "Subtitle search calls by outcome",
    ["outcome"],
)

UPSTREAM_SEARCH_TOTAL = Counter(
    "subrelay_upstream_search_total",
    "Bazarr provider searches started and finished",
    ["kind", "status"],
)

UPSTREAM_SEARCH_DURATION = Histogram(
    "subrelay_upstream_search_duration_seconds",
    "Wall time of a Bazarr provider search",
    ["kind"],
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1200, 1800),
)

SEARCHES_IN_FLIGHT = Gauge(
    "subrelay_searches_in_flight",
    "Bazarr provider searches currently running",
)

CACHE_ENTRIES = Gauge(
    "subrelay_cache_entries",
    "Entries held by the result cache",
)


def record_search_outcome(outcome: str) -> None:
    SEARCH_REQUESTS_TOTAL.labels(outcome=outcome).inc()


def record_upstream_search(kind: str, status: str, duration_seconds: float) -> None:
    UPSTREAM_SEARCH_TOTAL.labels(kind=kind, status=status).inc()
    UPSTREAM_SEARCH_DURATION.labels(kind=kind).observe(duration_seconds)


def generate_metrics(cache_backend=None) -> tuple[bytes, str]:
    """Refresh point-in-time gauges and render the registry.

    Returns:
        (body, content_type) ready for a Flask Response.
    """
    if cache_backend is not None:
        try:
            CACHE_ENTRIES.set(cache_backend.get_stats().get("size", 0))
        except Exception as e:
            logger.debug("Cache stats unavailable for metrics: %s", e)
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
