"""Crawler observability helpers: Prometheus counters for pipeline stages.

Counters live in the default registry; the API exposes them at
``/api/v1/metrics`` and the worker serves them from its own HTTP port.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CRAWL_FETCHES = Counter(
    "servicenow_ninja_fetches_total",
    "Outbound crawler fetches",
    labelnames=("kind", "status"),
)
PAGES_SAVED = Counter(
    "servicenow_ninja_pages_saved_total",
    "Documentation pages saved by the content extractor",
    labelnames=("outcome",),
)
CHUNKS_UPSERTED = Counter(
    "servicenow_ninja_chunks_upserted_total",
    "Chunk vectors upserted by the embedding generator",
)
VECTORS_DELETED = Counter(
    "servicenow_ninja_vectors_deleted_total",
    "Stale chunk vectors deleted before re-embedding",
)
STAGE_DURATION = Histogram(
    "servicenow_ninja_stage_duration_seconds",
    "Duration of crawler stages in seconds",
    labelnames=("stage", "status"),
)
SEARCHES = Counter(
    "servicenow_ninja_searches_total",
    "Search requests by retrieval mode",
    labelnames=("mode",),
)


def record_fetch(kind: str, ok: bool) -> None:
    """Count one outbound fetch (``kind`` is robots, sitemap or page)."""
    CRAWL_FETCHES.labels(kind=kind, status="ok" if ok else "error").inc()
