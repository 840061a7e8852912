"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

RETRIEVAL_REQUESTS = Counter(
    "rdr_retrieval_requests_total",
    "Retrieval calls by terminal tier",
    labelnames=("mode", "tier"),
    registry=REGISTRY,
)

TIER_LATENCY = Histogram(
    "rdr_tier_latency_seconds",
    "Latency of a single retrieval tier attempt",
    labelnames=("tier",),
    registry=REGISTRY,
)

TIER_FAILURES = Counter(
    "rdr_tier_failures_total",
    "Tier attempts that degraded to an empty result",
    labelnames=("tier", "reason"),
    registry=REGISTRY,
)

CACHE_LOOKUPS = Counter(
    "rdr_cache_lookups_total",
    "Cache lookups by cache and outcome",
    labelnames=("cache", "outcome"),
    registry=REGISTRY,
)

HYBRID_SEARCHES = Counter(
    "rdr_hybrid_searches_total",
    "Hybrid searches by entity type",
    labelnames=("entity",),
    registry=REGISTRY,
)

INDEXED_CHUNKS = Counter(
    "rdr_indexed_chunks_total",
    "Chunks written by the indexer",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "RETRIEVAL_REQUESTS",
    "TIER_LATENCY",
    "TIER_FAILURES",
    "CACHE_LOOKUPS",
    "HYBRID_SEARCHES",
    "INDEXED_CHUNKS",
    "metrics_response",
]
