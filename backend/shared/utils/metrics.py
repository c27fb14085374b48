"""
Lightweight metrics collection for GamePulse.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PLATFORM_REQUESTS = Counter(
    "gp_platform_requests_total",
    "Total outbound gateway requests",
    ["platform", "status"],
)
TOKEN_REFRESHES = Counter(
    "gp_token_refreshes_total",
    "Access token refresh attempts",
    ["platform", "outcome"],
)
RESOLUTIONS = Counter(
    "gp_resolver_resolutions_total",
    "Game name resolutions by the tier that produced the answer",
    ["tier"],
)
ENRICHMENT_LOOKUPS = Counter(
    "gp_enrichment_lookups_total",
    "External catalog enrichment lookups",
    ["outcome"],
)
AGGREGATION_PASSES = Counter(
    "gp_aggregation_passes_total",
    "Aggregation passes executed",
    ["operation"],
)
PLATFORM_FAILURES = Counter(
    "gp_platform_failures_total",
    "Platform branches degraded to empty results during aggregation",
    ["platform", "error"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PLATFORM_LATENCY = Histogram(
    "gp_platform_latency_seconds",
    "Gateway request latency in seconds",
    ["platform"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
AGGREGATION_LATENCY = Histogram(
    "gp_aggregation_latency_seconds",
    "Time to assemble one aggregation result",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0),
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
