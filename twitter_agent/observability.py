# twitter_agent/observability.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# ---- Prometheus metrics (low-cardinality labels) ----
REQUEST_COUNT = Counter(
    "ta_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "ta_http_request_duration_seconds",
    "HTTP request latency (seconds)",
    buckets=(0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.5, 5.0),
)

CACHE_LOOKUPS = Counter(
    "ta_search_cache_lookups_total",
    "Search cache lookups by result",
    ["result"],  # hit | miss | expired
)

CACHE_EVICTIONS = Counter(
    "ta_search_cache_evictions_total",
    "Search cache entries removed",
    ["reason"],  # expired | capacity
)

FETCH_OUTCOMES = Counter(
    "ta_search_fetch_outcomes_total",
    "Live-search terminal states",
    ["outcome"],  # cache | live | rate_limited | unauthorized | error
)

UPSTREAM_LATENCY = Histogram(
    "ta_twitter_request_duration_seconds",
    "Twitter API call latency (seconds)",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def metrics_endpoint():
    """Return Prometheus exposition format."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


UNMATCHED_ROUTE = "<unmatched>"

request_logger = logging.getLogger("request")


def route_template(request: Request) -> str:
    """Matched route path ("/api/intent-filters/{filter_id}"), never the raw URL."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


# ---- Per-request timing + structured request log ----
async def timing_middleware(request: Request, call_next: Callable):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    # Raw paths carry ids; label by template so the series count stays bounded
    path = route_template(request)
    status = str(response.status_code)

    REQUEST_COUNT.labels(method=request.method, path=path, status=status).inc()
    REQUEST_LATENCY.observe(elapsed)

    request_logger.info(
        "request handled",
        extra={
            "context": {
                "method": request.method,
                "path": path,
                "status": status,
                "duration_s": round(elapsed, 6),
                "client": request.client.host if request.client else None,
            }
        },
    )
    return response
