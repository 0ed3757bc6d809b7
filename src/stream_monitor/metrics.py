"""Prometheus metrics for the stream monitor."""

import re
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# HTTP metrics
http_requests_total = Counter(
    "stream_monitor_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "stream_monitor_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Stream metrics
stream_info_fetch_failures_total = Counter(
    "stream_info_fetch_failures_total",
    "Streams left out of a listing because their info could not be read",
)

stream_messages_deleted_total = Counter(
    "stream_messages_deleted_total",
    "Entries deleted from regular streams",
    ["stream"],
)

# DLQ metrics
dlq_messages_requeued_total = Counter(
    "dlq_messages_requeued_total",
    "Messages moved from the DLQ back to their original topic",
    ["topic"],
)

dlq_requeue_failures_total = Counter(
    "dlq_requeue_failures_total",
    "Failed requeue attempts",
    ["reason"],
)

dlq_size = Gauge(
    "dlq_size",
    "Number of entries in the dead letter queue at the last stats read",
    ["queue"],
)

# Entry ids and stream names in paths are replaced before labelling
ENTRY_ID_PATTERN = re.compile(r"/\d+-\d+")
STREAM_NAME_PATTERN = re.compile(r"^(/api/streams)/[^/]+")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware for collecting HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = normalize_endpoint(request.url.path)
        if endpoint not in ("/metrics", "/health"):
            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                status=response.status_code,
            ).inc()
            http_request_duration_seconds.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration)

        return response


def normalize_endpoint(path: str) -> str:
    path = ENTRY_ID_PATTERN.sub("/{id}", path)
    return STREAM_NAME_PATTERN.sub(r"\1/{name}", path)


def get_metrics() -> bytes:
    """Return metrics in Prometheus format."""
    return generate_latest()


def get_content_type() -> str:
    """Return Prometheus content type."""
    return CONTENT_TYPE_LATEST
