"""Prometheus metrics for doc-share.

Usage::

    from doc_share.observability.metrics import SHARE_ACCESS_DECISIONS

    SHARE_ACCESS_DECISIONS.labels(operation="view", outcome="allowed").inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_server_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "http_server_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Share link metrics
# ---------------------------------------------------------------------------

SHARE_LINKS_CREATED = Counter(
    "doc_share_links_created_total",
    "Share links issued, by access level.",
    labelnames=["access_level"],
    registry=REGISTRY,
)

SHARE_ACCESS_DECISIONS = Counter(
    "doc_share_access_decisions_total",
    "Gatekeeper decisions by requested operation and outcome.",
    labelnames=["operation", "outcome"],
    registry=REGISTRY,
)

SHARE_AUDIT_EVENTS = Counter(
    "doc_share_audit_events_total",
    "Share audit events emitted, by event type.",
    labelnames=["event_type"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
