"""Observability middleware for the doc-share FastAPI application.

Provides:
- ``RequestIdMiddleware`` -- generates or accepts ``X-Request-ID`` headers,
  stores the ID in a context variable for structured-log correlation, and
  echoes it on every response.
- ``MetricsMiddleware`` -- Prometheus counters and histograms per request.
- ``RequestLoggingMiddleware`` -- one log line per completed request.

Recipient URLs carry the share token in the path, so every path is passed
through ``_normalize_path`` before it reaches a metric label or a log line.
"""

from __future__ import annotations

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging import get_logger, request_id_ctx
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = get_logger(__name__)

# Allowed request-ID format: 8-128 chars of hex, dash, or alphanumeric.
_VALID_REQUEST_ID = re.compile(r"^[a-zA-Z0-9\-]{8,128}$")

_PATH_NORMALIZERS = [
    (re.compile(r"^/shared/[^/]+"), "/shared/{token}"),
    (re.compile(r"^/api/v1/shares/[^/]+"), "/api/v1/shares/{share_id}"),
    (re.compile(r"^/api/v1/documents/[^/]+"), "/api/v1/documents/{document_id}"),
]


def _normalize_path(path: str) -> str:
    """Collapse tokens and ids so they never become labels or log fields."""
    for pattern, replacement in _PATH_NORMALIZERS:
        path = pattern.sub(replacement, path)
    return path


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate or accept X-Request-ID and propagate via contextvars.

    Spoofed or malformed IDs are replaced with a fresh UUID.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        incoming_id = request.headers.get("x-request-id", "")
        if incoming_id and _VALID_REQUEST_ID.match(incoming_id):
            rid = incoming_id
        else:
            rid = str(uuid.uuid4())

        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        response.headers["X-Request-ID"] = rid
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record Prometheus HTTP metrics for every request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        path = _normalize_path(request.url.path)
        method = request.method

        HTTP_REQUESTS_IN_FLIGHT.inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            HTTP_REQUESTS_TOTAL.labels(
                method=method, path=path, status="500",
            ).inc()
            raise
        finally:
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method, path=path,
            ).observe(time.perf_counter() - start)

        HTTP_REQUESTS_TOTAL.labels(
            method=method, path=path, status=str(response.status_code),
        ).inc()
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every completed request with method, path, status, and duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "request_completed",
            method=request.method,
            path=_normalize_path(request.url.path),
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response
