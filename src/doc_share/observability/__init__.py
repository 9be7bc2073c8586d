"""Observability infrastructure for doc-share.

Structured logging, Prometheus metrics, and request-ID correlation
middleware.

Quick start::

    from doc_share.observability import configure_logging, get_logger
    from doc_share.observability.middleware import (
        MetricsMiddleware,
        RequestIdMiddleware,
        RequestLoggingMiddleware,
    )

    configure_logging()
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
"""

from .logging import configure_logging, get_logger, request_id_ctx
from .metrics import metrics_text

__all__ = [
    "configure_logging",
    "get_logger",
    "metrics_text",
    "request_id_ctx",
]
