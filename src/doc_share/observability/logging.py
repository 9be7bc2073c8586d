"""Structured logging configuration for doc-share.

Configures structlog for JSON-formatted, request-ID-correlated logging.

Usage::

    from doc_share.observability.logging import configure_logging, get_logger

    configure_logging()  # Call once at app startup
    logger = get_logger(__name__)
    logger.info("share_created", share_id="shr_1", access_level="view")

Share tokens and passwords must not be logged.  Fields named in
``SECRET_KEYS`` are replaced with ``[REDACTED]`` before rendering; use
``redact_token`` from ``doc_share.app.sharing.audit`` for correlation.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar

import structlog

# Context variable for request-scoped correlation ID.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_configured = False


def _add_request_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Inject the current request_id from context into every log entry."""
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


# Event keys whose values are share secrets or owner credentials.
SECRET_KEYS = frozenset({
    "token",
    "share_token",
    "password",
    "share_password",
    "password_hash",
    "authorization",
})
REDACTED = "[REDACTED]"


def _redact_secrets(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Replace secret-bearing fields so plaintext never reaches a handler."""
    for key in list(event_dict):
        if key.lower() in SECRET_KEYS and event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Configure structlog and stdlib logging. Idempotent.

    Args:
        level: Log level name. Defaults to LOG_LEVEL env var or INFO.
        json_output: Emit JSON lines when True, console output when False.
            Defaults to LOG_FORMAT env var == "json".
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name."""
    return structlog.get_logger(name)
