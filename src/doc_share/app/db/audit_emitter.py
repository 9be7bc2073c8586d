"""PostgREST-backed ShareAuditEmitter implementation.

Writes share audit events to ``public.share_audit_events``.  Emit is
fire-and-forget: DB errors are logged but never propagate to callers, so an
audit outage cannot turn an allowed access into a failure.

Credential sanitization: tokens, passwords and keys are stripped from
payloads before persistence.
"""

from __future__ import annotations

from typing import Any

from doc_share.app.sharing.audit import ShareAuditEvent
from doc_share.observability.logging import get_logger

from .postgrest import PostgrestClient

logger = get_logger(__name__)

# Keys that must never appear in audit payloads.
_SENSITIVE_KEYS = frozenset({
    "authorization",
    "apikey",
    "service_role_key",
    "token",
    "share_token",
    "password",
    "password_hash",
    "secret",
})


def _sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Copy payload with sensitive keys redacted, recursing into dicts."""
    sanitized: dict[str, Any] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_payload(value)
        else:
            sanitized[key] = value
    return sanitized


def event_to_row(event: ShareAuditEvent) -> dict[str, Any]:
    return {
        "event_type": event.event_type,
        "share_id": event.share_id,
        "document_id": event.document_id,
        "actor_user_id": event.actor_user_id or None,
        "payload": _sanitize_payload({
            "token_prefix": event.token_prefix,
            "operation": event.operation,
            "detail": event.detail,
            "view_count": event.view_count,
        }),
        "created_at": event.timestamp.isoformat(),
    }


class PostgrestShareAuditEmitter:
    """ShareAuditEmitter backed by public.share_audit_events."""

    TABLE = "share_audit_events"

    def __init__(self, client: PostgrestClient) -> None:
        self._client = client

    async def emit(self, event: ShareAuditEvent) -> None:
        """Write an audit event. Errors are logged, not raised."""
        try:
            await self._client.insert(self.TABLE, event_to_row(event))
        except Exception:
            logger.exception(
                "share_audit_emit_failed",
                event_type=event.event_type,
                share_id=event.share_id,
            )
