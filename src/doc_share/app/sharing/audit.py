"""Share audit events and token redaction.

Records share creation, successful views and downloads, denials, and
revocations as structured events.

Security invariant:
  Plaintext tokens and passwords must NEVER appear in audit event data.
  Only token prefixes (first 8 chars) are included for correlation.

This module provides:
  1. ``ShareAuditEvent`` -- structured audit record.
  2. ``InMemoryShareAuditEmitter`` -- local/test sink.
  3. ``redact_token`` -- safely truncate tokens for logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from doc_share.observability.metrics import SHARE_AUDIT_EVENTS

if TYPE_CHECKING:
    from ..protocols import ShareAuditEmitter

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_PREFIX_LENGTH = 8  # Characters to keep for correlation.

SHARE_CREATED = 'share.created'
SHARE_ACCESSED = 'share.accessed'
SHARE_DOWNLOADED = 'share.downloaded'
SHARE_DENIED = 'share.denied'
SHARE_REVOKED = 'share.revoked'


def redact_token(token: str | None) -> str:
    """Safely truncate a token to a prefix for logging.

    Returns ``<prefix>...`` or ``<redacted>`` for missing/short tokens.
    """
    if not token or len(token) < TOKEN_PREFIX_LENGTH * 2:
        return '<redacted>'
    return f'{token[:TOKEN_PREFIX_LENGTH]}...'


# ── Audit event model ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ShareAuditEvent:
    """Structured audit event for share operations.

    Attributes:
        event_type: share.created, share.accessed, share.downloaded,
                    share.denied or share.revoked.
        share_id: Share link ID (if resolved).
        document_id: The shared document (if resolved).
        token_prefix: First 8 chars of the token (for correlation only).
        operation: view/download for recipient events.
        actor_user_id: Owner who acted (owner-side events only).
        detail: Denial code or other context.
        view_count: Views consumed after this event, when relevant.
        timestamp: When the event occurred.
    """

    event_type: str
    share_id: str | None = None
    document_id: str | None = None
    token_prefix: str = '<redacted>'
    operation: str = ''
    actor_user_id: str = ''
    detail: str = ''
    view_count: int | None = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        """Serialize to a dict safe for JSON logging."""
        return {
            'event_type': self.event_type,
            'share_id': self.share_id,
            'document_id': self.document_id,
            'token_prefix': self.token_prefix,
            'operation': self.operation,
            'actor_user_id': self.actor_user_id,
            'detail': self.detail,
            'view_count': self.view_count,
            'timestamp': self.timestamp.isoformat(),
        }


# ── In-memory implementation ────────────────────────────────────────


class InMemoryShareAuditEmitter:
    """Audit emitter that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[ShareAuditEvent] = []

    async def emit(self, event: ShareAuditEvent) -> None:
        self.events.append(event)

    def find(
        self,
        event_type: str | None = None,
        share_id: str | None = None,
    ) -> list[ShareAuditEvent]:
        """Filter events by type and/or share id."""
        result = self.events
        if event_type:
            result = [e for e in result if e.event_type == event_type]
        if share_id:
            result = [e for e in result if e.share_id == share_id]
        return result


# ── Emission helper ──────────────────────────────────────────────────


async def emit_share_event(
    emitter: ShareAuditEmitter | None,
    event: ShareAuditEvent,
) -> ShareAuditEvent:
    """Send ``event`` to ``emitter`` (if any) and count it."""
    if emitter is not None:
        await emitter.emit(event)
    SHARE_AUDIT_EVENTS.labels(event_type=event.event_type).inc()
    return event
