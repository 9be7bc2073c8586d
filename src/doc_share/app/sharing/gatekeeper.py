"""Access decisions for recipient requests against a share token.

The gatekeeper turns ``(token, password, operation)`` into either an
``AccessGrant`` or a ``ShareAccessDenied`` subclass.  Link state is derived
on every call from the stored record and the clock; nothing is cached.

Decision order:
  1. Unknown, malformed or revoked token   -> ShareLinkNotFound
  2. now > expires_at                      -> ShareLinkExpired
  3. view_count >= max_views               -> ShareLinkExhausted
  4. password missing / locked / wrong     -> PasswordRequired /
                                              PasswordLocked /
                                              PasswordIncorrect
  5. download requested on a view link     -> AccessLevelDenied
  6. atomically consume one view           -> AccessGrant

Step 6 never reads and then writes.  It asks the store to increment
``view_count`` only while the link is still unrevoked, unexpired and under
quota.  When the store declines, another request took the last view (or the
link expired/was revoked in between) and the caller gets the matching
denial instead of content.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from doc_share.observability.logging import get_logger
from doc_share.observability.metrics import SHARE_ACCESS_DECISIONS

from ..documents import DocumentRecord
from .audit import (
    SHARE_ACCESSED,
    SHARE_DENIED,
    SHARE_DOWNLOADED,
    ShareAuditEvent,
    emit_share_event,
    redact_token,
)
from .lockout import PasswordAttemptLimiter
from .model import (
    MAX_TOKEN_LENGTH,
    AccessLevelDenied,
    Clock,
    Operation,
    PasswordIncorrect,
    PasswordLocked,
    PasswordRequired,
    ShareAccessDenied,
    ShareLink,
    ShareLinkExhausted,
    ShareLinkExpired,
    ShareLinkNotFound,
    hash_token,
    utcnow,
)
from .passwords import PasswordGuard

if TYPE_CHECKING:
    from datetime import datetime

    from ..protocols import DocumentLookup, ShareAuditEmitter, ShareLinkStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AccessGrant:
    """A successful decision: the consumed link and the document to serve."""

    link: ShareLink
    document: DocumentRecord
    operation: Operation


class AccessGatekeeper:
    """Decide recipient access and consume view quota.

    Args:
        store: Share link store providing the atomic ``consume_view``.
        documents: Document lookup used once access is granted.
        password_guard: Verifies share passwords.
        audit_emitter: Optional sink for share audit events.
        limiter: Optional per-link failed-password lockout.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: ShareLinkStore,
        documents: DocumentLookup,
        password_guard: PasswordGuard,
        *,
        audit_emitter: ShareAuditEmitter | None = None,
        limiter: PasswordAttemptLimiter | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._documents = documents
        self._passwords = password_guard
        self._audit = audit_emitter
        self._limiter = limiter
        self._clock = clock

    async def authorize(
        self,
        token: str,
        operation: Operation,
        password: str | None = None,
    ) -> AccessGrant:
        """Run the decision procedure for one recipient request.

        Raises:
            ShareAccessDenied: One of its subclasses, naming the reason.
            MalformedPasswordHash: The stored password hash is corrupt.
        """
        now = self._clock()

        link = None
        if token and len(token) <= MAX_TOKEN_LENGTH:
            link = await self._store.get_by_token_hash(hash_token(token))

        if link is None or link.is_revoked:
            raise await self._deny(ShareLinkNotFound(), token, operation, link)

        if link.is_expired(now):
            raise await self._deny(
                ShareLinkExpired(link.id, link.expires_at), token, operation, link,
            )

        if link.is_exhausted():
            raise await self._deny(
                ShareLinkExhausted(link.id, link.max_views), token, operation, link,
            )

        if link.requires_password:
            await self._check_password(link, token, operation, password)

        if not link.access_level.permits(operation):
            raise await self._deny(
                AccessLevelDenied(link.access_level, operation), token, operation, link,
            )

        document = await self._documents.get_document(link.document_id)
        if document is None:
            logger.warning(
                'shared_document_missing',
                share_id=link.id,
                document_id=link.document_id,
            )
            raise await self._deny(ShareLinkNotFound(), token, operation, link)

        consumed = await self._store.consume_view(link.token_hash, now)
        if consumed is None:
            current = await self._store.get_by_token_hash(link.token_hash)
            raise await self._deny(
                self._declined_reason(current or link, now), token, operation, link,
            )

        SHARE_ACCESS_DECISIONS.labels(
            operation=operation.value, outcome='allowed',
        ).inc()
        await emit_share_event(self._audit, ShareAuditEvent(
            event_type=SHARE_DOWNLOADED if operation is Operation.DOWNLOAD else SHARE_ACCESSED,
            share_id=consumed.id,
            document_id=consumed.document_id,
            token_prefix=redact_token(token),
            operation=operation.value,
            view_count=consumed.view_count,
        ))
        logger.info(
            'share_access_allowed',
            share_id=consumed.id,
            operation=operation.value,
            view_count=consumed.view_count,
            max_views=consumed.max_views,
        )
        return AccessGrant(link=consumed, document=document, operation=operation)

    async def _check_password(
        self,
        link: ShareLink,
        token: str,
        operation: Operation,
        password: str | None,
    ) -> None:
        if not password:
            raise await self._deny(PasswordRequired(), token, operation, link)

        # The slot is taken before verifying; a failure keeps it.
        if self._limiter is not None:
            try:
                self._limiter.acquire(link.token_hash)
            except PasswordLocked as exc:
                raise await self._deny(exc, token, operation, link)

        # Argon2 is deliberately slow; keep it off the event loop.
        verified = await asyncio.to_thread(
            self._passwords.verify, password, link.password_hash,
        )
        if not verified:
            raise await self._deny(PasswordIncorrect(), token, operation, link)

        if self._limiter is not None:
            self._limiter.reset(link.token_hash)

    @staticmethod
    def _declined_reason(link: ShareLink, now: datetime) -> ShareAccessDenied:
        """Explain why the store refused the conditional increment."""
        if link.is_revoked:
            return ShareLinkNotFound()
        if link.is_expired(now):
            return ShareLinkExpired(link.id, link.expires_at)
        return ShareLinkExhausted(link.id, link.max_views or link.view_count)

    async def _deny(
        self,
        exc: ShareAccessDenied,
        token: str,
        operation: Operation,
        link: ShareLink | None,
    ) -> ShareAccessDenied:
        """Record a denial and hand the exception back for raising."""
        SHARE_ACCESS_DECISIONS.labels(
            operation=operation.value, outcome=exc.code,
        ).inc()
        await emit_share_event(self._audit, ShareAuditEvent(
            event_type=SHARE_DENIED,
            share_id=link.id if link else None,
            document_id=link.document_id if link else None,
            token_prefix=redact_token(token),
            operation=operation.value,
            detail=exc.code,
            view_count=link.view_count if link else None,
        ))
        logger.info(
            'share_access_denied',
            reason=exc.code,
            share_id=link.id if link else None,
            token_prefix=redact_token(token),
            operation=operation.value,
        )
        return exc
