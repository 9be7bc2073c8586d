"""Owner-facing share link issuance and management.

``ShareLinkIssuer.create`` validates an issuance request, confirms through
the document lookup that the owner can reference the document, hashes the
optional password, and inserts exactly one record.  The plaintext token is
returned once, embedded in the public URL; only its hash is stored.

Validation failures raise ``InvalidShareParameters`` before anything is
written, so a failed issuance never leaves a partial record behind.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from doc_share.observability.logging import get_logger
from doc_share.observability.metrics import SHARE_LINKS_CREATED

from .audit import (
    SHARE_CREATED,
    SHARE_REVOKED,
    ShareAuditEvent,
    emit_share_event,
    redact_token,
)
from .model import (
    MAX_EXPIRY_DAYS,
    AccessLevel,
    Clock,
    DocumentNotOwned,
    InvalidShareParameters,
    ShareLink,
    ShareTokenConflict,
    generate_share_token,
    hash_token,
    utcnow,
)
from .passwords import PasswordGuard

if TYPE_CHECKING:
    from ..protocols import DocumentLookup, ShareAuditEmitter, ShareLinkStore

logger = get_logger(__name__)

TOKEN_INSERT_ATTEMPTS = 3
MAX_EMAIL_HINT_LENGTH = 254


@dataclass(frozen=True, slots=True)
class IssuedShareLink:
    """Result of a successful issuance. ``token`` is shown to the owner once."""

    link: ShareLink
    token: str
    share_url: str

    @property
    def expires_at(self) -> datetime:
        return self.link.expires_at


def _require_int(field_name: str, value: object, minimum: int, maximum: int | None = None) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidShareParameters(field_name, 'must be an integer')
    if value < minimum:
        raise InvalidShareParameters(field_name, f'must be >= {minimum}')
    if maximum is not None and value > maximum:
        raise InvalidShareParameters(field_name, f'must be <= {maximum}')
    return value


def _parse_access_level(value: object) -> AccessLevel:
    try:
        return AccessLevel(value)
    except ValueError:
        raise InvalidShareParameters(
            'access_level',
            f'must be one of: {sorted(level.value for level in AccessLevel)}',
        ) from None


def _normalize_email_hint(value: str | None) -> str | None:
    if value is None:
        return None
    hint = value.strip().lower()
    if not hint:
        return None
    if len(hint) > MAX_EMAIL_HINT_LENGTH or '@' not in hint:
        raise InvalidShareParameters('recipient_email_hint', 'must be an email address')
    return hint


class ShareLinkIssuer:
    """Create, list and revoke share links on behalf of document owners.

    Args:
        store: Share link store.
        documents: Document lookup used for the ownership check.
        password_guard: Hashes optional share passwords.
        public_base_url: Origin used to build ``share_url``.
        audit_emitter: Optional sink for share audit events.
        max_expiry_days: Upper bound for ``expires_in_days``.
        clock: Returns the current UTC time.
        token_factory: Produces plaintext tokens.
    """

    def __init__(
        self,
        store: ShareLinkStore,
        documents: DocumentLookup,
        password_guard: PasswordGuard,
        *,
        public_base_url: str,
        audit_emitter: ShareAuditEmitter | None = None,
        max_expiry_days: int = MAX_EXPIRY_DAYS,
        clock: Clock = utcnow,
        token_factory: Callable[[], str] = generate_share_token,
    ) -> None:
        self._store = store
        self._documents = documents
        self._passwords = password_guard
        self._base_url = public_base_url.rstrip('/')
        self._audit = audit_emitter
        self._max_expiry_days = max_expiry_days
        self._clock = clock
        self._token_factory = token_factory

    def share_url(self, token: str) -> str:
        return f'{self._base_url}/shared/{token}'

    def now(self) -> datetime:
        return self._clock()

    async def create(
        self,
        document_id: str,
        owner_id: str,
        access_level: AccessLevel | str,
        expires_in_days: int,
        max_views: int | None = None,
        password: str | None = None,
        recipient_email_hint: str | None = None,
    ) -> IssuedShareLink:
        """Issue a new share link for a document the owner can reference.

        Raises:
            InvalidShareParameters: A parameter is out of range.
            DocumentNotOwned: The owner cannot reference ``document_id``.
            ShareTokenConflict: Every generated token collided.
        """
        if not document_id or not isinstance(document_id, str):
            raise InvalidShareParameters('document_id', 'is required')
        level = _parse_access_level(access_level)
        days = _require_int('expires_in_days', expires_in_days, 1, self._max_expiry_days)
        if max_views is not None:
            max_views = _require_int('max_views', max_views, 1)
        if password is not None and not password.strip():
            raise InvalidShareParameters('password', 'must not be empty')
        email_hint = _normalize_email_hint(recipient_email_hint)

        document = await self._documents.get_owned_document(document_id, owner_id)
        if document is None:
            raise DocumentNotOwned(document_id)

        password_hash = None
        if password is not None:
            password_hash = await asyncio.to_thread(self._passwords.hash, password)

        now = self._clock()
        expires_at = now + timedelta(days=days)

        for attempt in range(1, TOKEN_INSERT_ATTEMPTS + 1):
            token = self._token_factory()
            link = ShareLink(
                id='',  # Assigned by the store.
                token_hash=hash_token(token),
                document_id=document.id,
                owner_id=owner_id,
                access_level=level,
                expires_at=expires_at,
                max_views=max_views,
                password_hash=password_hash,
                recipient_email_hint=email_hint,
                created_at=now,
            )
            try:
                link = await self._store.insert(link)
                break
            except ShareTokenConflict:
                logger.warning('share_token_collision', attempt=attempt)
        else:
            raise ShareTokenConflict(
                f'No unique token after {TOKEN_INSERT_ATTEMPTS} attempts'
            )

        SHARE_LINKS_CREATED.labels(access_level=level.value).inc()
        await emit_share_event(self._audit, ShareAuditEvent(
            event_type=SHARE_CREATED,
            share_id=link.id,
            document_id=link.document_id,
            token_prefix=redact_token(token),
            actor_user_id=owner_id,
            detail=level.value,
        ))
        logger.info(
            'share_link_created',
            share_id=link.id,
            document_id=link.document_id,
            access_level=level.value,
            expires_at=expires_at.isoformat(),
            max_views=max_views,
            password_protected=password_hash is not None,
        )
        return IssuedShareLink(link=link, token=token, share_url=self.share_url(token))

    async def list_for_document(
        self,
        document_id: str,
        owner_id: str,
        *,
        include_revoked: bool = False,
    ) -> list[ShareLink]:
        """List a document's links. Requires that the owner can reference it."""
        document = await self._documents.get_owned_document(document_id, owner_id)
        if document is None:
            raise DocumentNotOwned(document_id)
        links = await self._store.list_for_document(
            document_id, include_revoked=include_revoked,
        )
        return [link for link in links if link.owner_id == owner_id]

    async def revoke(self, share_id: str, owner_id: str) -> ShareLink | None:
        """Revoke a link. Idempotent; None when missing or owned by someone else."""
        link = await self._store.revoke(share_id, owner_id, self._clock())
        if link is None:
            return None

        await emit_share_event(self._audit, ShareAuditEvent(
            event_type=SHARE_REVOKED,
            share_id=link.id,
            document_id=link.document_id,
            actor_user_id=owner_id,
        ))
        logger.info('share_link_revoked', share_id=link.id)
        return link
