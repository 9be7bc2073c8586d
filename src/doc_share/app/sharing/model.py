"""Share-link domain model with token-hash persistence.

Implements the document share-link record and the token lifecycle:

  - Only token_hash is persisted; the plaintext token is never stored.
  - A link grants ``view`` or ``download`` access to exactly one document.
  - Expiry, view quota and revocation are evaluated fresh on every request;
    there is no stored status column.

Security invariant:
  The plaintext share token is generated once and returned to the owner.
  Only the SHA-256 hash is stored.  Token validation hashes the presented
  token and looks up the stored hash.

This module provides:
  1. ``ShareLink`` -- domain object matching public.document_share_links.
  2. ``AccessLevel`` / ``Operation`` -- access ceiling and requested action.
  3. ``generate_share_token`` / ``hash_token`` -- token lifecycle helpers.
  4. Domain exceptions rooted at ``ShareError``.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_BYTES = 32  # 256-bit tokens.
MAX_TOKEN_LENGTH = 256
DEFAULT_EXPIRY_DAYS = 7
MAX_EXPIRY_DAYS = 30

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Token operations ──────────────────────────────────────────────────


def generate_share_token() -> str:
    """Generate a cryptographically random URL-safe share token.

    The plaintext token is handed to the owner exactly once, embedded in
    the public share URL.  Only its hash should be persisted.
    """
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(plaintext: str) -> str:
    """Compute the SHA-256 hash of a plaintext share token.

    This is the value stored in ``document_share_links.token_hash``.
    """
    return hashlib.sha256(plaintext.encode('utf-8')).hexdigest()


# ── Access levels ─────────────────────────────────────────────────────


class Operation(str, Enum):
    """What a recipient asks to do with the shared document."""

    VIEW = 'view'
    DOWNLOAD = 'download'


class AccessLevel(str, Enum):
    """Ceiling on what a token holder may do. ``download`` implies ``view``."""

    VIEW = 'view'
    DOWNLOAD = 'download'

    def permits(self, operation: Operation) -> bool:
        if operation is Operation.VIEW:
            return True
        return self is AccessLevel.DOWNLOAD


# ── Domain exceptions ─────────────────────────────────────────────────


class ShareError(Exception):
    """Base class for share-link domain errors."""

    code = 'share_error'


class InvalidShareParameters(ShareError):
    """Issuance request failed validation. Nothing was persisted."""

    code = 'invalid_parameters'

    def __init__(self, field_name: str, detail: str) -> None:
        self.field_name = field_name
        self.detail = detail
        super().__init__(f'{field_name}: {detail}')


class DocumentNotOwned(ShareError):
    """The owner cannot reference the document they tried to share."""

    code = 'document_not_owned'

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f'Document {document_id} is not available to this owner')


class ShareTokenConflict(ShareError):
    """The store already holds a link with this token hash."""

    code = 'token_conflict'


class MalformedPasswordHash(ShareError):
    """A stored password hash could not be parsed."""

    code = 'internal_error'


class ShareAccessDenied(ShareError):
    """Base class for every recipient-side denial."""

    code = 'access_denied'


class ShareLinkNotFound(ShareAccessDenied):
    """No usable link matches the token (unknown, malformed or revoked)."""

    code = 'share_not_found'


class ShareLinkExpired(ShareAccessDenied):
    """Share link exists but has passed its expiry time."""

    code = 'share_expired'

    def __init__(self, share_id: str, expired_at: datetime) -> None:
        self.share_id = share_id
        self.expired_at = expired_at
        super().__init__(f'Share link {share_id} expired at {expired_at}')


class ShareLinkExhausted(ShareAccessDenied):
    """Share link has no views left."""

    code = 'share_exhausted'

    def __init__(self, share_id: str, max_views: int) -> None:
        self.share_id = share_id
        self.max_views = max_views
        super().__init__(f'Share link {share_id} reached its limit of {max_views} views')


class PasswordRequired(ShareAccessDenied):
    """The link is password protected and no password was supplied."""

    code = 'password_required'


class PasswordIncorrect(PasswordRequired):
    """A password was supplied but did not verify."""

    code = 'password_incorrect'


class PasswordLocked(ShareAccessDenied):
    """Too many failed password attempts against this link."""

    code = 'password_locked'

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f'Too many password attempts. Retry after {retry_after:.0f}s')


class AccessLevelDenied(ShareAccessDenied):
    """The requested operation exceeds the link's access level."""

    code = 'access_level_denied'

    def __init__(self, access_level: AccessLevel, operation: Operation) -> None:
        self.access_level = access_level
        self.operation = operation
        super().__init__(
            f'{operation.value} is not allowed on a {access_level.value} link'
        )


# ── Domain model ──────────────────────────────────────────────────────


@dataclass
class ShareLink:
    """Share link domain object matching public.document_share_links.

    Attributes:
        id: Store-assigned identity.
        token_hash: SHA-256 hash of the plaintext token.
        document_id: The shared document (owned elsewhere).
        owner_id: User ID who created the share.
        access_level: ``view`` or ``download``.
        expires_at: When the link becomes invalid.
        max_views: View quota, or None for unlimited.
        view_count: Views consumed so far.
        password_hash: Argon2 hash when the link is password protected.
        recipient_email_hint: Informational only.
        revoked_at: When the owner revoked the link (None if never).
        created_at: Creation timestamp.
    """

    id: str
    token_hash: str
    document_id: str
    owner_id: str
    access_level: AccessLevel
    expires_at: datetime
    max_views: int | None = None
    view_count: int = 0
    password_hash: str | None = None
    recipient_email_hint: str | None = None
    revoked_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def requires_password(self) -> bool:
        return self.password_hash is not None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def remaining_views(self) -> int | None:
        if self.max_views is None:
            return None
        return max(self.max_views - self.view_count, 0)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_exhausted(self) -> bool:
        return self.max_views is not None and self.view_count >= self.max_views

    def is_active(self, now: datetime) -> bool:
        return not (self.is_revoked or self.is_expired(now) or self.is_exhausted())
