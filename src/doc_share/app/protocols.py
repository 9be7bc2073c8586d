"""Store and collaborator protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations
(in-memory for local dev and tests, PostgREST for deployed environments)
must satisfy.  The app factory accepts any implementation that matches.
"""

from __future__ import annotations

from datetime import datetime
from typing import AsyncIterator, Protocol, runtime_checkable

from .documents import DocumentRecord
from .sharing.audit import ShareAuditEvent
from .sharing.model import ShareLink


@runtime_checkable
class ShareLinkStore(Protocol):
    """Share link persistence.

    ``insert`` raises ShareTokenConflict when the token hash already exists.
    ``consume_view`` is the atomic conditional increment: it bumps
    ``view_count`` by one only if the link is unrevoked, unexpired at ``now``
    and under quota, and returns the updated link, or None when nothing
    was updated.
    """

    async def insert(self, link: ShareLink) -> ShareLink: ...
    async def get_by_token_hash(self, token_hash: str) -> ShareLink | None: ...
    async def get_by_id(self, share_id: str) -> ShareLink | None: ...
    async def consume_view(self, token_hash: str, now: datetime) -> ShareLink | None: ...
    async def list_for_document(
        self, document_id: str, *, include_revoked: bool = False,
    ) -> list[ShareLink]: ...
    async def revoke(
        self, share_id: str, owner_id: str, now: datetime,
    ) -> ShareLink | None: ...


@runtime_checkable
class DocumentLookup(Protocol):
    """Read-only access to the external document store."""

    async def get_document(self, document_id: str) -> DocumentRecord | None: ...
    async def get_owned_document(
        self, document_id: str, owner_id: str,
    ) -> DocumentRecord | None: ...
    def iter_bytes(self, document: DocumentRecord) -> AsyncIterator[bytes]: ...


@runtime_checkable
class ShareAuditEmitter(Protocol):
    """Audit event sink. Emission must never raise into the caller."""

    async def emit(self, event: ShareAuditEvent) -> None: ...
