"""Document records as seen by the sharing core.

Documents are owned and stored by the surrounding product.  The sharing
core only needs to confirm ownership at issuance, read display metadata
when a recipient views a link, and stream bytes for downloads.

This module provides:
  1. ``DocumentRecord`` -- the read-only view of an external document.
  2. ``DocumentUnavailable`` -- raised when stored bytes cannot be opened.
  3. ``InMemoryDocumentLookup`` -- local/test implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class DocumentUnavailable(Exception):
    """The document record exists but its bytes cannot be read."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f'Document {document_id} content is unavailable')


@dataclass(frozen=True)
class DocumentRecord:
    """Display and storage metadata for one shared document."""

    id: str
    owner_id: str
    display_name: str
    type: str = 'other'
    description: str | None = None
    content: str | None = None
    original_name: str | None = None
    filename: str | None = None
    owner_name: str | None = None
    created_at: datetime | None = None

    @property
    def download_name(self) -> str:
        return self.original_name or self.display_name or self.id

    def to_public_dict(self) -> dict:
        """Serialize the fields a recipient is allowed to see."""
        return {
            'id': self.id,
            'displayName': self.display_name,
            'type': self.type,
            'description': self.description,
            'content': self.content,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class InMemoryDocumentLookup:
    """Dictionary-backed document store for local development and tests."""

    def __init__(self) -> None:
        self._documents: dict[str, DocumentRecord] = {}
        self._blobs: dict[str, bytes] = {}

    def add(self, document: DocumentRecord, data: bytes | None = None) -> DocumentRecord:
        self._documents[document.id] = document
        if data is not None:
            self._blobs[document.id] = data
        return document

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        return self._documents.get(document_id)

    async def get_owned_document(
        self, document_id: str, owner_id: str,
    ) -> DocumentRecord | None:
        document = self._documents.get(document_id)
        if document is None or document.owner_id != owner_id:
            return None
        return document

    async def iter_bytes(self, document: DocumentRecord) -> AsyncIterator[bytes]:
        data = self._blobs.get(document.id)
        if data is None:
            raise DocumentUnavailable(document.id)
        for start in range(0, len(data), DOWNLOAD_CHUNK_SIZE):
            yield data[start:start + DOWNLOAD_CHUNK_SIZE]
