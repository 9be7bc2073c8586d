"""PostgREST-backed DocumentLookup implementation.

Reads ``public.documents`` (owned by the surrounding product) and streams
uploaded bytes from ``uploads_dir``.  Document rows are never written here.

Row shape::

    id, user_id, filename, original_name, type, description,
    file_url, uploaded_at, display_name, content, users(username)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, AsyncIterator

from doc_share.app.documents import DOWNLOAD_CHUNK_SIZE, DocumentRecord, DocumentUnavailable

from .postgrest import PostgrestClient, parse_timestamp

DOCUMENT_COLUMNS = (
    "id,user_id,filename,original_name,type,description,"
    "display_name,content,uploaded_at,users(username)"
)


def row_to_document(row: dict[str, Any]) -> DocumentRecord:
    owner = row.get("users") or {}
    return DocumentRecord(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        display_name=row.get("display_name") or row.get("original_name") or str(row["id"]),
        type=row.get("type") or "other",
        description=row.get("description"),
        content=row.get("content"),
        original_name=row.get("original_name"),
        filename=row.get("filename"),
        owner_name=owner.get("username") if isinstance(owner, dict) else None,
        created_at=parse_timestamp(row.get("uploaded_at")),
    )


class PostgrestDocumentLookup:
    """DocumentLookup over public.documents plus a local uploads directory."""

    TABLE = "documents"

    def __init__(
        self,
        client: PostgrestClient,
        uploads_dir: str | Path,
        *,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    ) -> None:
        self._client = client
        self._uploads_dir = Path(uploads_dir).resolve()
        self._chunk_size = chunk_size

    async def _fetch(self, filters: dict[str, Any]) -> DocumentRecord | None:
        rows = await self._client.select(
            self.TABLE, filters=filters, columns=DOCUMENT_COLUMNS, limit=1,
        )
        return row_to_document(rows[0]) if rows else None

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        return await self._fetch({"id": ("eq", document_id)})

    async def get_owned_document(
        self, document_id: str, owner_id: str,
    ) -> DocumentRecord | None:
        return await self._fetch({
            "id": ("eq", document_id),
            "user_id": ("eq", owner_id),
        })

    def resolve_path(self, document: DocumentRecord) -> Path:
        """Resolve the stored file inside ``uploads_dir``.

        Raises:
            DocumentUnavailable: No filename, or it escapes ``uploads_dir``.
        """
        if not document.filename:
            raise DocumentUnavailable(document.id)
        path = (self._uploads_dir / document.filename).resolve()
        if not path.is_relative_to(self._uploads_dir):
            raise DocumentUnavailable(document.id)
        return path

    async def iter_bytes(self, document: DocumentRecord) -> AsyncIterator[bytes]:
        path = self.resolve_path(document)
        try:
            handle = await asyncio.to_thread(path.open, "rb")
        except OSError as exc:
            raise DocumentUnavailable(document.id) from exc

        try:
            while True:
                chunk = await asyncio.to_thread(handle.read, self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            handle.close()
