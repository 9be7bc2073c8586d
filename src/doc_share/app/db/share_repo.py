"""PostgREST-backed ShareLinkStore implementation.

Persists share links in ``public.document_share_links``.

Security invariants:
  - Plaintext token is NEVER stored; only the SHA-256 hash is persisted.
  - ``token_hash`` is unique; a collision surfaces as ShareTokenConflict.

Atomicity:
  ``consume_view`` calls the ``consume_share_link_view`` SQL function, a
  single conditional ``UPDATE ... RETURNING`` that increments
  ``view_count`` only while the link is unrevoked, unexpired and under
  quota.  Concurrent recipients therefore never consume more than
  ``max_views`` views, whichever instance serves them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from doc_share.app.sharing.model import AccessLevel, ShareLink, ShareTokenConflict

from .errors import PostgrestConflictError, PostgrestError
from .postgrest import PostgrestClient, parse_timestamp

CONSUME_VIEW_FUNCTION = "consume_share_link_view"

# SQLSTATE invalid_text_representation: a share id that is not a uuid.
INVALID_TEXT_REPRESENTATION = "22P02"


def row_to_link(row: dict[str, Any]) -> ShareLink:
    """Convert a ``document_share_links`` row into a ShareLink."""
    return ShareLink(
        id=str(row["id"]),
        token_hash=row["token_hash"],
        document_id=str(row["document_id"]),
        owner_id=str(row["owner_id"]),
        access_level=AccessLevel(row["access_level"]),
        expires_at=parse_timestamp(row["expires_at"]),
        max_views=row.get("max_views"),
        view_count=row.get("view_count") or 0,
        password_hash=row.get("password_hash"),
        recipient_email_hint=row.get("recipient_email_hint"),
        revoked_at=parse_timestamp(row.get("revoked_at")),
        created_at=parse_timestamp(row.get("created_at")),
    )


def link_to_row(link: ShareLink) -> dict[str, Any]:
    """Insert payload for a new link. ``id`` and ``view_count`` are DB defaults."""
    return {
        "token_hash": link.token_hash,
        "document_id": link.document_id,
        "owner_id": link.owner_id,
        "access_level": link.access_level.value,
        "expires_at": link.expires_at.isoformat(),
        "max_views": link.max_views,
        "password_hash": link.password_hash,
        "recipient_email_hint": link.recipient_email_hint,
        "created_at": link.created_at.isoformat(),
    }


class PostgrestShareLinkStore:
    """ShareLinkStore backed by public.document_share_links via PostgREST."""

    TABLE = "document_share_links"

    def __init__(self, client: PostgrestClient) -> None:
        self._client = client

    async def insert(self, link: ShareLink) -> ShareLink:
        try:
            rows = await self._client.insert(self.TABLE, link_to_row(link))
        except PostgrestConflictError as exc:
            raise ShareTokenConflict("token_hash already exists") from exc
        return row_to_link(rows[0])

    async def get_by_token_hash(self, token_hash: str) -> ShareLink | None:
        rows = await self._client.select(
            self.TABLE,
            filters={"token_hash": ("eq", token_hash)},
            limit=1,
        )
        return row_to_link(rows[0]) if rows else None

    async def get_by_id(self, share_id: str) -> ShareLink | None:
        try:
            rows = await self._client.select(
                self.TABLE,
                filters={"id": ("eq", share_id)},
                limit=1,
            )
        except PostgrestError as exc:
            if exc.code == INVALID_TEXT_REPRESENTATION:
                return None
            raise
        return row_to_link(rows[0]) if rows else None

    async def consume_view(self, token_hash: str, now: datetime) -> ShareLink | None:
        rows = await self._client.rpc(
            CONSUME_VIEW_FUNCTION,
            {"p_token_hash": token_hash, "p_now": now.isoformat()},
        )
        if not rows:
            return None
        return row_to_link(rows[0])

    async def list_for_document(
        self,
        document_id: str,
        *,
        include_revoked: bool = False,
    ) -> list[ShareLink]:
        filters: dict[str, Any] = {"document_id": ("eq", document_id)}
        if not include_revoked:
            filters["revoked_at"] = ("is", None)
        rows = await self._client.select(
            self.TABLE, filters=filters, order="created_at.asc",
        )
        return [row_to_link(row) for row in rows]

    async def revoke(self, share_id: str, owner_id: str, now: datetime) -> ShareLink | None:
        existing = await self.get_by_id(share_id)
        if existing is None or existing.owner_id != owner_id:
            return None
        if existing.is_revoked:
            return existing

        # Only stamp links that are still unrevoked so the first revocation
        # time is preserved if two requests race.
        rows = await self._client.update(
            self.TABLE,
            filters={
                "id": ("eq", share_id),
                "owner_id": ("eq", owner_id),
                "revoked_at": ("is", None),
            },
            data={"revoked_at": now.isoformat()},
        )
        if rows:
            return row_to_link(rows[0])
        return await self.get_by_id(share_id)
