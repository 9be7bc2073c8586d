"""In-memory share link store for local development and tests.

Records live in dicts keyed by id and by token hash.  The conditional view
increment runs under a ``threading.Lock`` so the check and the write are a
single step, whether callers are coroutines on one loop or threads.  This is
only correct for a single process; deployed environments use the PostgREST
store, where the database performs the same update atomically.
"""

from __future__ import annotations

import dataclasses
import uuid
from datetime import datetime
from threading import Lock

from .model import ShareLink, ShareTokenConflict


class InMemoryShareLinkStore:
    """Dictionary-backed ShareLinkStore."""

    def __init__(self) -> None:
        self._links: dict[str, ShareLink] = {}
        self._by_token_hash: dict[str, str] = {}
        self._lock = Lock()

    async def insert(self, link: ShareLink) -> ShareLink:
        with self._lock:
            if link.token_hash in self._by_token_hash:
                raise ShareTokenConflict('token_hash already exists')
            stored = dataclasses.replace(
                link, id=link.id or f'shr_{uuid.uuid4().hex[:12]}',
            )
            self._links[stored.id] = stored
            self._by_token_hash[stored.token_hash] = stored.id
            return dataclasses.replace(stored)

    async def get_by_token_hash(self, token_hash: str) -> ShareLink | None:
        with self._lock:
            share_id = self._by_token_hash.get(token_hash)
            if share_id is None:
                return None
            return dataclasses.replace(self._links[share_id])

    async def get_by_id(self, share_id: str) -> ShareLink | None:
        with self._lock:
            link = self._links.get(share_id)
            return dataclasses.replace(link) if link else None

    async def consume_view(self, token_hash: str, now: datetime) -> ShareLink | None:
        with self._lock:
            share_id = self._by_token_hash.get(token_hash)
            if share_id is None:
                return None
            link = self._links[share_id]
            if link.is_revoked or link.is_expired(now) or link.is_exhausted():
                return None
            link.view_count += 1
            return dataclasses.replace(link)

    async def list_for_document(
        self,
        document_id: str,
        *,
        include_revoked: bool = False,
    ) -> list[ShareLink]:
        with self._lock:
            result = [
                dataclasses.replace(link)
                for link in self._links.values()
                if link.document_id == document_id
                and (include_revoked or not link.is_revoked)
            ]
        return sorted(result, key=lambda l: l.created_at)

    async def revoke(
        self, share_id: str, owner_id: str, now: datetime,
    ) -> ShareLink | None:
        with self._lock:
            link = self._links.get(share_id)
            if link is None or link.owner_id != owner_id:
                return None
            if link.revoked_at is None:
                link.revoked_at = now
            return dataclasses.replace(link)
