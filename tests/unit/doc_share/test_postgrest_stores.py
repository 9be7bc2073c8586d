"""Unit tests for the PostgREST-backed share, document and audit stores.

Uses httpx.MockTransport to verify PostgREST queries without a real Supabase.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from doc_share.app.db.audit_emitter import (
    PostgrestShareAuditEmitter,
    _sanitize_payload,
    event_to_row,
)
from doc_share.app.db.document_repo import PostgrestDocumentLookup, row_to_document
from doc_share.app.db.errors import PostgrestError
from doc_share.app.db.postgrest import PostgrestClient, parse_timestamp
from doc_share.app.db.share_repo import (
    CONSUME_VIEW_FUNCTION,
    PostgrestShareLinkStore,
    link_to_row,
    row_to_link,
)
from doc_share.app.documents import DocumentRecord, DocumentUnavailable
from doc_share.app.sharing.audit import SHARE_DENIED, ShareAuditEvent
from doc_share.app.sharing.model import AccessLevel, ShareLink, ShareTokenConflict

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
SHARE_ID = "6f1c2d4e-0000-4000-8000-000000000001"


def _pg(handler) -> PostgrestClient:
    return PostgrestClient(
        supabase_url="https://test.supabase.co",
        service_role_key="svc-key",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": SHARE_ID,
        "token_hash": "a" * 64,
        "document_id": "doc_1",
        "owner_id": "user_owner",
        "access_level": "view",
        "expires_at": "2026-03-08T12:00:00Z",
        "max_views": 3,
        "view_count": 0,
        "password_hash": None,
        "recipient_email_hint": None,
        "revoked_at": None,
        "created_at": "2026-03-01T12:00:00+00:00",
    }
    row.update(overrides)
    return row


def _link(**overrides: Any) -> ShareLink:
    params = dict(
        id="",
        token_hash="a" * 64,
        document_id="doc_1",
        owner_id="user_owner",
        access_level=AccessLevel.VIEW,
        expires_at=NOW + timedelta(days=7),
        max_views=3,
        created_at=NOW,
    )
    params.update(overrides)
    return ShareLink(**params)


# ── Row mapping ──────────────────────────────────────────────────────


def test_row_to_link_parses_z_suffix_and_enums():
    link = row_to_link(_row(revoked_at="2026-03-02T00:00:00Z", view_count=None))
    assert link.expires_at == NOW + timedelta(days=7)
    assert link.revoked_at == datetime(2026, 3, 2, tzinfo=timezone.utc)
    assert link.access_level is AccessLevel.VIEW
    assert link.view_count == 0


def test_row_to_link_accepts_trimmed_fractional_seconds():
    link = row_to_link(_row(
        expires_at="2026-03-08T12:00:00.12345+00:00",
        created_at="2026-03-01T12:00:00.5+00:00",
    ))
    assert link.expires_at == datetime(2026, 3, 8, 12, 0, 0, 123450, tzinfo=timezone.utc)
    assert link.created_at.microsecond == 500000


@pytest.mark.parametrize("value, expected", [
    (None, None),
    ("", None),
    ("2026-03-01T00:00:00Z", datetime(2026, 3, 1, tzinfo=timezone.utc)),
    ("2026-03-01T00:00:00.1Z", datetime(2026, 3, 1, 0, 0, 0, 100000, tzinfo=timezone.utc)),
    ("2026-03-01T00:00:00.123456+00:00", datetime(2026, 3, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)),
    ("2026-03-01T02:00:00.0012+02:00", datetime(2026, 3, 1, 0, 0, 0, 1200, tzinfo=timezone.utc)),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


def test_link_to_row_omits_db_defaults():
    row = link_to_row(_link(password_hash="$argon2id$v=19$..."))
    assert "id" not in row
    assert "view_count" not in row
    assert row["access_level"] == "view"
    assert row["expires_at"] == "2026-03-08T12:00:00+00:00"
    assert row["password_hash"].startswith("$argon2id$")


# ── Share link store ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_insert_posts_hash_and_returns_stored_link():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[_row()])

    store = PostgrestShareLinkStore(_pg(handler))
    stored = await store.insert(_link())

    assert seen["path"] == "/rest/v1/document_share_links"
    assert seen["body"]["token_hash"] == "a" * 64
    assert "token" not in seen["body"]
    assert stored.id == SHARE_ID


@pytest.mark.asyncio
async def test_insert_unique_violation_is_token_conflict():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"code": "23505", "message": "duplicate key"})

    store = PostgrestShareLinkStore(_pg(handler))
    with pytest.raises(ShareTokenConflict):
        await store.insert(_link())


@pytest.mark.asyncio
async def test_get_by_token_hash_filters_on_hash():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = request.url.params
        return httpx.Response(200, json=[])

    store = PostgrestShareLinkStore(_pg(handler))
    assert await store.get_by_token_hash("b" * 64) is None
    assert seen["params"]["token_hash"] == "eq." + "b" * 64
    assert seen["params"]["limit"] == "1"


@pytest.mark.asyncio
async def test_get_by_id_non_uuid_is_missing():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={
            "code": "22P02",
            "message": 'invalid input syntax for type uuid: "shr_missing"',
        })

    store = PostgrestShareLinkStore(_pg(handler))
    assert await store.get_by_id("shr_missing") is None


@pytest.mark.asyncio
async def test_get_by_id_other_errors_propagate():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "db down"})

    store = PostgrestShareLinkStore(_pg(handler))
    with pytest.raises(PostgrestError):
        await store.get_by_id(SHARE_ID)


@pytest.mark.asyncio
async def test_consume_view_calls_rpc():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[_row(view_count=1)])

    store = PostgrestShareLinkStore(_pg(handler))
    link = await store.consume_view("a" * 64, NOW)

    assert seen["path"] == f"/rest/v1/rpc/{CONSUME_VIEW_FUNCTION}"
    assert seen["body"] == {
        "p_token_hash": "a" * 64,
        "p_now": "2026-03-01T12:00:00+00:00",
    }
    assert link.view_count == 1


@pytest.mark.asyncio
async def test_consume_view_no_row_means_refused():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    store = PostgrestShareLinkStore(_pg(handler))
    assert await store.consume_view("a" * 64, NOW) is None


@pytest.mark.asyncio
async def test_list_for_document_hides_revoked_by_default():
    seen: list[httpx.QueryParams] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params)
        return httpx.Response(200, json=[_row()])

    store = PostgrestShareLinkStore(_pg(handler))
    links = await store.list_for_document("doc_1")
    await store.list_for_document("doc_1", include_revoked=True)

    assert [link.id for link in links] == [SHARE_ID]
    assert seen[0]["revoked_at"] == "is.null"
    assert seen[0]["order"] == "created_at.asc"
    assert "revoked_at" not in seen[1]


@pytest.mark.asyncio
async def test_revoke_patches_unrevoked_row():
    calls: list[tuple[str, httpx.QueryParams, Any]] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        calls.append((request.method, request.url.params, body))
        if request.method == "GET":
            return httpx.Response(200, json=[_row()])
        return httpx.Response(200, json=[_row(revoked_at=NOW.isoformat())])

    store = PostgrestShareLinkStore(_pg(handler))
    revoked = await store.revoke(SHARE_ID, "user_owner", NOW)

    assert revoked.revoked_at == NOW
    method, params, body = calls[-1]
    assert method == "PATCH"
    assert params["id"] == f"eq.{SHARE_ID}"
    assert params["owner_id"] == "eq.user_owner"
    assert params["revoked_at"] == "is.null"
    assert body == {"revoked_at": NOW.isoformat()}


@pytest.mark.asyncio
async def test_revoke_other_owner_returns_none_without_patch():
    methods: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200, json=[_row()])

    store = PostgrestShareLinkStore(_pg(handler))
    assert await store.revoke(SHARE_ID, "user_other", NOW) is None
    assert methods == ["GET"]


@pytest.mark.asyncio
async def test_revoke_already_revoked_keeps_first_timestamp():
    methods: list[str] = []
    first = "2026-02-28T09:00:00+00:00"

    async def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200, json=[_row(revoked_at=first)])

    store = PostgrestShareLinkStore(_pg(handler))
    revoked = await store.revoke(SHARE_ID, "user_owner", NOW)

    assert revoked.revoked_at == datetime.fromisoformat(first)
    assert methods == ["GET"]


# ── Document lookup ──────────────────────────────────────────────────


def test_row_to_document_reads_owner_name():
    doc = row_to_document({
        "id": "doc_1",
        "user_id": "user_owner",
        "display_name": None,
        "original_name": "plan.pdf",
        "filename": "abc.pdf",
        "uploaded_at": "2026-01-01T00:00:00Z",
        "users": {"username": "Jordan"},
    })
    assert doc.display_name == "plan.pdf"
    assert doc.owner_name == "Jordan"
    assert doc.type == "other"
    assert doc.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_get_owned_document_filters_on_owner(tmp_path):
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = request.url.params
        return httpx.Response(200, json=[])

    lookup = PostgrestDocumentLookup(_pg(handler), tmp_path)
    assert await lookup.get_owned_document("doc_1", "user_owner") is None
    assert seen["path"] == "/rest/v1/documents"
    assert seen["params"]["id"] == "eq.doc_1"
    assert seen["params"]["user_id"] == "eq.user_owner"
    assert "users(username)" in seen["params"]["select"]


@pytest.mark.asyncio
async def test_iter_bytes_streams_in_chunks(tmp_path):
    (tmp_path / "abc.pdf").write_bytes(b"0123456789")

    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    lookup = PostgrestDocumentLookup(_pg(handler), tmp_path, chunk_size=4)
    doc = DocumentRecord(id="doc_1", owner_id="u", display_name="D", filename="abc.pdf")

    chunks = [chunk async for chunk in lookup.iter_bytes(doc)]
    assert chunks == [b"0123", b"4567", b"89"]


@pytest.mark.asyncio
@pytest.mark.parametrize("filename", [None, "../outside.pdf", "missing.pdf"])
async def test_iter_bytes_unavailable(tmp_path, filename):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (tmp_path / "outside.pdf").write_bytes(b"secret")

    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    lookup = PostgrestDocumentLookup(_pg(handler), uploads)
    doc = DocumentRecord(id="doc_1", owner_id="u", display_name="D", filename=filename)

    with pytest.raises(DocumentUnavailable):
        await anext(lookup.iter_bytes(doc))


# ── Audit emitter ────────────────────────────────────────────────────


def test_sanitize_payload_redacts_nested_secrets():
    cleaned = _sanitize_payload({
        "detail": "ok",
        "Password": "abc123",
        "nested": {"token": "t0k3n", "keep": 1},
    })
    assert cleaned == {
        "detail": "ok",
        "Password": "[REDACTED]",
        "nested": {"token": "[REDACTED]", "keep": 1},
    }


def test_event_to_row_shape():
    event = ShareAuditEvent(
        event_type=SHARE_DENIED,
        share_id=SHARE_ID,
        document_id="doc_1",
        token_prefix="abcdefgh...",
        operation="download",
        detail="access_level_denied",
        timestamp=NOW,
    )
    row = event_to_row(event)
    assert row["actor_user_id"] is None
    assert row["created_at"] == NOW.isoformat()
    assert row["payload"]["detail"] == "access_level_denied"
    assert row["payload"]["token_prefix"] == "abcdefgh..."


@pytest.mark.asyncio
async def test_emit_inserts_row():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": 1}])

    emitter = PostgrestShareAuditEmitter(_pg(handler))
    await emitter.emit(ShareAuditEvent(event_type=SHARE_DENIED, detail="share_not_found"))

    assert seen["path"] == "/rest/v1/share_audit_events"
    assert seen["body"]["event_type"] == SHARE_DENIED


@pytest.mark.asyncio
async def test_emit_swallows_db_errors():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "db down"})

    emitter = PostgrestShareAuditEmitter(_pg(handler))
    await emitter.emit(ShareAuditEvent(event_type=SHARE_DENIED))
