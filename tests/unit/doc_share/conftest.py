"""Shared fixtures for doc_share unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from doc_share.app.documents import DocumentRecord, InMemoryDocumentLookup
from doc_share.app.main import create_app
from doc_share.app.settings import ShareSettings
from doc_share.app.sharing.audit import InMemoryShareAuditEmitter
from doc_share.app.sharing.gatekeeper import AccessGatekeeper
from doc_share.app.sharing.issuer import ShareLinkIssuer
from doc_share.app.sharing.lockout import LockoutConfig, PasswordAttemptLimiter
from doc_share.app.sharing.store import InMemoryShareLinkStore

OWNER_ID = 'user_owner'
OTHER_USER_ID = 'user_other'
DOC_ID = 'doc_iep_2026'
DOC_BYTES = b'%PDF-1.7 fake iep document body'
BASE_URL = 'https://share.example.test'
TEST_JWT_SECRET = 'test-jwt-secret-for-unit-tests-only'


def make_owner_token(user_id: str = OWNER_ID, secret: str = TEST_JWT_SECRET) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {
            'sub': user_id,
            'email': f'{user_id}@example.test',
            'aud': 'authenticated',
            'role': 'authenticated',
            'iat': now,
            'exp': now + timedelta(hours=1),
        },
        secret,
        algorithm='HS256',
    )


@pytest.fixture
def document() -> DocumentRecord:
    return DocumentRecord(
        id=DOC_ID,
        owner_id=OWNER_ID,
        display_name='Spring IEP',
        type='iep',
        description='Annual IEP for review',
        content='Goals: reading fluency',
        original_name='spring-iep.pdf',
        filename='a1b2c3.pdf',
        owner_name='Jordan',
        created_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def documents(document) -> InMemoryDocumentLookup:
    lookup = InMemoryDocumentLookup()
    lookup.add(document, DOC_BYTES)
    return lookup


@pytest.fixture
def store() -> InMemoryShareLinkStore:
    return InMemoryShareLinkStore()


@pytest.fixture
def audit() -> InMemoryShareAuditEmitter:
    return InMemoryShareAuditEmitter()


@pytest.fixture
def limiter() -> PasswordAttemptLimiter:
    return PasswordAttemptLimiter(LockoutConfig(max_attempts=3, window_seconds=60.0))


@pytest.fixture
def issuer(store, documents, password_guard, audit, clock) -> ShareLinkIssuer:
    return ShareLinkIssuer(
        store,
        documents,
        password_guard,
        public_base_url=BASE_URL,
        audit_emitter=audit,
        clock=clock,
    )


@pytest.fixture
def gatekeeper(store, documents, password_guard, audit, limiter, clock) -> AccessGatekeeper:
    return AccessGatekeeper(
        store,
        documents,
        password_guard,
        audit_emitter=audit,
        limiter=limiter,
        clock=clock,
    )


@pytest.fixture
def auth_headers():
    """Build ``Authorization`` headers for an owner signed with the test secret."""
    def _headers(user_id: str = OWNER_ID) -> dict[str, str]:
        return {'Authorization': f'Bearer {make_owner_token(user_id)}'}
    return _headers


@pytest.fixture
def settings():
    return ShareSettings(
        public_base_url=BASE_URL,
        supabase_jwt_secret=TEST_JWT_SECRET,
        password_max_attempts=3,
        password_window_seconds=60.0,
        argon2_time_cost=1,
        argon2_memory_cost=8,
    )


@pytest.fixture
def app(settings, store, documents, audit, clock):
    return create_app(
        settings,
        share_store=store,
        document_lookup=documents,
        audit_emitter=audit,
        clock=clock,
    )
