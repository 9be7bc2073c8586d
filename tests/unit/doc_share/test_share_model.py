"""Tests for the share-link domain model and token helpers.

Validates:
  - Tokens are URL-safe, long, and unique across many generations.
  - hash_token is a stable SHA-256 hex digest.
  - AccessLevel ceilings: download implies view, view never implies download.
  - Link state (expired / exhausted / revoked / active) is derived, not stored.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timedelta, timezone

import pytest

from doc_share.app.sharing.model import (
    AccessLevel,
    MalformedPasswordHash,
    Operation,
    PasswordIncorrect,
    PasswordRequired,
    ShareAccessDenied,
    ShareError,
    ShareLink,
    ShareLinkExhausted,
    generate_share_token,
    hash_token,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _link(**overrides) -> ShareLink:
    fields = dict(
        id='shr_1',
        token_hash=hash_token('t' * 43),
        document_id='doc_1',
        owner_id='user_1',
        access_level=AccessLevel.VIEW,
        expires_at=NOW + timedelta(days=7),
        created_at=NOW,
    )
    fields.update(overrides)
    return ShareLink(**fields)


class TestTokens:

    def test_token_is_url_safe_and_long(self):
        token = generate_share_token()
        assert re.fullmatch(r'[A-Za-z0-9_-]+', token)
        # 32 random bytes -> 43 base64url characters.
        assert len(token) >= 43

    def test_tokens_are_unique(self):
        tokens = {generate_share_token() for _ in range(2000)}
        assert len(tokens) == 2000

    def test_hash_is_sha256_hex(self):
        assert hash_token('abc') == hashlib.sha256(b'abc').hexdigest()
        assert hash_token('abc') == hash_token('abc')
        assert hash_token('abc') != hash_token('abd')


class TestAccessLevel:

    def test_view_permits_only_view(self):
        assert AccessLevel.VIEW.permits(Operation.VIEW)
        assert not AccessLevel.VIEW.permits(Operation.DOWNLOAD)

    def test_download_permits_both(self):
        assert AccessLevel.DOWNLOAD.permits(Operation.VIEW)
        assert AccessLevel.DOWNLOAD.permits(Operation.DOWNLOAD)

    def test_parse_from_string(self):
        assert AccessLevel('download') is AccessLevel.DOWNLOAD
        with pytest.raises(ValueError):
            AccessLevel('edit')


class TestLinkState:

    def test_fresh_link_is_active(self):
        link = _link(max_views=3)
        assert link.is_active(NOW)
        assert link.remaining_views == 3
        assert not link.requires_password

    def test_expiry_boundary_is_inclusive(self):
        link = _link(expires_at=NOW)
        assert not link.is_expired(NOW)
        assert link.is_expired(NOW + timedelta(microseconds=1))

    def test_exhausted_at_quota(self):
        link = _link(max_views=2, view_count=2)
        assert link.is_exhausted()
        assert link.remaining_views == 0
        assert not link.is_active(NOW)

    def test_unlimited_never_exhausted(self):
        link = _link(max_views=None, view_count=10_000)
        assert not link.is_exhausted()
        assert link.remaining_views is None

    def test_revoked_is_inactive(self):
        link = _link(revoked_at=NOW)
        assert link.is_revoked
        assert not link.is_active(NOW)

    def test_password_hash_marks_protected(self):
        assert _link(password_hash='$argon2id$...').requires_password


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(ShareAccessDenied, ShareError)
        assert issubclass(PasswordIncorrect, PasswordRequired)
        assert issubclass(MalformedPasswordHash, ShareError)
        assert not issubclass(MalformedPasswordHash, ShareAccessDenied)

    def test_codes(self):
        assert PasswordRequired.code == 'password_required'
        assert PasswordIncorrect.code == 'password_incorrect'
        assert ShareLinkExhausted('shr_1', 3).code == 'share_exhausted'
        assert MalformedPasswordHash.code == 'internal_error'
