"""Owner-facing share-link create/list/revoke API endpoints.

  POST   /api/v1/shares                           → create share link
  GET    /api/v1/documents/{document_id}/shares   → list a document's links
  DELETE /api/v1/shares/{share_id}                → revoke share link

Auth contract:
  - All endpoints require an authenticated owner (AuthIdentity).
  - Owners may only share, list and revoke documents they can reference.
    Anything else receives 403 ``document_not_owned`` (or 404 on revoke).

Token security:
  - Plaintext token is returned exactly once in the create response.
  - Only the SHA-256 hash is persisted; plaintext never stored.

Default expiry:
  - 7 days (``expiresInDays``), minimum 1, maximum ``max_expiry_days``.

This module provides:
  ``create_share_router`` -- FastAPI router factory with injected deps.
"""

from __future__ import annotations

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from doc_share.app.security.auth_guard import get_auth_identity
from doc_share.app.security.token_verify import AuthIdentity

from .issuer import IssuedShareLink, ShareLinkIssuer
from .model import (
    DEFAULT_EXPIRY_DAYS,
    AccessLevel,
    DocumentNotOwned,
    InvalidShareParameters,
    ShareLink,
)


# ── Request schemas ──────────────────────────────────────────────────


class CreateShareRequest(BaseModel):
    """Request body for share link creation.

    Accepts camelCase (as sent by the web client) or snake_case keys.
    Integers are strict so ``"7"`` or ``true`` are rejected rather than coerced.
    """

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    document_id: str = Field(..., alias='documentId', min_length=1)
    access_level: AccessLevel = Field(default=AccessLevel.VIEW, alias='accessLevel')
    expires_in_days: int = Field(
        default=DEFAULT_EXPIRY_DAYS, alias='expiresInDays', strict=True,
    )
    max_views: int | None = Field(default=None, alias='maxViews', strict=True)
    password: str | None = None
    recipient_email_hint: str | None = Field(default=None, alias='recipientEmailHint')


# ── Serializers ──────────────────────────────────────────────────────


def _issued_to_dict(issued: IssuedShareLink) -> dict:
    link = issued.link
    return {
        'shareId': link.id,
        'shareUrl': issued.share_url,
        'token': issued.token,
        'documentId': link.document_id,
        'accessLevel': link.access_level.value,
        'expiresAt': link.expires_at.isoformat(),
        'maxViews': link.max_views,
        'passwordProtected': link.requires_password,
    }


def _link_to_dict(link: ShareLink, now: datetime) -> dict:
    return {
        'shareId': link.id,
        'documentId': link.document_id,
        'accessLevel': link.access_level.value,
        'expiresAt': link.expires_at.isoformat(),
        'maxViews': link.max_views,
        'viewCount': link.view_count,
        'passwordProtected': link.requires_password,
        'recipientEmailHint': link.recipient_email_hint,
        'createdAt': link.created_at.isoformat(),
        'revokedAt': link.revoked_at.isoformat() if link.revoked_at else None,
        'isActive': link.is_active(now),
    }


def _invalid(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={'error': 'invalid_parameters', 'detail': detail},
    )


def _not_owned(document_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={
            'error': 'document_not_owned',
            'detail': f'Document {document_id} is not available to this user.',
        },
    )


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = '.'.join(str(p) for p in err.get('loc', ()))
        parts.append(f'{loc}: {err.get("msg")}' if loc else err.get('msg', ''))
    return '; '.join(parts)


# ── Route factory ────────────────────────────────────────────────────


def create_share_router(issuer: ShareLinkIssuer) -> APIRouter:
    """Create share-link management router with injected dependencies.

    Args:
        issuer: Share link issuer (validation, ownership, persistence).

    Returns:
        FastAPI router with share lifecycle routes.
    """
    router = APIRouter(tags=['share-links'])

    @router.post('/api/v1/shares', status_code=201)
    async def create_share(
        request: Request,
        identity: AuthIdentity = Depends(get_auth_identity),
    ):
        """Create a share link for a document the caller owns.

        Returns 201 with share metadata and the plaintext token (once only).
        """
        # Body is parsed by hand so every malformed request is a 400
        # ``invalid_parameters`` rather than FastAPI's default 422.
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _invalid('Request body must be valid JSON.')
        if not isinstance(payload, dict):
            return _invalid('Request body must be a JSON object.')

        try:
            body = CreateShareRequest.model_validate(payload)
        except ValidationError as exc:
            return _invalid(_format_validation_error(exc))

        try:
            issued = await issuer.create(
                document_id=body.document_id,
                owner_id=identity.user_id,
                access_level=body.access_level,
                expires_in_days=body.expires_in_days,
                max_views=body.max_views,
                password=body.password,
                recipient_email_hint=body.recipient_email_hint,
            )
        except InvalidShareParameters as exc:
            return _invalid(str(exc))
        except DocumentNotOwned:
            return _not_owned(body.document_id)

        return JSONResponse(status_code=201, content=_issued_to_dict(issued))

    @router.get('/api/v1/documents/{document_id}/shares')
    async def list_shares(
        document_id: str,
        include_revoked: bool = Query(default=False, alias='includeRevoked'),
        identity: AuthIdentity = Depends(get_auth_identity),
    ):
        """List share links for one of the caller's documents."""
        try:
            links = await issuer.list_for_document(
                document_id, identity.user_id, include_revoked=include_revoked,
            )
        except DocumentNotOwned:
            return _not_owned(document_id)

        now = issuer.now()
        return {'shares': [_link_to_dict(link, now) for link in links]}

    @router.delete('/api/v1/shares/{share_id}')
    async def revoke_share(
        share_id: str,
        identity: AuthIdentity = Depends(get_auth_identity),
    ):
        """Revoke a share link. Idempotent.

        Returns the revoked share metadata, or 404 if not found.
        """
        link = await issuer.revoke(share_id, identity.user_id)
        if link is None:
            return JSONResponse(
                status_code=404,
                content={
                    'error': 'share_not_found',
                    'detail': f'Share {share_id} not found.',
                },
            )

        return {
            'shareId': link.id,
            'documentId': link.document_id,
            'revokedAt': link.revoked_at.isoformat() if link.revoked_at else None,
        }

    return router
