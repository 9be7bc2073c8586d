"""Recipient-facing share access endpoints.

  GET /shared/{token}            → view shared document
  GET /shared/{token}/download   → download shared document bytes

Both endpoints are anonymous: the token in the path is the credential.
The share password, when the link has one, is read from the
``X-Share-Password`` header, falling back to the ``password`` query
parameter for plain browser links.

Denials:
  - Unknown, malformed or revoked token → 404 share_not_found.
  - Password missing or wrong           → 401 with ``requiresPassword``.
  - Expired or out of views             → 403 share_expired / share_exhausted.
  - Download on a view-only link        → 403 access_level_denied.
  - Too many wrong passwords            → 429 too_many_attempts + Retry-After.

Every allowed request consumes one view, downloads included.

This module provides:
  ``create_share_access_router`` -- FastAPI router factory.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING, AsyncIterator
from urllib.parse import quote

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse, StreamingResponse

from doc_share.observability.logging import get_logger

from ..documents import DocumentUnavailable
from .gatekeeper import AccessGatekeeper, AccessGrant
from .model import (
    AccessLevelDenied,
    MalformedPasswordHash,
    Operation,
    PasswordIncorrect,
    PasswordLocked,
    PasswordRequired,
    ShareAccessDenied,
    ShareLinkExhausted,
    ShareLinkExpired,
    ShareLinkNotFound,
)

if TYPE_CHECKING:
    from ..protocols import DocumentLookup

logger = get_logger(__name__)

PASSWORD_HEADER = 'X-Share-Password'

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._ -]')


# ── Response helpers ─────────────────────────────────────────────────


def denial_response(exc: ShareAccessDenied) -> JSONResponse:
    """Map a gatekeeper denial onto its HTTP response."""
    if isinstance(exc, ShareLinkNotFound):
        return JSONResponse(
            status_code=404,
            content={'error': exc.code, 'message': 'Share link not found'},
        )
    if isinstance(exc, PasswordRequired):
        message = 'Incorrect password' if isinstance(exc, PasswordIncorrect) else 'Password required'
        return JSONResponse(
            status_code=401,
            content={'error': exc.code, 'requiresPassword': True, 'message': message},
        )
    if isinstance(exc, PasswordLocked):
        retry_after = max(1, math.ceil(exc.retry_after))
        return JSONResponse(
            status_code=429,
            content={
                'error': 'too_many_attempts',
                'message': 'Too many password attempts',
                'retryAfter': retry_after,
            },
            headers={'Retry-After': str(retry_after)},
        )
    if isinstance(exc, ShareLinkExpired):
        return JSONResponse(
            status_code=403,
            content={'error': exc.code, 'message': 'expired'},
        )
    if isinstance(exc, ShareLinkExhausted):
        return JSONResponse(
            status_code=403,
            content={'error': exc.code, 'message': 'view limit reached'},
        )
    if isinstance(exc, AccessLevelDenied):
        return JSONResponse(
            status_code=403,
            content={'error': exc.code, 'message': 'Download not permitted for this link'},
        )
    return JSONResponse(
        status_code=403,
        content={'error': exc.code, 'message': 'Access denied'},
    )


def _internal_error() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={'error': 'internal_error', 'message': 'Unable to verify share password'},
    )


def content_disposition(filename: str) -> str:
    """Build an attachment header with an ASCII fallback and RFC 5987 name."""
    fallback = _UNSAFE_FILENAME_CHARS.sub('_', filename).strip() or 'download'
    encoded = quote(filename, safe='')
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{encoded}'


def _grant_to_dict(grant: AccessGrant) -> dict:
    link, document = grant.link, grant.document
    return {
        'document': document.to_public_dict(),
        'accessLevel': link.access_level.value,
        'canDownload': link.access_level.permits(Operation.DOWNLOAD),
        'sharedBy': document.owner_name or link.owner_id,
        'viewCount': link.view_count,
        'maxViews': link.max_views,
        'expiresAt': link.expires_at.isoformat(),
    }


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    if first:
        yield first
    async for chunk in rest:
        yield chunk


# ── Route factory ────────────────────────────────────────────────────


def create_share_access_router(
    gatekeeper: AccessGatekeeper,
    documents: DocumentLookup,
) -> APIRouter:
    """Create share access router for token-based document access.

    Args:
        gatekeeper: Access decision procedure.
        documents: Document lookup used to stream downloads.

    Returns:
        FastAPI router with view and download endpoints.
    """
    router = APIRouter(tags=['share-access'])

    async def _authorize(
        token: str,
        operation: Operation,
        password: str | None,
    ) -> AccessGrant | JSONResponse:
        try:
            return await gatekeeper.authorize(token, operation, password)
        except ShareAccessDenied as exc:
            return denial_response(exc)
        except MalformedPasswordHash:
            logger.exception('share_password_hash_malformed', operation=operation.value)
            return _internal_error()

    @router.get('/shared/{token}')
    async def view_shared(
        token: str,
        password: str | None = None,
        x_share_password: str | None = Header(default=None, alias=PASSWORD_HEADER),
    ):
        """View a shared document's metadata and inline content.

        Consumes one view on success.
        """
        result = await _authorize(token, Operation.VIEW, x_share_password or password)
        if isinstance(result, JSONResponse):
            return result
        return _grant_to_dict(result)

    @router.get('/shared/{token}/download')
    async def download_shared(
        token: str,
        password: str | None = None,
        x_share_password: str | None = Header(default=None, alias=PASSWORD_HEADER),
    ):
        """Download a shared document. Requires a ``download`` link.

        Consumes one view on success.  The first chunk is read before the
        response starts so a missing blob still yields a clean 404.
        """
        result = await _authorize(token, Operation.DOWNLOAD, x_share_password or password)
        if isinstance(result, JSONResponse):
            return result

        document = result.document
        chunks = documents.iter_bytes(document)
        try:
            first = await anext(chunks, b'')
        except DocumentUnavailable:
            logger.warning(
                'shared_document_unavailable',
                share_id=result.link.id,
                document_id=document.id,
            )
            return JSONResponse(
                status_code=404,
                content={
                    'error': 'document_unavailable',
                    'message': 'Document content is unavailable',
                },
            )

        return StreamingResponse(
            _prepend(first, chunks),
            media_type='application/octet-stream',
            headers={
                'Content-Disposition': content_disposition(document.download_name),
                'Cache-Control': 'no-store',
            },
        )

    return router
