"""Auth guard middleware for owner endpoints.

Verifies ``Authorization: Bearer <token>`` and stores the owner identity on
``request.state.auth_identity``.  Recipient endpoints under ``/shared/`` are
anonymous (the share token is the credential) and are exempt,
along with health, metrics and API docs.
"""

from __future__ import annotations

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .token_verify import (
    AuthIdentity,
    TokenVerificationError,
    TokenVerifier,
    extract_bearer_token,
)

DEFAULT_EXEMPT_PREFIXES: tuple[str, ...] = (
    '/shared/',
    '/health',
    '/metrics',
    '/docs',
    '/openapi.json',
)


def _unauthorized(code: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={'error': 'unauthorized', 'code': code, 'detail': detail},
        headers={'WWW-Authenticate': 'Bearer'},
    )


class AuthGuardMiddleware(BaseHTTPMiddleware):
    """Enforce owner authentication on every non-exempt path.

    Args:
        app: The ASGI application.
        token_verifier: Verifier for owner bearer tokens.
        exempt_prefixes: Path prefixes that skip auth.
    """

    def __init__(
        self,
        app,
        token_verifier: TokenVerifier,
        exempt_prefixes: tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES,
    ) -> None:
        super().__init__(app)
        self._verifier = token_verifier
        self._exempt_prefixes = exempt_prefixes

    def _is_exempt(self, path: str) -> bool:
        return any(path == p or path.startswith(p) for p in self._exempt_prefixes)

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.auth_identity = None

        if request.method == 'OPTIONS' or self._is_exempt(request.url.path):
            return await call_next(request)

        token = extract_bearer_token(request)
        if not token:
            return _unauthorized('no_credentials', 'Authentication required')

        try:
            request.state.auth_identity = self._verifier.verify(token)
        except TokenVerificationError as exc:
            return _unauthorized(exc.code, exc.detail)

        return await call_next(request)


def get_auth_identity(request: Request) -> AuthIdentity:
    """FastAPI dependency returning the authenticated owner.

    Raises:
        HTTPException: 401 if no identity is attached to the request.
    """
    identity: AuthIdentity | None = getattr(request.state, 'auth_identity', None)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={
                'error': 'unauthorized',
                'code': 'no_credentials',
                'detail': 'Authentication required',
            },
            headers={'WWW-Authenticate': 'Bearer'},
        )
    return identity
