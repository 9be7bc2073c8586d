"""Owner bearer-token verification.

Owners authenticate with an access token issued by the surrounding
product's identity provider (Supabase Auth).  This module only verifies
those tokens; it never issues them.

Verification:
  1. Resolve the signing key (JWKS for RS256, static secret for HS256).
  2. Verify signature, audience and expiry with PyJWT.
  3. Extract the owner identity (``sub``, optional ``email``).

Configuration:
  - ``SUPABASE_URL``: enables JWKS discovery (RS256).
  - ``SUPABASE_JWT_SECRET``: HS256 fallback for local development.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import jwt
from jwt import PyJWKClient, PyJWKClientError
from starlette.requests import Request

# ── Constants ─────────────────────────────────────────────────────────

DEFAULT_AUDIENCE = 'authenticated'
JWKS_CACHE_TTL_SECONDS = 300
BEARER_PREFIX = 'Bearer '

# ── Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AuthIdentity:
    """Verified owner identity extracted from a valid JWT."""

    user_id: str
    email: str = ''
    role: str = 'authenticated'
    raw_claims: dict[str, Any] = field(default_factory=dict)


class TokenVerificationError(Exception):
    """Raised when token verification fails."""

    def __init__(self, code: str, detail: str = '') -> None:
        self.code = code
        self.detail = detail
        super().__init__(f'{code}: {detail}' if detail else code)


class KeyProvider(Protocol):
    """Resolves the signing key for an unverified token."""

    def get_signing_key(self, token: str) -> Any: ...


class JWKSKeyProvider:
    """Fetches signing keys from a JWKS endpoint; PyJWKClient caches them."""

    def __init__(self, jwks_url: str, cache_ttl: int = JWKS_CACHE_TTL_SECONDS) -> None:
        self._client = PyJWKClient(jwks_url, cache_jwk_set=True, lifespan=cache_ttl)

    def get_signing_key(self, token: str) -> Any:
        try:
            return self._client.get_signing_key_from_jwt(token).key
        except PyJWKClientError as exc:
            raise TokenVerificationError('jwks_fetch_error', str(exc)) from exc


class StaticKeyProvider:
    """Static HS256 secret (local development and tests)."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def get_signing_key(self, token: str) -> str:
        return self._secret


# ── Token Verifier ───────────────────────────────────────────────────


class TokenVerifier:
    """Verifies owner JWTs and extracts identity claims."""

    def __init__(
        self,
        key_provider: KeyProvider,
        audience: str = DEFAULT_AUDIENCE,
        algorithms: list[str] | None = None,
    ) -> None:
        self._key_provider = key_provider
        self._audience = audience
        self._algorithms = algorithms or ['RS256']

    def verify(self, token: str) -> AuthIdentity:
        """Verify a JWT and return the owner identity.

        Raises:
            TokenVerificationError: On any verification failure.
        """
        if not token or not token.strip():
            raise TokenVerificationError('empty_token')

        key = self._key_provider.get_signing_key(token)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                options={'require': ['sub', 'exp', 'aud']},
            )
        except jwt.ExpiredSignatureError:
            raise TokenVerificationError('token_expired')
        except jwt.InvalidAudienceError:
            raise TokenVerificationError('invalid_audience', f'expected {self._audience}')
        except jwt.InvalidTokenError as exc:
            raise TokenVerificationError('invalid_token', str(exc))

        user_id = claims.get('sub')
        if not user_id:
            raise TokenVerificationError('missing_sub_claim')

        email = claims.get('email') or ''
        return AuthIdentity(
            user_id=user_id,
            email=email.lower(),
            role=claims.get('role', 'authenticated'),
            raw_claims=claims,
        )


def extract_bearer_token(request: Request) -> str | None:
    """Return the Bearer token from the Authorization header, if any."""
    auth_header = request.headers.get('authorization', '')
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip()
    return None


def create_token_verifier(
    supabase_url: str | None = None,
    jwt_secret: str | None = None,
    audience: str = DEFAULT_AUDIENCE,
) -> TokenVerifier:
    """Build a verifier: JWKS when ``supabase_url`` is set, else HS256.

    Raises:
        ValueError: If neither URL nor secret is provided.
    """
    if supabase_url:
        jwks_url = f'{supabase_url.rstrip("/")}/auth/v1/.well-known/jwks.json'
        return TokenVerifier(JWKSKeyProvider(jwks_url), audience, ['RS256'])

    if jwt_secret:
        return TokenVerifier(StaticKeyProvider(jwt_secret), audience, ['HS256'])

    raise ValueError(
        'Either supabase_url (for JWKS) or jwt_secret (for HS256) is required'
    )
