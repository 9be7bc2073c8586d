"""Owner authentication for share management endpoints."""

from .auth_guard import AuthGuardMiddleware, get_auth_identity
from .token_verify import (
    AuthIdentity,
    StaticKeyProvider,
    TokenVerificationError,
    TokenVerifier,
    create_token_verifier,
)

__all__ = [
    'AuthGuardMiddleware',
    'AuthIdentity',
    'StaticKeyProvider',
    'TokenVerificationError',
    'TokenVerifier',
    'create_token_verifier',
    'get_auth_identity',
]
