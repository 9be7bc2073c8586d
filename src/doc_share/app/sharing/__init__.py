"""Document share links: issuance, access decisions and HTTP routers."""

from .access import create_share_access_router
from .gatekeeper import AccessGatekeeper, AccessGrant
from .issuer import IssuedShareLink, ShareLinkIssuer
from .lockout import LockoutConfig, PasswordAttemptLimiter
from .model import (
    AccessLevel,
    Operation,
    ShareAccessDenied,
    ShareError,
    ShareLink,
    generate_share_token,
    hash_token,
)
from .passwords import PasswordGuard
from .routes import create_share_router
from .store import InMemoryShareLinkStore

__all__ = [
    'AccessGatekeeper',
    'AccessGrant',
    'AccessLevel',
    'InMemoryShareLinkStore',
    'IssuedShareLink',
    'LockoutConfig',
    'Operation',
    'PasswordAttemptLimiter',
    'PasswordGuard',
    'ShareAccessDenied',
    'ShareError',
    'ShareLink',
    'ShareLinkIssuer',
    'create_share_access_router',
    'create_share_router',
    'generate_share_token',
    'hash_token',
]
