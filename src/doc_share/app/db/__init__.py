"""PostgREST-backed stores for deployed environments."""

from .audit_emitter import PostgrestShareAuditEmitter
from .document_repo import PostgrestDocumentLookup
from .errors import (
    PostgrestAuthError,
    PostgrestConflictError,
    PostgrestError,
    PostgrestNotFoundError,
)
from .postgrest import PostgrestClient
from .share_repo import PostgrestShareLinkStore

__all__ = [
    "PostgrestAuthError",
    "PostgrestClient",
    "PostgrestConflictError",
    "PostgrestDocumentLookup",
    "PostgrestError",
    "PostgrestNotFoundError",
    "PostgrestShareAuditEmitter",
    "PostgrestShareLinkStore",
]
