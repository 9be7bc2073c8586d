"""Document share FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application. It wires middleware (request-ID, logging, metrics, CORS, auth
guard), the owner and recipient routers, and injects store/collaborator
implementations via dependency injection.

Usage:
    # Local development (in-memory stores)
    from doc_share.app import create_app, ShareSettings
    app = create_app(ShareSettings())

    # Non-local (PostgREST stores built from settings)
    app = create_app(ShareSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, share_store=store, document_lookup=docs, ...)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from doc_share.observability.logging import configure_logging, get_logger
from doc_share.observability.metrics import metrics_text
from doc_share.observability.middleware import (
    MetricsMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
)

from .documents import InMemoryDocumentLookup
from .protocols import DocumentLookup, ShareAuditEmitter, ShareLinkStore
from .security.auth_guard import AuthGuardMiddleware
from .security.token_verify import StaticKeyProvider, TokenVerifier, create_token_verifier
from .settings import ShareSettings
from .sharing.access import create_share_access_router
from .sharing.audit import InMemoryShareAuditEmitter
from .sharing.gatekeeper import AccessGatekeeper
from .sharing.issuer import ShareLinkIssuer
from .sharing.lockout import LockoutConfig, PasswordAttemptLimiter
from .sharing.model import Clock, utcnow
from .sharing.passwords import PasswordGuard
from .sharing.routes import create_share_router
from .sharing.store import InMemoryShareLinkStore

logger = get_logger(__name__)

# Signs owner JWTs in local mode when no Supabase auth is configured.
LOCAL_DEV_JWT_SECRET = "doc-share-local-development-secret"


@dataclass(frozen=True)
class AppDependencies:
    """Container for all injected store/collaborator instances.

    Stored on ``app.state.deps`` so tests and route handlers can reach them.
    """

    share_store: ShareLinkStore
    document_lookup: DocumentLookup
    audit_emitter: ShareAuditEmitter
    token_verifier: TokenVerifier
    password_guard: PasswordGuard
    limiter: PasswordAttemptLimiter
    issuer: ShareLinkIssuer
    gatekeeper: AccessGatekeeper


def _build_token_verifier(settings: ShareSettings) -> TokenVerifier:
    if settings.supabase_url or settings.supabase_jwt_secret:
        return create_token_verifier(
            supabase_url=settings.supabase_url or None,
            jwt_secret=settings.supabase_jwt_secret or None,
        )
    logger.warning("auth_local_dev_secret", detail="owner JWTs use the local dev secret")
    return TokenVerifier(StaticKeyProvider(LOCAL_DEV_JWT_SECRET), algorithms=["HS256"])


def _build_postgrest_stores(settings: ShareSettings):
    from .db import (
        PostgrestClient,
        PostgrestDocumentLookup,
        PostgrestShareAuditEmitter,
        PostgrestShareLinkStore,
    )

    client = PostgrestClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    return (
        client,
        PostgrestShareLinkStore(client),
        PostgrestDocumentLookup(client, settings.uploads_dir),
        PostgrestShareAuditEmitter(client),
    )


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: ShareSettings | None = None,
    *,
    share_store: ShareLinkStore | None = None,
    document_lookup: DocumentLookup | None = None,
    audit_emitter: ShareAuditEmitter | None = None,
    token_verifier: TokenVerifier | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create a configured document share FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        share_store..token_verifier: Collaborator overrides. When None,
            local mode uses in-memory implementations and non-local mode
            builds PostgREST-backed ones from settings.
        clock: Time source shared by issuer and gatekeeper.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = ShareSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Share settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    configure_logging()
    clock = clock or utcnow

    postgrest_client = None
    if settings.is_local:
        share_store = share_store or InMemoryShareLinkStore()
        document_lookup = document_lookup or InMemoryDocumentLookup()
        audit_emitter = audit_emitter or InMemoryShareAuditEmitter()
    elif share_store is None or document_lookup is None or audit_emitter is None:
        postgrest_client, pg_store, pg_docs, pg_audit = _build_postgrest_stores(settings)
        share_store = share_store or pg_store
        document_lookup = document_lookup or pg_docs
        audit_emitter = audit_emitter or pg_audit

    token_verifier = token_verifier or _build_token_verifier(settings)
    password_guard = PasswordGuard(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
    limiter = PasswordAttemptLimiter(LockoutConfig(
        max_attempts=settings.password_max_attempts,
        window_seconds=settings.password_window_seconds,
    ))
    issuer = ShareLinkIssuer(
        share_store,
        document_lookup,
        password_guard,
        public_base_url=settings.public_base_url,
        audit_emitter=audit_emitter,
        max_expiry_days=settings.max_expiry_days,
        clock=clock,
    )
    gatekeeper = AccessGatekeeper(
        share_store,
        document_lookup,
        password_guard,
        audit_emitter=audit_emitter,
        limiter=limiter,
        clock=clock,
    )
    deps = AppDependencies(
        share_store=share_store,
        document_lookup=document_lookup,
        audit_emitter=audit_emitter,
        token_verifier=token_verifier,
        password_guard=password_guard,
        limiter=limiter,
        issuer=issuer,
        gatekeeper=gatekeeper,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("doc_share_startup", environment=settings.environment)
        yield
        if postgrest_client is not None:
            await postgrest_client.aclose()
        logger.info("doc_share_shutdown")

    app = FastAPI(
        title="Document Share",
        description="Time-limited, access-scoped document share links",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (applied in reverse order) ──────────────
    # Order of execution: RequestId -> Logging -> Metrics -> CORS -> AuthGuard

    app.add_middleware(AuthGuardMiddleware, token_verifier=token_verifier)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Share-Password"],
        expose_headers=["X-Request-ID", "Retry-After", "Content-Disposition"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    @app.get("/metrics")
    async def metrics():
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    app.include_router(create_share_router(issuer))
    app.include_router(create_share_access_router(gatekeeper, document_lookup))

    return app


# For uvicorn, use --factory flag:
#   uvicorn doc_share.app.main:create_app --factory
# This avoids executing create_app() at import time.
