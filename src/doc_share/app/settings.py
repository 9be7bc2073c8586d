"""Document share service configuration settings.

ShareSettings is the single configuration object accepted by create_app().
It is intentionally a plain dataclass (not env-coupled) so tests can inject
config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .sharing.model import MAX_EXPIRY_DAYS

VALID_ENVIRONMENTS = frozenset({"local", "dev", "staging", "production"})

# Env var -> field name.
_STR_FIELDS = {
    "ENVIRONMENT": "environment",
    "PUBLIC_BASE_URL": "public_base_url",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_SERVICE_ROLE_KEY": "supabase_service_role_key",
    "SUPABASE_JWT_SECRET": "supabase_jwt_secret",
    "UPLOADS_DIR": "uploads_dir",
}
_INT_FIELDS = {
    "SHARE_MAX_EXPIRY_DAYS": "max_expiry_days",
    "SHARE_PASSWORD_MAX_ATTEMPTS": "password_max_attempts",
    "SHARE_ARGON2_TIME_COST": "argon2_time_cost",
    "SHARE_ARGON2_MEMORY_COST": "argon2_memory_cost",
    "SHARE_ARGON2_PARALLELISM": "argon2_parallelism",
}
_FLOAT_FIELDS = {
    "SHARE_PASSWORD_WINDOW_SECONDS": "password_window_seconds",
}


def _env_int(env: dict[str, str], key: str) -> int:
    raw = env[key].strip()
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _env_float(env: dict[str, str], key: str) -> float:
    raw = env[key].strip()
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class ShareSettings:
    """Configuration for the document share FastAPI application.

    All fields have sensible defaults for local development.
    Non-local environments must supply supabase_url and
    supabase_service_role_key.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    public_base_url: str = "http://localhost:8000"
    """Origin used to build share URLs handed to owners."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    """Supabase project URL (e.g. https://xyz.supabase.co)."""

    supabase_service_role_key: str = ""
    """Service-role key for PostgREST calls. Never log this."""

    supabase_jwt_secret: str = ""
    """HS256 secret for owner JWTs when JWKS is unavailable."""

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = (
        "http://localhost:5173",
        "http://localhost:3000",
    )

    # ── Storage ────────────────────────────────────────────────────
    uploads_dir: str = "uploads"
    """Directory holding uploaded document files."""

    # ── Share policy ───────────────────────────────────────────────
    max_expiry_days: int = MAX_EXPIRY_DAYS
    password_max_attempts: int = 5
    password_window_seconds: float = 900.0

    # ── Argon2id cost parameters ───────────────────────────────────
    argon2_time_cost: int = 2
    argon2_memory_cost: int = 65536
    """KiB."""
    argon2_parallelism: int = 1

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.environment not in VALID_ENVIRONMENTS:
            errors.append(
                f"environment must be one of {sorted(VALID_ENVIRONMENTS)}, "
                f"got {self.environment!r}"
            )
        if not self.public_base_url.startswith(("http://", "https://")):
            errors.append("public_base_url must be an http(s) URL")
        if not 1 <= self.max_expiry_days <= 365:
            errors.append("max_expiry_days must be between 1 and 365")
        if self.password_max_attempts < 1:
            errors.append("password_max_attempts must be >= 1")
        if self.password_window_seconds <= 0:
            errors.append("password_window_seconds must be > 0")
        if self.argon2_time_cost < 1 or self.argon2_parallelism < 1:
            errors.append("argon2 time_cost and parallelism must be >= 1")
        if self.argon2_memory_cost < 8 * self.argon2_parallelism:
            errors.append("argon2_memory_cost must be >= 8 * parallelism")
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
            if not self.public_base_url.startswith("https://"):
                errors.append(f"{self.environment}: public_base_url must use https")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        kwargs: dict[str, object] = {}
        for key, attr in _STR_FIELDS.items():
            if env.get(key):
                kwargs[attr] = env[key]
        for key, attr in _INT_FIELDS.items():
            if env.get(key, "").strip():
                kwargs[attr] = _env_int(env, key)
        for key, attr in _FLOAT_FIELDS.items():
            if env.get(key, "").strip():
                kwargs[attr] = _env_float(env, key)

        cors_raw = env.get("CORS_ORIGINS", "")
        if cors_raw:
            kwargs["cors_origins"] = tuple(
                o.strip() for o in cors_raw.split(",") if o.strip()
            )

        return cls(**kwargs)
