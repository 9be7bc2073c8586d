"""PostgREST error hierarchy.

Errors carry only the status and the PostgREST error body fields, never the
``httpx.Response`` itself, so request headers (and the service key in them)
cannot leak through exception reprs or logs.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

# Postgres SQLSTATE for unique_violation.
UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True, slots=True)
class PostgrestError(Exception):
    """Base error for PostgREST requests."""

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def __str__(self) -> str:
        bits = [f"{type(self).__name__}(status={self.status_code})", self.message]
        if self.code:
            bits.append(f"code={self.code}")
        if self.details:
            bits.append(f"details={self.details}")
        return " ".join(bits)

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION

    @classmethod
    def from_response(cls, resp: httpx.Response) -> PostgrestError:
        """Build the subclass matching ``resp.status_code``."""
        message = resp.text
        code = details = hint = None
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("message") or message
            code = payload.get("code")
            details = payload.get("details")
            hint = payload.get("hint")

        err_cls: type[PostgrestError]
        if resp.status_code in (401, 403):
            err_cls = PostgrestAuthError
        elif resp.status_code == 404:
            err_cls = PostgrestNotFoundError
        elif resp.status_code == 409 or code == UNIQUE_VIOLATION:
            err_cls = PostgrestConflictError
        else:
            err_cls = PostgrestError
        return err_cls(
            status_code=resp.status_code,
            message=message,
            code=code,
            details=details,
            hint=hint,
        )


class PostgrestAuthError(PostgrestError):
    """401/403 (bad service key, RLS denial)."""


class PostgrestNotFoundError(PostgrestError):
    """404 (missing table, view or RPC function)."""


class PostgrestConflictError(PostgrestError):
    """409 conflicts (unique violations)."""
