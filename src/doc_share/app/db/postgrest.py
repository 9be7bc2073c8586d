"""Async PostgREST client for the Supabase project that owns documents.

The single point of HTTP interaction for the PostgREST-backed stores.
Requests use the service role key; row access is decided by this service,
not by RLS.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Mapping

import httpx

from .errors import PostgrestError

Filters = Mapping[str, "tuple[str, Any] | Any"]

_FRACTION = re.compile(r"\.(\d+)")


def _encode_filter_value(op: str, value: Any) -> str:
    if op == "is":
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    if op == "in":
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("in operator requires an iterable of values")
        items = [json.dumps(v) if isinstance(v, str) else str(v) for v in value]
        return f"({','.join(items)})"

    if value is None:
        raise ValueError(f"{op} does not support None; use op='is' with value=None")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a PostgREST ``timestamptz`` value.

    Postgres trims trailing zeros from fractional seconds and PostgREST may
    use a ``Z`` suffix; the fraction is padded to microseconds so any
    supported interpreter's ``fromisoformat`` accepts it.
    """
    if not value:
        return None
    normalized = value.replace("Z", "+00:00")
    normalized = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1,
    )
    return datetime.fromisoformat(normalized)


def filters_to_params(filters: Filters | None) -> dict[str, str]:
    """Encode ``{column: (op, value)}`` (or ``{column: value}`` for eq)."""
    params: dict[str, str] = {}
    for column, spec in (filters or {}).items():
        if isinstance(spec, tuple) and len(spec) == 2:
            op, value = spec
        else:
            op, value = "eq", spec
        params[column] = f"{op}.{_encode_filter_value(op, value)}"
    return params


class PostgrestClient:
    """Minimal async PostgREST client (service role)."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._base_url = f"{supabase_url.rstrip('/')}/rest/v1"
        self._service_role_key = service_role_key
        self._timeout_seconds = float(timeout_seconds)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    @property
    def base_rest_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, *, returning: bool = False) -> dict[str, str]:
        # Never log these headers.
        headers = {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        returning: bool = False,
    ) -> Any:
        resp = await self._client.request(
            method,
            f"{self._base_url}/{path}",
            params=params,
            json=json_body,
            headers=self._headers(returning=returning),
            timeout=self._timeout_seconds,
        )
        if resp.status_code >= 400:
            raise PostgrestError.from_response(resp)
        if not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _expect_rows(payload: Any, operation: str) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            raise PostgrestError(
                status_code=500, message=f"expected list response from {operation}",
            )
        return payload

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = filters_to_params(filters)
        params["select"] = columns
        if limit is not None:
            params["limit"] = str(int(limit))
        if order:
            params["order"] = order
        payload = await self._request("GET", table, params=params)
        return self._expect_rows(payload, "select")

    async def insert(self, table: str, row: Mapping[str, Any]) -> list[dict[str, Any]]:
        payload = await self._request("POST", table, json_body=dict(row), returning=True)
        return self._expect_rows(payload, "insert")

    async def update(
        self,
        table: str,
        filters: Filters,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("update requires at least one filter")
        payload = await self._request(
            "PATCH",
            table,
            params=filters_to_params(filters),
            json_body=dict(data),
            returning=True,
        )
        return self._expect_rows(payload, "update")

    async def rpc(self, function_name: str, params: Mapping[str, Any] | None = None) -> Any:
        """Call a Postgres function exposed at ``/rpc/<function_name>``."""
        return await self._request(
            "POST", f"rpc/{function_name}", json_body=dict(params or {}),
        )
