"""Supabase backend: PostgREST tables and Edge Functions over HTTP."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from studylab import settings
from studylab.backend.base import Backend, Filters, Row
from studylab.errors import BackendError

logger = logging.getLogger(__name__)

# PostgREST caps responses; page through with Range headers.
PAGE_SIZE = 1000


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_params(filters: Filters | None) -> dict[str, str]:
    """Translate ``{column: value | [values]}`` into PostgREST query params."""
    params: dict[str, str] = {}
    for column, expected in (filters or {}).items():
        if isinstance(expected, (list, tuple, set, frozenset)):
            quoted = ",".join(f'"{_encode_value(v)}"' for v in expected)
            params[column] = f"in.({quoted})"
        elif expected is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{_encode_value(expected)}"
    return params


def _json(response: httpx.Response) -> Any:
    """Decode a response body, treating a non-JSON body as a backend failure."""
    try:
        return response.json()
    except ValueError as e:
        request = response.request
        raise BackendError(
            f"{request.method} {request.url.path} returned a non-JSON body: {response.text[:200]!r}",
            status_code=response.status_code,
        ) from e


class SupabaseBackend(Backend):
    name = "supabase"

    def __init__(
        self,
        url: str,
        service_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT)
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"{self._url}{path}",
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}") from e
        if response.status_code >= 400:
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def select(
        self,
        collection: str,
        filters: Filters | None = None,
        columns: list[str] | None = None,
        order_by: str | None = None,
    ) -> list[Row]:
        params = build_params(filters)
        params["select"] = ",".join(columns) if columns else "*"
        if order_by:
            params["order"] = f"{order_by}.asc"

        rows: list[Row] = []
        start = 0
        while True:
            response = await self._request(
                "GET",
                f"/rest/v1/{collection}",
                params=params,
                headers={"Range": f"{start}-{start + PAGE_SIZE - 1}"},
            )
            page = _json(response)
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            start += PAGE_SIZE

    async def insert(self, collection: str, row: Row) -> Row:
        response = await self._request(
            "POST",
            f"/rest/v1/{collection}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        created = _json(response)
        return created[0] if isinstance(created, list) else created

    async def update(self, collection: str, filters: Filters, values: Row) -> list[Row]:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{collection}",
            params=build_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return _json(response)

    async def delete(self, collection: str, filters: Filters) -> int:
        response = await self._request(
            "DELETE",
            f"/rest/v1/{collection}",
            params=build_params(filters),
            headers={"Prefer": "return=representation"},
        )
        return len(_json(response))

    async def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]:
        logger.debug("[backend] invoke %s %s", function_name, body)
        response = await self._request("POST", f"/functions/v1/{function_name}", json=body)
        data = _json(response)
        if isinstance(data, dict) and data.get("error"):
            raise BackendError(f"{function_name}: {data['error']}")
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()
