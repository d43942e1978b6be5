"""In-memory backend, the fallback when Supabase is not configured.

Provides the same interface as ``SupabaseBackend`` but keeps every
collection in process memory, optionally seeded from a JSON file of the
form ``{"collections": {name: [rows...]}, "settings": {key: value}}``.
Serverless functions are stood in for by handlers registered with
``register_function``; this lets the researcher tooling and the tests
run with zero infrastructure.
"""

from __future__ import annotations

import copy
import inspect
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from studylab.backend.base import SETTINGS_COLLECTION, Backend, Filters, Row, matches
from studylab.errors import BackendError

logger = logging.getLogger(__name__)

FunctionHandler = Callable[[dict[str, Any]], "dict[str, Any] | Awaitable[dict[str, Any]]"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalBackend(Backend):
    name = "local"

    def __init__(
        self,
        collections: dict[str, list[Row]] | None = None,
        settings: dict[str, str] | None = None,
    ) -> None:
        self._data: dict[str, list[Row]] = {
            name: [dict(r) for r in rows] for name, rows in (collections or {}).items()
        }
        for key, value in (settings or {}).items():
            self._data.setdefault(SETTINGS_COLLECTION, []).append(
                {"setting_key": key, "setting_value": str(value)}
            )
        self._functions: dict[str, FunctionHandler] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @classmethod
    def from_file(cls, path: Path) -> LocalBackend:
        if not path.exists():
            logger.info("[backend] %s not found, starting empty", path)
            return cls()
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        return cls(raw.get("collections"), raw.get("settings"))

    def register_function(self, name: str, handler: FunctionHandler) -> None:
        self._functions[name] = handler

    async def select(
        self,
        collection: str,
        filters: Filters | None = None,
        columns: list[str] | None = None,
        order_by: str | None = None,
    ) -> list[Row]:
        rows = [r for r in self._data.get(collection, []) if matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)))
        if columns:
            rows = [{c: r.get(c) for c in columns} for r in rows]
        return copy.deepcopy(rows)

    async def insert(self, collection: str, row: Row) -> Row:
        stored = {"id": str(uuid.uuid4()), "created_at": _now(), **row}
        self._data.setdefault(collection, []).append(stored)
        return copy.deepcopy(stored)

    async def update(self, collection: str, filters: Filters, values: Row) -> list[Row]:
        updated = []
        for row in self._data.get(collection, []):
            if matches(row, filters):
                row.update(values)
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, collection: str, filters: Filters) -> int:
        rows = self._data.get(collection, [])
        kept = [r for r in rows if not matches(r, filters)]
        self._data[collection] = kept
        return len(rows) - len(kept)

    async def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((function_name, dict(body)))
        handler = self._functions.get(function_name)
        if handler is None:
            raise BackendError(f"Function {function_name!r} is not available locally")
        try:
            result = handler(body)
            if inspect.isawaitable(result):
                result = await result
        except BackendError:
            raise
        except Exception as e:
            logger.warning("[backend] local function %s failed: %r", function_name, e)
            raise BackendError(f"{function_name} failed: {e!r}") from e
        if not isinstance(result, dict):
            raise BackendError(f"{function_name} returned {type(result).__name__}, expected an object")
        return result
