"""Repository interface shared by the Supabase and local backends.

Rows are plain dicts.  ``filters`` map a column to either a value
(equality) or a list/tuple/set of values (membership).  Settings live in
the ``experiment_settings`` collection as ``setting_key`` /
``setting_value`` string pairs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Row = dict[str, Any]
Filters = dict[str, Any]

SETTINGS_COLLECTION = "experiment_settings"


def matches(row: Row, filters: Filters | None) -> bool:
    """True if ``row`` satisfies every filter."""
    for column, expected in (filters or {}).items():
        value = row.get(column)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class Backend(ABC):
    """Async repository + settings store + serverless function invoker."""

    name: str = "backend"

    @abstractmethod
    async def select(
        self,
        collection: str,
        filters: Filters | None = None,
        columns: list[str] | None = None,
        order_by: str | None = None,
    ) -> list[Row]:
        ...

    @abstractmethod
    async def insert(self, collection: str, row: Row) -> Row:
        ...

    @abstractmethod
    async def update(self, collection: str, filters: Filters, values: Row) -> list[Row]:
        ...

    @abstractmethod
    async def delete(self, collection: str, filters: Filters) -> int:
        ...

    @abstractmethod
    async def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]:
        ...

    async def get_setting(self, key: str) -> str | None:
        rows = await self.select(SETTINGS_COLLECTION, {"setting_key": key})
        if not rows:
            return None
        value = rows[0].get("setting_value")
        return None if value is None else str(value)

    async def set_setting(self, key: str, value: str) -> None:
        updated = await self.update(
            SETTINGS_COLLECTION, {"setting_key": key}, {"setting_value": value}
        )
        if not updated:
            await self.insert(
                SETTINGS_COLLECTION, {"setting_key": key, "setting_value": value}
            )

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
