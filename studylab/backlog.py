"""Researcher backlog: error and feature items on a kanban board.

A lane is one ``(item_type, status)`` column; ``display_order`` is dense
``0..n-1`` within a lane.  Status values are validated against the item
type before anything is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from studylab.backend.base import Backend
from studylab.errors import InvalidBacklogStatus, NotFoundError

logger = logging.getLogger(__name__)

ITEMS = "researcher_backlog_items"
COMMENTS = "researcher_backlog_comments"
LINKS = "researcher_backlog_links"

ALLOWED_STATUSES: dict[str, tuple[str, ...]] = {
    "error": ("open", "in_progress", "resolved"),
    "feature": ("idea", "planned", "in_progress", "shipped"),
}
TERMINAL_STATUSES = frozenset({"resolved", "shipped"})
PRIORITIES = ("low", "medium", "high", "critical")


def allowed_statuses(item_type: str) -> tuple[str, ...]:
    return ALLOWED_STATUSES.get(item_type, ())


def validate_status(item_type: str, status: str) -> None:
    allowed = allowed_statuses(item_type)
    if status not in allowed:
        raise InvalidBacklogStatus(item_type, status, allowed)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BacklogItem:
    id: str
    item_type: str
    title: str
    status: str
    priority: str = "medium"
    details: str = ""
    display_order: int = 0
    linked_response_id: str | None = None
    created_by: str = ""
    completed_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    comments: list[dict[str, Any]] = field(default_factory=list)
    links: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> BacklogItem:
        return cls(
            id=row["id"],
            item_type=row["item_type"],
            title=row.get("title", ""),
            status=row["status"],
            priority=row.get("priority") or "medium",
            details=row.get("details") or "",
            display_order=int(row.get("display_order") or 0),
            linked_response_id=row.get("linked_response_id"),
            created_by=row.get("created_by") or "",
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "details": self.details,
            "display_order": self.display_order,
            "linked_response_id": self.linked_response_id,
            "created_by": self.created_by,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "comments": self.comments,
            "links": self.links,
        }


class BacklogService:
    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    async def _next_order(self, item_type: str, status: str) -> int:
        lane = await self._backend.select(ITEMS, {"item_type": item_type, "status": status})
        return max((int(r.get("display_order") or 0) for r in lane), default=-1) + 1

    async def get(self, item_id: str) -> BacklogItem:
        rows = await self._backend.select(ITEMS, {"id": item_id})
        if not rows:
            raise NotFoundError(f"Backlog item {item_id!r} not found")
        item = BacklogItem.from_row(rows[0])
        item.comments = await self._backend.select(COMMENTS, {"item_id": item_id}, order_by="created_at")
        item.links = await self._backend.select(LINKS, {"item_id": item_id}, order_by="created_at")
        return item

    async def create(
        self,
        item_type: str,
        title: str,
        status: str | None = None,
        priority: str = "medium",
        details: str = "",
        linked_response_id: str | None = None,
        created_by: str = "",
    ) -> BacklogItem:
        if status is None:
            # new items start in the type's first lane
            status = next(iter(allowed_statuses(item_type)), "")
        validate_status(item_type, status)
        if priority not in PRIORITIES:
            raise ValueError(f"Unknown priority {priority!r}")
        row = await self._backend.insert(ITEMS, {
            "item_type": item_type,
            "title": title.strip(),
            "details": details,
            "status": status,
            "priority": priority,
            "display_order": await self._next_order(item_type, status),
            "linked_response_id": linked_response_id,
            "created_by": created_by,
            "completed_at": _now() if status in TERMINAL_STATUSES else None,
            "updated_at": _now(),
        })
        logger.info("[backlog] created %s %s (%s)", item_type, row["id"], status)
        return BacklogItem.from_row(row)

    async def _lane(self, item_type: str, status: str) -> list[dict[str, Any]]:
        return await self._backend.select(
            ITEMS, {"item_type": item_type, "status": status}, order_by="display_order"
        )

    async def _write_order(self, ordered_ids: list[str], current: dict[str, int]) -> None:
        for index, item_id in enumerate(ordered_ids):
            if current.get(item_id) != index:
                await self._backend.update(ITEMS, {"id": item_id}, {"display_order": index})

    async def _densify(self, item_type: str, status: str) -> None:
        lane = await self._lane(item_type, status)
        await self._write_order(
            [r["id"] for r in lane],
            {r["id"]: int(r.get("display_order") or 0) for r in lane},
        )

    async def update_status(self, item_id: str, status: str) -> BacklogItem:
        """Move an item to another lane, appending it at the end.

        The lane it left is renumbered so its order stays dense.
        """
        item = await self.get(item_id)
        validate_status(item.item_type, status)
        if status == item.status:
            return item
        values = {
            "status": status,
            "display_order": await self._next_order(item.item_type, status),
            "completed_at": _now() if status in TERMINAL_STATUSES else None,
            "updated_at": _now(),
        }
        rows = await self._backend.update(ITEMS, {"id": item_id}, values)
        await self._densify(item.item_type, item.status)
        return BacklogItem.from_row(rows[0])

    async def reorder(self, lane_ids: list[str]) -> None:
        """Persist ``lane_ids`` order as ``display_order`` 0..n-1.

        Every id must belong to the same lane.  Lane items missing from
        ``lane_ids`` keep their relative order after the listed ones.
        """
        if not lane_ids:
            return
        if len(set(lane_ids)) != len(lane_ids):
            raise ValueError("Duplicate ids in reorder request")
        rows = await self._backend.select(ITEMS, {"id": list(lane_ids)})
        found = {r["id"]: r for r in rows}
        unknown = [i for i in lane_ids if i not in found]
        if unknown:
            raise NotFoundError(f"Backlog items not found: {', '.join(unknown)}")
        lanes = {(r["item_type"], r["status"]) for r in rows}
        if len(lanes) > 1:
            names = ", ".join(f"{t}/{s}" for t, s in sorted(lanes))
            raise ValueError(f"Cannot reorder items from different lanes ({names})")

        item_type, status = lanes.pop()
        lane = await self._lane(item_type, status)
        rest = [r["id"] for r in lane if r["id"] not in found]
        await self._write_order(
            list(lane_ids) + rest,
            {r["id"]: int(r.get("display_order") or 0) for r in lane},
        )

    async def list_lane(self, item_type: str, status: str) -> list[BacklogItem]:
        validate_status(item_type, status)
        rows = await self._lane(item_type, status)
        return [BacklogItem.from_row(r) for r in rows]

    async def add_comment(self, item_id: str, body: str, author: str = "") -> dict[str, Any]:
        await self.get(item_id)
        if not body.strip():
            raise ValueError("Comment body is empty")
        return await self._backend.insert(COMMENTS, {
            "item_id": item_id, "body": body.strip(), "author": author,
        })

    async def add_link(self, item_id: str, url: str, label: str = "") -> dict[str, Any]:
        await self.get(item_id)
        return await self._backend.insert(LINKS, {
            "item_id": item_id, "url": url.strip(), "label": label.strip(),
        })
