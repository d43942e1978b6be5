"""Persistence of formality calculations in ``formality_calculations``."""

from __future__ import annotations

import logging

from studylab.backend.base import Backend
from studylab.errors import NotFoundError
from studylab.formality.models import FormalityCalculation

logger = logging.getLogger(__name__)

COLLECTION = "formality_calculations"


class FormalityStore:
    """Insert-and-read repository; stored calculations are never mutated."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    async def save(self, calc: FormalityCalculation) -> FormalityCalculation:
        row = calc.to_row()
        row.pop("id", None)
        row.pop("created_at", None)
        stored = await self._backend.insert(COLLECTION, row)
        logger.info("[formality] saved calculation %s (F=%d)", stored.get("id"), calc.f_score)
        return FormalityCalculation.from_row(stored)

    async def get(self, calc_id: str) -> FormalityCalculation:
        rows = await self._backend.select(COLLECTION, {"id": calc_id})
        if not rows:
            raise NotFoundError(f"Formality calculation {calc_id!r} not found")
        return FormalityCalculation.from_row(rows[0])

    async def list(self, call_id: str | None = None) -> list[FormalityCalculation]:
        filters = {"linked_call_id": call_id} if call_id else None
        rows = await self._backend.select(COLLECTION, filters, order_by="created_at")
        return [FormalityCalculation.from_row(r) for r in rows]
