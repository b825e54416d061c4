"""Nutrition journal.

Application service over the persistent store: logs records the user
accepted, and summarizes them over a date range.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from macro_analysis.domain.analysis.models import (
    CompositeNutritionRecord,
    NutritionEntry,
    NutritionSummary,
    as_utc,
)
from macro_analysis.domain.analysis.ports import INutritionStore

logger = structlog.get_logger(__name__)


class NutritionJournal:
    """
    Persist and summarize analyzed records.

    The orchestrator never writes here: callers decide what to keep.

    Example:
        >>> journal = NutritionJournal(InMemoryNutritionStore())
        >>> entry = await journal.log(record)
        >>> summary = await journal.summary(start, end)
    """

    def __init__(self, store: INutritionStore):
        self._store = store

    async def log(
        self, record: CompositeNutritionRecord, logged_at: Optional[datetime] = None
    ) -> NutritionEntry:
        entry = NutritionEntry(
            record=record,
            logged_at=logged_at or datetime.now(timezone.utc),
        )
        await self._store.save(entry)
        logger.info(
            "Nutrition entry logged",
            entry_id=entry.id,
            description=record.description,
            calories=record.calories,
        )
        return entry

    async def history(self) -> List[NutritionEntry]:
        """All entries, newest first."""
        return await self._store.fetch_all()

    async def get(self, entry_id: str) -> Optional[NutritionEntry]:
        return await self._store.fetch_by_id(entry_id)

    async def delete(self, entry_id: str) -> bool:
        deleted = await self._store.delete_by_id(entry_id)
        if deleted:
            logger.info("Nutrition entry deleted", entry_id=entry_id)
        return deleted

    async def search(self, query: str) -> List[NutritionEntry]:
        return await self._store.search(query)

    async def summary(self, start: datetime, end: datetime) -> NutritionSummary:
        """
        Totals over entries logged in [start, end].

        Args:
            start: Range start (inclusive)
            end: Range end (inclusive)

        Naive datetimes are taken as UTC.

        Returns:
            NutritionSummary (zeros when no entry falls in range)

        Raises:
            StoreError: If start is after end
        """
        start, end = as_utc(start), as_utc(end)
        entries = await self._store.fetch_by_date_range(start, end)
        if not entries:
            return NutritionSummary(start=start, end=end)

        records = [entry.record for entry in entries]
        return NutritionSummary(
            start=start,
            end=end,
            total_calories=math.fsum(r.calories for r in records),
            total_protein=math.fsum(r.protein for r in records),
            total_carbs=math.fsum(r.carbs for r in records),
            total_fat=math.fsum(r.fat for r in records),
            total_fibre=math.fsum(self._fibre(r) for r in records),
            entry_count=len(records),
            average_confidence=math.fsum(r.confidence for r in records) / len(records),
        )

    @staticmethod
    def _fibre(record: CompositeNutritionRecord) -> float:
        # composite records carry fibre on their sub-items only
        if record.fibre is not None:
            return record.fibre
        if record.sub_items:
            return math.fsum(item.fibre or 0.0 for item in record.sub_items)
        return 0.0
