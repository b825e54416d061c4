"""In-memory nutrition store implementation.

Provides an in-memory implementation of the INutritionStore port for
development and tests. Entries are frozen models, so no copies are needed.
"""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional

import structlog

from macro_analysis.domain.analysis.models import NutritionEntry, as_utc
from macro_analysis.domain.shared.errors import StoreError

logger = structlog.get_logger(__name__)


class InMemoryNutritionStore:
    """
    In-memory implementation of INutritionStore port.

    Thread safety: guarded by an internal lock
    Persistence: Data lost on process restart (in-memory only)

    Example:
        >>> store = InMemoryNutritionStore()
        >>> await store.save(NutritionEntry(record=record))
        >>> entries = await store.fetch_all()
    """

    def __init__(self) -> None:
        """Initialize store with empty storage."""
        self._storage: Dict[str, NutritionEntry] = {}
        self._lock = Lock()

    async def save(self, entry: NutritionEntry) -> None:
        """
        Save or replace an entry.

        Args:
            entry: Entry to persist
        """
        with self._lock:
            self._storage[entry.id] = entry
        logger.debug("Entry saved", entry_id=entry.id)

    async def fetch_all(self) -> List[NutritionEntry]:
        """
        Get all entries.

        Returns:
            Entries ordered by logged_at descending (newest first)
        """
        with self._lock:
            entries = list(self._storage.values())
        entries.sort(key=lambda e: e.logged_at, reverse=True)
        return entries

    async def fetch_by_id(self, entry_id: str) -> Optional[NutritionEntry]:
        with self._lock:
            return self._storage.get(entry_id)

    async def delete_by_id(self, entry_id: str) -> bool:
        """
        Delete an entry.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            removed = self._storage.pop(entry_id, None)
        return removed is not None

    async def search(self, query: str) -> List[NutritionEntry]:
        """
        Case-insensitive search over record descriptions.

        Args:
            query: Search term

        Returns:
            Matching entries, newest first

        Raises:
            StoreError: If query is blank
        """
        term = query.strip().casefold()
        if not term:
            raise StoreError("Search query cannot be empty")

        return [
            entry
            for entry in await self.fetch_all()
            if term in entry.record.description.casefold()
        ]

    async def fetch_by_date_range(
        self, start: datetime, end: datetime
    ) -> List[NutritionEntry]:
        """
        Get entries logged within a date range.

        Args:
            start: Start of range (inclusive)
            end: End of range (inclusive)

        Naive datetimes are taken as UTC.

        Returns:
            Entries within range, newest first

        Raises:
            StoreError: If start is after end
        """
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise StoreError(f"Invalid date range: {start.isoformat()} > {end.isoformat()}")

        return [
            entry for entry in await self.fetch_all() if start <= entry.logged_at <= end
        ]

    async def count(self) -> int:
        with self._lock:
            return len(self._storage)

    async def clear(self) -> None:
        """Clear all entries (for testing)."""
        with self._lock:
            self._storage.clear()
