"""
Unit tests for NutritionJournal.
"""

from datetime import datetime, timedelta, timezone

import pytest

from macro_analysis.application.analysis.journal import NutritionJournal
from macro_analysis.domain.analysis.aggregator import ResultAggregator
from macro_analysis.domain.analysis.models import (
    CompositeNutritionRecord,
    NutritionItem,
    NutritionResult,
)
from macro_analysis.domain.shared.errors import StoreError
from macro_analysis.infrastructure.persistence.in_memory_store import InMemoryNutritionStore

MONDAY = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _record(description: str, calories: float, fibre=None, confidence=0.8) -> CompositeNutritionRecord:
    return CompositeNutritionRecord(
        description=description,
        calories=calories,
        protein=10,
        carbs=20,
        fat=5,
        confidence=confidence,
        fibre=fibre,
    )


@pytest.fixture
def journal() -> NutritionJournal:
    return NutritionJournal(InMemoryNutritionStore())


class TestLogging:
    """Test log, get, history and delete."""

    async def test_log_and_get(self, journal: NutritionJournal) -> None:
        entry = await journal.log(_record("porridge", 300), logged_at=MONDAY)

        fetched = await journal.get(entry.id)

        assert fetched == entry
        assert fetched.logged_at == MONDAY

    async def test_log_defaults_to_now(self, journal: NutritionJournal) -> None:
        entry = await journal.log(_record("porridge", 300))

        assert entry.logged_at.tzinfo is not None

    async def test_history_newest_first(self, journal: NutritionJournal) -> None:
        await journal.log(_record("breakfast", 300), logged_at=MONDAY)
        await journal.log(_record("dinner", 700), logged_at=MONDAY + timedelta(hours=10))

        history = await journal.history()

        assert [e.record.description for e in history] == ["dinner", "breakfast"]

    async def test_naive_logged_at_taken_as_utc(self, journal: NutritionJournal) -> None:
        naive = await journal.log(_record("breakfast", 300), logged_at=datetime(2026, 3, 2, 8, 0))
        await journal.log(_record("lunch", 600), logged_at=MONDAY + timedelta(hours=4))

        history = await journal.history()

        assert naive.logged_at == MONDAY
        assert naive.logged_at.tzinfo is not None
        assert [e.record.description for e in history] == ["lunch", "breakfast"]

    async def test_delete(self, journal: NutritionJournal) -> None:
        entry = await journal.log(_record("snack", 150))

        assert await journal.delete(entry.id) is True
        assert await journal.delete(entry.id) is False
        assert await journal.get(entry.id) is None

    async def test_search(self, journal: NutritionJournal) -> None:
        await journal.log(_record("Beef Eye Fillet", 250))
        await journal.log(_record("banana", 105))

        results = await journal.search("beef")

        assert [e.record.description for e in results] == ["Beef Eye Fillet"]


class TestSummary:
    """Test range totals."""

    async def test_totals(self, journal: NutritionJournal) -> None:
        await journal.log(_record("breakfast", 300, fibre=4, confidence=0.9), logged_at=MONDAY)
        await journal.log(
            _record("lunch", 600, fibre=None, confidence=0.5),
            logged_at=MONDAY + timedelta(hours=4),
        )
        await journal.log(_record("next day", 999), logged_at=MONDAY + timedelta(days=1))

        summary = await journal.summary(MONDAY, MONDAY + timedelta(hours=23))

        assert summary.entry_count == 2
        assert summary.total_calories == 900
        assert summary.total_protein == 20
        assert summary.total_carbs == 40
        assert summary.total_fat == 10
        assert summary.total_fibre == 4
        assert summary.average_confidence == pytest.approx(0.7)

    async def test_composite_fibre_from_sub_items(self, journal: NutritionJournal) -> None:
        items = [
            NutritionItem(name="oats", calories=150, protein=5, carbs=27, fat=3, fibre=4),
            NutritionItem(name="banana", calories=105, protein=1.3, carbs=27, fat=0.4, fibre=3.1),
        ]
        record = ResultAggregator().aggregate(
            NutritionResult(items=items, confidence=0.8, source="ai")
        )
        await journal.log(record, logged_at=MONDAY)

        summary = await journal.summary(MONDAY, MONDAY)

        assert summary.total_fibre == pytest.approx(7.1)

    async def test_empty_range(self, journal: NutritionJournal) -> None:
        summary = await journal.summary(MONDAY, MONDAY + timedelta(days=1))

        assert summary.entry_count == 0
        assert summary.total_calories == 0
        assert summary.average_confidence == 0

    async def test_inverted_range_rejected(self, journal: NutritionJournal) -> None:
        with pytest.raises(StoreError):
            await journal.summary(MONDAY, MONDAY - timedelta(days=1))

    async def test_naive_range(self, journal: NutritionJournal) -> None:
        await journal.log(_record("breakfast", 300), logged_at=MONDAY)

        summary = await journal.summary(datetime(2026, 3, 2), datetime(2026, 3, 2, 23, 59))

        assert summary.entry_count == 1
        assert summary.start == datetime(2026, 3, 2, tzinfo=timezone.utc)
