"""
Unit tests for FoodDatabaseAnalyzer.
"""

import pytest

from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    FoodInput,
    InputKind,
    ResultSource,
)
from macro_analysis.domain.shared.errors import NotFoundError
from macro_analysis.infrastructure.analyzers.food_catalog import FoodRecord
from macro_analysis.infrastructure.analyzers.food_database import FoodDatabaseAnalyzer


@pytest.fixture
def regional() -> FoodDatabaseAnalyzer:
    return FoodDatabaseAnalyzer.regional()


@pytest.fixture
def local() -> FoodDatabaseAnalyzer:
    return FoodDatabaseAnalyzer.local()


class TestConstruction:
    """Test factory classmethods."""

    def test_slots(self, regional: FoodDatabaseAnalyzer, local: FoodDatabaseAnalyzer) -> None:
        assert regional.analyzer_type == AnalyzerType.REGIONAL
        assert local.analyzer_type == AnalyzerType.DATABASE
        assert len(regional) > 0
        assert len(local) > 0

    def test_images_unsupported(self, regional: FoodDatabaseAnalyzer) -> None:
        assert not regional.supports(InputKind.IMAGE)
        assert regional.supports(InputKind.TEXT)
        assert regional.supports(InputKind.SPEECH)
        assert regional.supports(InputKind.BARCODE)


class TestLookup:
    """Test exact, fuzzy and barcode matching."""

    async def test_exact_alias(self, regional: FoodDatabaseAnalyzer) -> None:
        result = await regional.analyze(FoodInput(raw_text="Avocado"))

        item = result.items[0]
        assert item.name == "Australian Avocado (100g)"
        assert (item.calories, item.protein, item.carbs, item.fat) == (160, 2, 9, 15)
        assert item.fibre == 6.7
        assert result.confidence == 0.95
        assert result.source == ResultSource.REGIONAL

    async def test_fuzzy_match(self, local: FoodDatabaseAnalyzer) -> None:
        result = await local.analyze(FoodInput(raw_text="chiken breast"))

        assert result.items[0].name == "Chicken Breast (100g)"
        assert result.confidence == 0.9
        assert result.source == ResultSource.DATABASE

    async def test_no_match(self, local: FoodDatabaseAnalyzer) -> None:
        with pytest.raises(NotFoundError):
            await local.analyze(FoodInput(raw_text="quantum widget"))

    async def test_barcode(self, regional: FoodDatabaseAnalyzer) -> None:
        result = await regional.analyze(
            FoodInput(raw_text="9300605000001", input_kind=InputKind.BARCODE)
        )

        assert result.items[0].name == "Woolworths Chicken Breast (100g)"
        assert result.confidence == 0.95

    async def test_unknown_barcode(self, regional: FoodDatabaseAnalyzer) -> None:
        with pytest.raises(NotFoundError):
            await regional.analyze(FoodInput(raw_text="12345678", input_kind=InputKind.BARCODE))

    async def test_threshold_respected(self) -> None:
        strict = FoodDatabaseAnalyzer(
            [FoodRecord(name="Banana", calories=105, protein=1.3, carbs=27, fat=0.4)],
            fuzzy_threshold=100,
        )

        with pytest.raises(NotFoundError):
            await strict.analyze(FoodInput(raw_text="bananna"))


class TestLifecycle:
    """Test ping and close."""

    async def test_ping(self, local: FoodDatabaseAnalyzer) -> None:
        assert await local.ping() is True
        assert await FoodDatabaseAnalyzer([]).ping() is False

    async def test_empty_catalog_never_matches(self) -> None:
        with pytest.raises(NotFoundError):
            await FoodDatabaseAnalyzer([]).analyze(FoodInput(raw_text="banana"))

    async def test_aclose(self, local: FoodDatabaseAnalyzer) -> None:
        await local.aclose()
