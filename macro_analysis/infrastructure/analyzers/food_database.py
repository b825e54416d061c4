"""
Food database analyzer.

Exact or fuzzy name lookup against an in-process food catalog. Serves
both the local database and the regional (Australian) database slots.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from rapidfuzz import fuzz, process

from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    FoodInput,
    InputKind,
    NutritionItem,
    NutritionResult,
)
from macro_analysis.domain.shared.errors import NotFoundError
from macro_analysis.infrastructure.analyzers.food_catalog import (
    AUSTRALIAN_FOODS,
    GENERIC_FOODS,
    FoodRecord,
)

logger = structlog.get_logger(__name__)

EXACT_MATCH_CONFIDENCE = 0.95
FUZZY_MATCH_CONFIDENCE = 0.9
DEFAULT_FUZZY_THRESHOLD = 85.0


class FoodDatabaseAnalyzer:
    """
    Catalog-backed analyzer returning single-item, high-confidence results.

    Lookup order:
    1. Barcode (barcode inputs only)
    2. Exact name or alias match (confidence 0.95)
    3. Fuzzy match, token-sort ratio >= threshold (confidence 0.9)

    Images are not supported: the strategy skips this analyzer for them.

    Example:
        >>> analyzer = FoodDatabaseAnalyzer.regional()
        >>> result = await analyzer.analyze(FoodInput(raw_text="avocado"))
        >>> result.items[0].calories
        160.0
    """

    def __init__(
        self,
        catalog: Iterable[FoodRecord],
        analyzer_type: AnalyzerType = AnalyzerType.DATABASE,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ) -> None:
        """
        Initialize analyzer.

        Args:
            catalog: Food records to search
            analyzer_type: DATABASE or REGIONAL
            fuzzy_threshold: Minimum rapidfuzz score (0-100) for a fuzzy hit
        """
        self._type = analyzer_type
        self.fuzzy_threshold = fuzzy_threshold
        self._records: List[FoodRecord] = list(catalog)

        self._by_term: Dict[str, FoodRecord] = {}
        self._by_barcode: Dict[str, FoodRecord] = {}
        for record in self._records:
            for term in record.search_terms():
                self._by_term.setdefault(term, record)
            for barcode in record.barcodes:
                self._by_barcode[barcode] = record
        self._terms: List[str] = list(self._by_term)

    @classmethod
    def regional(cls) -> FoodDatabaseAnalyzer:
        """Australian catalog in the regional slot."""
        return cls(AUSTRALIAN_FOODS, analyzer_type=AnalyzerType.REGIONAL)

    @classmethod
    def local(cls) -> FoodDatabaseAnalyzer:
        """Generic catalog in the local database slot."""
        return cls(GENERIC_FOODS, analyzer_type=AnalyzerType.DATABASE)

    @property
    def analyzer_type(self) -> AnalyzerType:
        return self._type

    def supports(self, input_kind: InputKind) -> bool:
        return input_kind != InputKind.IMAGE

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        """
        Look up the input in the catalog.

        Raises:
            NotFoundError: No barcode, exact or fuzzy match
        """
        if food_input.input_kind == InputKind.BARCODE:
            record = self._by_barcode.get(food_input.raw_text.strip())
            if record is None:
                raise NotFoundError(f"Barcode {food_input.raw_text.strip()} not in catalog")
            return self._result(record, EXACT_MATCH_CONFIDENCE)

        query = food_input.normalized_text
        record = self._by_term.get(query)
        if record is not None:
            logger.debug("Exact catalog match", query=query, food=record.name)
            return self._result(record, EXACT_MATCH_CONFIDENCE)

        record, score = self._fuzzy_lookup(query)
        if record is None:
            raise NotFoundError(f"No catalog match for '{food_input.raw_text}'")

        logger.debug("Fuzzy catalog match", query=query, food=record.name, score=score)
        return self._result(record, FUZZY_MATCH_CONFIDENCE)

    def _fuzzy_lookup(self, query: str) -> Tuple[Optional[FoodRecord], float]:
        if not self._terms:
            return None, 0.0
        match = process.extractOne(
            query,
            self._terms,
            scorer=fuzz.token_sort_ratio,
            score_cutoff=self.fuzzy_threshold,
        )
        if match is None:
            return None, 0.0
        term, score, _ = match
        return self._by_term[term], score

    def _result(self, record: FoodRecord, confidence: float) -> NutritionResult:
        item = NutritionItem(
            name=record.name,
            calories=record.calories,
            protein=record.protein,
            carbs=record.carbs,
            fat=record.fat,
            sugar=record.sugar,
            fibre=record.fibre,
            saturated_fat=record.saturated_fat,
            sodium=record.sodium,
            cholesterol=record.cholesterol,
        )
        return NutritionResult(
            items=[item],
            confidence=confidence,
            source=self._type.source,
        )

    async def ping(self) -> bool:
        return bool(self._records)

    async def aclose(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._records)
