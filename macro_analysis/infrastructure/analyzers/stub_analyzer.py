"""Stub AI analyzer.

Deterministic keyword estimator used in place of the OpenAI analyzer
when no AI credentials are configured. Never calls external APIs.
"""

from __future__ import annotations

import re
from typing import Dict, List, Tuple

from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    FoodInput,
    InputKind,
    NutritionItem,
    NutritionResult,
    ResultSource,
)
from macro_analysis.domain.shared.errors import NotFoundError

TEXT_CONFIDENCE = 0.6
IMAGE_CONFIDENCE = 0.65
CONFIGURE_AI_SUGGESTION = "Configure an AI provider for more accurate analysis"

_SEPARATORS = re.compile(r"\s*(?:,|\+|&|\band\b|\bwith\b)\s*", re.IGNORECASE)
_QUANTITY = re.compile(r"^(\d+(?:\.\d+)?)\s*(?:x\s+)?(.*)$")

# keyword -> (calories, protein, carbs, fat) per unit
_PROFILES: Dict[str, Tuple[float, float, float, float]] = {
    "egg": (70.0, 6.0, 0.5, 5.0),
    "toast": (80.0, 3.0, 15.0, 1.0),
    "bread": (80.0, 3.0, 15.0, 1.0),
    "banana": (105.0, 1.3, 27.0, 0.4),
    "apple": (95.0, 0.5, 25.0, 0.3),
    "rice": (205.0, 4.3, 45.0, 0.4),
    "chicken": (165.0, 31.0, 0.0, 3.6),
    "salad": (20.0, 1.5, 4.0, 0.2),
    "pasta": (220.0, 8.0, 43.0, 1.3),
    "coffee": (5.0, 0.3, 0.0, 0.0),
    "milk": (120.0, 8.0, 12.0, 5.0),
    "pizza": (285.0, 12.0, 36.0, 10.0),
}
_DEFAULT_PROFILE: Tuple[float, float, float, float] = (150.0, 5.0, 20.0, 5.0)


class StubAIAnalyzer:
    """
    Stub implementation of the AI analyzer slot.

    Splits composite phrases ("2 eggs and toast") into items and scales
    hardcoded per-unit profiles by a leading quantity.
    """

    @property
    def analyzer_type(self) -> AnalyzerType:
        return AnalyzerType.AI

    def supports(self, input_kind: InputKind) -> bool:
        return input_kind != InputKind.BARCODE

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        """
        Estimate nutrition from keywords.

        Returns:
            NutritionResult with one item per phrase part
        """
        if food_input.input_kind == InputKind.IMAGE:
            text = food_input.raw_text.strip()
            items = self._estimate(text) if text else [self._item("Mixed meal", 1.0, _DEFAULT_PROFILE)]
            confidence = IMAGE_CONFIDENCE
        else:
            items = self._estimate(food_input.raw_text)
            confidence = TEXT_CONFIDENCE

        if not items:
            raise NotFoundError(f"Nothing to estimate in '{food_input.raw_text}'")

        return NutritionResult(
            items=items,
            confidence=confidence,
            source=ResultSource.AI,
            suggestions=[CONFIGURE_AI_SUGGESTION],
        )

    def _estimate(self, text: str) -> List[NutritionItem]:
        items = []
        for part in _SEPARATORS.split(text.strip()):
            part = part.strip()
            if not part:
                continue
            quantity, name = self._split_quantity(part)
            items.append(self._item(name, quantity, self._profile_for(name)))
        return items

    @staticmethod
    def _split_quantity(part: str) -> Tuple[float, str]:
        match = _QUANTITY.match(part)
        if match and match.group(2):
            return float(match.group(1)), match.group(2).strip()
        return 1.0, part

    @staticmethod
    def _profile_for(name: str) -> Tuple[float, float, float, float]:
        lowered = name.casefold()
        for keyword, profile in _PROFILES.items():
            if keyword in lowered:
                return profile
        return _DEFAULT_PROFILE

    @staticmethod
    def _item(
        name: str, quantity: float, profile: Tuple[float, float, float, float]
    ) -> NutritionItem:
        calories, protein, carbs, fat = profile
        return NutritionItem(
            name=name,
            calories=round(calories * quantity, 1),
            protein=round(protein * quantity, 1),
            carbs=round(carbs * quantity, 1),
            fat=round(fat * quantity, 1),
        )

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None
