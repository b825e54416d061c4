"""
Result aggregation.

Merges the items of one backend result into the single record shown
to the user.
"""

from __future__ import annotations

import math

from macro_analysis.domain.analysis.models import (
    NO_DATA_DESCRIPTION,
    SENTINEL_CONFIDENCE,
    CompositeNutritionRecord,
    NutritionItem,
    NutritionResult,
    ResultSource,
)

DESCRIPTION_SEPARATOR = " and "


class ResultAggregator:
    """
    Build a CompositeNutritionRecord from a NutritionResult.

    Rules:
    - One item: copied verbatim, micro-fields included
    - Several items: macros summed, names joined with " and ",
      each item kept as a sub-item, top-level micro-fields omitted
    - No items: zero-valued "No data" sentinel with confidence 0.5

    Example:
        >>> result = NutritionResult(
        ...     items=[
        ...         NutritionItem(name="eggs", calories=140, protein=12, carbs=1, fat=10),
        ...         NutritionItem(name="toast", calories=80, protein=3, carbs=15, fat=1),
        ...     ],
        ...     confidence=0.8,
        ...     source=ResultSource.AI,
        ... )
        >>> record = ResultAggregator().aggregate(result)
        >>> record.description, record.calories
        ('eggs and toast', 220.0)
    """

    def aggregate(self, result: NutritionResult) -> CompositeNutritionRecord:
        region_specific = result.source == ResultSource.REGIONAL

        if not result.items:
            return CompositeNutritionRecord(
                description=NO_DATA_DESCRIPTION,
                calories=0.0,
                protein=0.0,
                carbs=0.0,
                fat=0.0,
                confidence=SENTINEL_CONFIDENCE,
                is_region_specific=region_specific,
            )

        if len(result.items) == 1:
            return self._from_item(result.items[0], result.confidence, region_specific)

        # fsum keeps totals independent of item order
        return CompositeNutritionRecord(
            description=DESCRIPTION_SEPARATOR.join(item.name for item in result.items),
            calories=math.fsum(item.calories for item in result.items),
            protein=math.fsum(item.protein for item in result.items),
            carbs=math.fsum(item.carbs for item in result.items),
            fat=math.fsum(item.fat for item in result.items),
            confidence=result.confidence,
            is_region_specific=region_specific,
            is_composite=True,
            sub_items=[
                self._from_item(item, result.confidence, region_specific)
                for item in result.items
            ],
        )

    @staticmethod
    def _from_item(
        item: NutritionItem, confidence: float, region_specific: bool
    ) -> CompositeNutritionRecord:
        return CompositeNutritionRecord(
            description=item.name,
            calories=item.calories,
            protein=item.protein,
            carbs=item.carbs,
            fat=item.fat,
            confidence=confidence,
            is_region_specific=region_specific,
            is_composite=False,
            **item.micronutrients(),
        )
