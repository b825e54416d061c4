"""Food catalogs backing the database analyzers.

Values are per 100g unless the name says otherwise. Regional values follow
AUSNUT 2011-13 reference profiles; generic values follow USDA SR Legacy.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class FoodRecord(BaseModel):
    """One catalog row."""

    model_config = ConfigDict(frozen=True)

    name: str
    aliases: Tuple[str, ...] = ()
    barcodes: Tuple[str, ...] = ()
    calories: float = Field(..., ge=0)
    protein: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    fat: float = Field(..., ge=0)
    sugar: Optional[float] = None
    fibre: Optional[float] = None
    saturated_fat: Optional[float] = None
    sodium: Optional[float] = None
    cholesterol: Optional[float] = None

    def search_terms(self) -> List[str]:
        """Casefolded name followed by aliases."""
        return [self.name.casefold(), *(alias.casefold() for alias in self.aliases)]


AUSTRALIAN_FOODS: Tuple[FoodRecord, ...] = (
    FoodRecord(
        name="Australian Beef Eye Fillet (100g)",
        aliases=("beef eye fillet", "eye fillet", "beef fillet"),
        calories=250, protein=26, carbs=0, fat=15,
        sugar=0, fibre=0, saturated_fat=6, sodium=60, cholesterol=70,
    ),
    FoodRecord(
        name="Australian Avocado (100g)",
        aliases=("avocado", "avo"),
        calories=160, protein=2, carbs=9, fat=15,
        sugar=0.7, fibre=6.7, saturated_fat=2.1, sodium=7, cholesterol=0,
    ),
    FoodRecord(
        name="Australian Sweet Potato (100g)",
        aliases=("sweet potato", "kumara"),
        calories=86, protein=1.6, carbs=20, fat=0.1,
        sugar=4.2, fibre=3, saturated_fat=0, sodium=55, cholesterol=0,
    ),
    FoodRecord(
        name="Barramundi, baked (100g)",
        aliases=("barramundi", "baked barramundi"),
        calories=120, protein=24, carbs=0, fat=2.4,
        saturated_fat=0.7, sodium=80, cholesterol=55,
    ),
    FoodRecord(
        name="Lamington (1 piece)",
        aliases=("lamington",),
        calories=270, protein=3.5, carbs=41, fat=10,
        sugar=29, fibre=1.6, saturated_fat=6.2, sodium=180,
    ),
    FoodRecord(
        name="Coles Australian Beef Mince (100g)",
        aliases=("beef mince",),
        barcodes=("9300605000000",),
        calories=250, protein=26, carbs=0, fat=15,
        sugar=0, fibre=0, saturated_fat=6, sodium=60, cholesterol=70,
    ),
    FoodRecord(
        name="Woolworths Chicken Breast (100g)",
        barcodes=("9300605000001",),
        calories=165, protein=31, carbs=0, fat=3.6,
        sugar=0, fibre=0, saturated_fat=1.1, sodium=74, cholesterol=85,
    ),
)


GENERIC_FOODS: Tuple[FoodRecord, ...] = (
    FoodRecord(
        name="Chicken Breast (100g)",
        aliases=("chicken breast", "grilled chicken breast"),
        calories=165, protein=31, carbs=0, fat=3.6,
        sugar=0, fibre=0, saturated_fat=1.1, sodium=74, cholesterol=85,
    ),
    FoodRecord(
        name="Brown Rice (100g cooked)",
        aliases=("brown rice", "cooked brown rice"),
        calories=111, protein=2.6, carbs=23, fat=0.9,
        sugar=0.4, fibre=1.8, saturated_fat=0.2, sodium=5, cholesterol=0,
    ),
    FoodRecord(
        name="Banana (1 medium)",
        aliases=("banana",),
        calories=105, protein=1.3, carbs=27, fat=0.4,
        sugar=14, fibre=3.1, sodium=1,
    ),
    FoodRecord(
        name="Apple (1 medium)",
        aliases=("apple",),
        calories=95, protein=0.5, carbs=25, fat=0.3,
        sugar=19, fibre=4.4, sodium=2,
    ),
    FoodRecord(
        name="Rolled Oats (40g dry)",
        aliases=("oats", "rolled oats", "porridge"),
        calories=150, protein=5, carbs=27, fat=2.5,
        sugar=0.4, fibre=4, saturated_fat=0.5, sodium=2,
    ),
    FoodRecord(
        name="Greek Yogurt, plain (170g)",
        aliases=("greek yogurt", "greek yoghurt"),
        calories=100, protein=17, carbs=6, fat=0.7,
        sugar=6, saturated_fat=0.2, sodium=60, cholesterol=10,
    ),
    FoodRecord(
        name="Atlantic Salmon, cooked (100g)",
        aliases=("salmon", "salmon fillet"),
        calories=206, protein=22, carbs=0, fat=12,
        saturated_fat=2.5, sodium=61, cholesterol=63,
    ),
)
