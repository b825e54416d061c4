"""
Analysis domain models.

Value objects flowing through the analysis pipeline: the normalized
request, per-backend results and the aggregated record handed to callers.
"""

from __future__ import annotations

import hashlib
import re
import time
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NO_DATA_DESCRIPTION = "No data"
SENTINEL_CONFIDENCE = 0.5

_BARCODE_PATTERN = re.compile(r"^\d{8,14}$")


def as_utc(moment: datetime) -> datetime:
    """
    Timezone-aware UTC view of ``moment``. Naive values are taken as UTC.

    Example:
        >>> as_utc(datetime(2026, 1, 5, 8, 0)).tzinfo
        datetime.timezone.utc
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class InputKind(str, Enum):
    """How the user supplied the food."""

    SPEECH = "speech"
    TEXT = "text"
    IMAGE = "image"
    BARCODE = "barcode"


class AnalysisContext(str, Enum):
    """Where in the app the analysis was requested."""

    QUICK_LOGGING = "quick_logging"
    DETAILED_COACHING = "detailed_coaching"
    RECIPE_ANALYSIS = "recipe_analysis"
    SOCIAL_SHARING = "social_sharing"
    MEAL_PLANNING = "meal_planning"


class ResultSource(str, Enum):
    """Provenance of a NutritionResult."""

    AI = "ai"
    DATABASE = "database"
    REGIONAL = "regional"
    API = "api"
    HYBRID = "hybrid"


class AnalyzerType(str, Enum):
    """
    Tag identifying an analyzer backend.

    Used for precedence ordering and dispatch only.
    """

    AI = "ai"
    DATABASE = "database"
    API = "api"
    REGIONAL = "regional"

    @property
    def source(self) -> ResultSource:
        """Result source produced by backends of this type."""
        return ResultSource(self.value)


# Regional data first, external API (slowest, metered) last
DEFAULT_ANALYZER_ORDER: Tuple[AnalyzerType, ...] = (
    AnalyzerType.REGIONAL,
    AnalyzerType.AI,
    AnalyzerType.DATABASE,
    AnalyzerType.API,
)


class FoodInput(BaseModel):
    """
    Normalized analysis request.

    Attributes:
        raw_text: Description, transcript or barcode digits
        input_kind: How the input was captured
        image: Image payload (required for image inputs)
        context: Screen/feature that requested the analysis

    Example:
        >>> food = FoodInput(raw_text="2 eggs and toast")
        >>> food.input_kind
        'text'
        >>> food.normalized_text
        '2 eggs and toast'
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    raw_text: str = Field("", description="Text, transcript or barcode")
    input_kind: InputKind = Field(InputKind.TEXT, description="Input kind")
    image: Optional[bytes] = Field(None, repr=False, description="Image bytes")
    context: AnalysisContext = Field(
        AnalysisContext.QUICK_LOGGING, description="Requesting context"
    )

    @model_validator(mode="after")
    def check_payload(self) -> FoodInput:
        """Reject inputs whose payload does not match their kind."""
        kind = self.input_kind
        if kind == InputKind.IMAGE:
            if not self.image:
                raise ValueError("Image input requires an image payload")
        elif kind == InputKind.BARCODE:
            if not _BARCODE_PATTERN.match(self.raw_text.strip()):
                raise ValueError(f"Invalid barcode: {self.raw_text!r}")
        elif not self.raw_text.strip():
            raise ValueError("Text input cannot be empty")
        return self

    @property
    def normalized_text(self) -> str:
        """Casefolded text with collapsed whitespace."""
        return " ".join(self.raw_text.casefold().split())

    @property
    def image_digest(self) -> Optional[str]:
        """SHA-256 hex digest of the image payload."""
        if not self.image:
            return None
        return hashlib.sha256(self.image).hexdigest()


class NutritionItem(BaseModel):
    """
    Macro profile of a single food item.

    Micro-fields are optional: None means unknown, not zero.

    Example:
        >>> eggs = NutritionItem(
        ...     name="eggs", calories=140, protein=12, carbs=1, fat=10
        ... )
        >>> eggs.is_calorie_consistent()
        True
    """

    model_config = ConfigDict(frozen=True)

    MICRO_FIELDS: ClassVar[tuple] = (
        "sugar",
        "fibre",
        "saturated_fat",
        "sodium",
        "cholesterol",
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    name: str = Field(..., min_length=1, description="Food name/description")
    calories: float = Field(..., ge=0, description="Energy in kcal")
    protein: float = Field(..., ge=0, description="Protein in g")
    carbs: float = Field(..., ge=0, description="Carbohydrates in g")
    fat: float = Field(..., ge=0, description="Total fat in g")

    sugar: Optional[float] = Field(None, ge=0, description="Sugar in g")
    fibre: Optional[float] = Field(None, ge=0, description="Fibre in g")
    saturated_fat: Optional[float] = Field(None, ge=0, description="Saturated fat in g")
    sodium: Optional[float] = Field(None, ge=0, description="Sodium in mg")
    cholesterol: Optional[float] = Field(None, ge=0, description="Cholesterol in mg")

    def micronutrients(self) -> Dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in self.MICRO_FIELDS}

    def calories_from_macros(self) -> float:
        """Atwater estimate: 4 kcal/g protein and carbs, 9 kcal/g fat."""
        return self.protein * 4 + self.carbs * 4 + self.fat * 9

    def is_calorie_consistent(self, tolerance: float = 0.1) -> bool:
        """
        Check reported calories against the macro estimate.

        Allows the larger of ``tolerance`` (relative) and 10 kcal.
        """
        expected = self.calories_from_macros()
        allowed = max(expected * tolerance, 10.0)
        return abs(self.calories - expected) <= allowed


class NutritionResult(BaseModel):
    """
    Output of a single backend call.

    Attributes:
        items: Food items in the order the backend reported them
        confidence: Backend confidence (0-1)
        source: Which backend family produced the result
        suggestions: Follow-up hints for the user
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    items: List[NutritionItem] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: ResultSource
    suggestions: List[str] = Field(default_factory=list)

    @property
    def is_composite(self) -> bool:
        return len(self.items) > 1


class CompositeNutritionRecord(BaseModel):
    """
    Aggregated, caller-facing nutrition record.

    Carries no identity fields, so two records built from the same
    backend answer serialize to the same bytes.

    Attributes:
        description: Item name, or item names joined with " and "
        calories/protein/carbs/fat: Totals across all items
        confidence: Confidence of the originating result
        is_region_specific: True when a regional database answered
        is_composite: True when more than one item was merged
        sub_items: Per-item records (composite only)
        sugar/fibre/saturated_fat/sodium/cholesterol: Single-item only
    """

    model_config = ConfigDict(frozen=True)

    description: str
    calories: float = Field(..., ge=0)
    protein: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    fat: float = Field(..., ge=0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_region_specific: bool = False
    is_composite: bool = False
    sub_items: Optional[List[CompositeNutritionRecord]] = None

    sugar: Optional[float] = Field(None, ge=0)
    fibre: Optional[float] = Field(None, ge=0)
    saturated_fat: Optional[float] = Field(None, ge=0)
    sodium: Optional[float] = Field(None, ge=0)
    cholesterol: Optional[float] = Field(None, ge=0)

    def micronutrients(self) -> Dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in NutritionItem.MICRO_FIELDS}

    def is_empty_record(self) -> bool:
        """True for the zero-valued sentinel produced from an empty result."""
        return (
            self.description == NO_DATA_DESCRIPTION
            and not self.is_composite
            and self.calories == 0
            and self.protein == 0
            and self.carbs == 0
            and self.fat == 0
        )

    def per_serving(
        self, servings: int, description: Optional[str] = None
    ) -> CompositeNutritionRecord:
        """
        Scale every numeric field to a single serving.

        Args:
            servings: Number of servings the record covers (>= 1)
            description: Optional replacement description

        Returns:
            New record with values divided by ``servings``

        Example:
            >>> record = CompositeNutritionRecord(
            ...     description="stew", calories=800, protein=60,
            ...     carbs=40, fat=30, confidence=0.8,
            ... )
            >>> record.per_serving(4).calories
            200.0
        """
        if servings < 1:
            raise ValueError(f"Servings must be at least 1: {servings}")

        def scale(value: Optional[float]) -> Optional[float]:
            return None if value is None else round(value / servings, 1)

        sub_items = (
            [item.per_serving(servings) for item in self.sub_items]
            if self.sub_items is not None
            else None
        )
        return self.model_copy(
            update={
                "description": description or self.description,
                "calories": scale(self.calories),
                "protein": scale(self.protein),
                "carbs": scale(self.carbs),
                "fat": scale(self.fat),
                "sub_items": sub_items,
                **{name: scale(getattr(self, name)) for name in NutritionItem.MICRO_FIELDS},
            }
        )


CompositeNutritionRecord.model_rebuild()


class CacheEntry(BaseModel):
    """Serialized record held by the analysis cache."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str = Field(..., description="Request fingerprint")
    payload: str = Field(..., description="Record JSON")
    expires_at: float = Field(..., description="Unix timestamp expiry")

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if the entry is past its expiry."""
        current = time.time() if now is None else now
        return current >= self.expires_at


class NutritionEntry(BaseModel):
    """Record persisted in the user's nutrition journal."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    logged_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    record: CompositeNutritionRecord

    @field_validator("logged_at")
    @classmethod
    def normalize_logged_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class NutritionSummary(BaseModel):
    """Totals over a date range of journal entries."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    total_calories: float = 0.0
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fat: float = 0.0
    total_fibre: float = 0.0
    entry_count: int = 0
    average_confidence: float = 0.0

    @field_validator("start", "end")
    @classmethod
    def normalize_range(cls, v: datetime) -> datetime:
        return as_utc(v)
