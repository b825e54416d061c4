"""
Nutrition Analysis Orchestrator.

Facade over cache, fallback strategy and aggregation. Publishes an
observable ServiceState for every call.

Design Pattern: Facade + Dependency Injection + Strategy Pattern
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from macro_analysis.application.analysis.fallback import FallbackStrategy
from macro_analysis.application.analysis.state import (
    ServiceState,
    ServiceStateCell,
    StateSubscription,
)
from macro_analysis.domain.analysis.aggregator import ResultAggregator
from macro_analysis.domain.analysis.fingerprint import compute_fingerprint
from macro_analysis.domain.analysis.models import (
    AnalysisContext,
    CompositeNutritionRecord,
    FoodInput,
    InputKind,
)
from macro_analysis.domain.analysis.ports import IAnalysisCache
from macro_analysis.domain.shared.errors import (
    InvalidInputError,
    NoAnalyzersAvailableError,
)
from macro_analysis.infrastructure.metrics import (
    ANALYSIS_REQUESTS,
    CACHE_LOOKUPS,
    MetricsRegistry,
)

logger = structlog.get_logger(__name__)

MIN_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_CACHE_TTL_SECONDS = 3600
MAX_RECIPE_TITLE_LENGTH = 50


def recipe_title(recipe: str) -> str:
    """
    Title for a recipe record: its first non-blank line, at most 50 chars.

    Example:
        >>> recipe_title("Beef stew\\n500g beef\\n2 carrots")
        'Beef stew'
    """
    first_line = next((line.strip() for line in recipe.splitlines() if line.strip()), "")
    if len(first_line) <= MAX_RECIPE_TITLE_LENGTH:
        return first_line
    return first_line[: MAX_RECIPE_TITLE_LENGTH - 3] + "..."


class AnalysisOrchestrator:
    """
    Turns a FoodInput into a CompositeNutritionRecord.

    Flow:
    1. Fingerprint the input, state -> analyzing
    2. Cache hit: state -> succeeded, return (no backend invoked)
    3. Cache miss: run the fallback strategy
    4. Success: aggregate, write through the cache, state -> succeeded
    5. All backends failed: state -> failed, raise (cache not written)

    A cancelled call restores the previous state, unless a later call
    has already replaced it, and leaves the cache untouched. Any other
    error leaves the state failed. Concurrent calls for the same
    fingerprint are not deduplicated.

    Dependencies (injected):
    - strategy: FallbackStrategy over registered analyzers
    - cache: IAnalysisCache
    - aggregator: ResultAggregator
    - metrics: MetricsRegistry

    Example:
        >>> orchestrator = AnalysisOrchestrator(strategy, cache)
        >>> record = await orchestrator.analyze_text("2 eggs and toast")
        >>> record.description
        'eggs and toast'
    """

    def __init__(
        self,
        strategy: FallbackStrategy,
        cache: IAnalysisCache,
        aggregator: Optional[ResultAggregator] = None,
        metrics: Optional[MetricsRegistry] = None,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        state: Optional[ServiceStateCell] = None,
    ):
        self._strategy = strategy
        self._cache = cache
        self._aggregator = aggregator or ResultAggregator()
        self._metrics = metrics or MetricsRegistry()
        self.cache_ttl_seconds = cache_ttl_seconds
        self._state = state or ServiceStateCell()

    @property
    def state(self) -> ServiceState:
        return self._state.value

    def subscribe(self, maxsize: int = 16) -> StateSubscription:
        """Observe state changes, starting with the current state."""
        return self._state.subscribe(maxsize=maxsize)

    async def analyze(self, food_input: FoodInput) -> CompositeNutritionRecord:
        """
        Analyze a food input.

        Args:
            food_input: Normalized request

        Returns:
            Aggregated record

        Raises:
            NoAnalyzersAvailableError: Every eligible backend failed
            Exception: Cache or aggregation errors propagate unchanged
        """
        fingerprint = compute_fingerprint(food_input)
        previous = self._state.value
        analyzing = ServiceState.analyzing()
        self._state.set(analyzing)

        try:
            cached = await self._cache.get(fingerprint)
            if cached is not None:
                self._metrics.counter(CACHE_LOOKUPS, outcome="hit").inc()
                logger.info("Analysis served from cache", fingerprint=fingerprint[:12])
                self._state.set(ServiceState.succeeded(cached))
                return cached

            self._metrics.counter(CACHE_LOOKUPS, outcome="miss").inc()

            result = await self._strategy.analyze(food_input)
            record = self._aggregator.aggregate(result)
            self._warn_if_weak(record, fingerprint)

            await self._cache.set(fingerprint, record, ttl_seconds=self.cache_ttl_seconds)
            self._metrics.counter(ANALYSIS_REQUESTS, outcome="success").inc()
            self._state.set(ServiceState.succeeded(record))

            logger.info(
                "Analysis completed",
                fingerprint=fingerprint[:12],
                source=str(result.source),
                calories=record.calories,
                composite=record.is_composite,
                confidence=record.confidence,
            )
            return record

        except asyncio.CancelledError:
            # Only undo our own transition; a newer call may own the state
            self._state.replace_if(analyzing, previous)
            logger.info("Analysis cancelled", fingerprint=fingerprint[:12])
            raise

        except NoAnalyzersAvailableError as e:
            self._metrics.counter(ANALYSIS_REQUESTS, outcome="failure").inc()
            logger.error(
                "Analysis failed",
                fingerprint=fingerprint[:12],
                input_kind=str(food_input.input_kind),
                attempts=len(e.failures),
                error=str(e),
            )
            self._state.set(ServiceState.failed(e))
            raise

        except Exception as e:
            self._metrics.counter(ANALYSIS_REQUESTS, outcome="failure").inc()
            logger.error(
                "Analysis error",
                fingerprint=fingerprint[:12],
                error_type=type(e).__name__,
                error=str(e),
            )
            self._state.set(ServiceState.failed(e))
            raise

    def _warn_if_weak(self, record: CompositeNutritionRecord, fingerprint: str) -> None:
        if record.is_empty_record():
            logger.warning("Analyzer returned no items", fingerprint=fingerprint[:12])
        elif record.confidence < MIN_CONFIDENCE_THRESHOLD:
            logger.warning(
                "Low confidence result",
                fingerprint=fingerprint[:12],
                confidence=record.confidence,
            )

    # ═══════════════════════════════════════════════════════════
    # CONVENIENCE ENTRY POINTS
    # ═══════════════════════════════════════════════════════════

    async def analyze_text(
        self, text: str, context: AnalysisContext = AnalysisContext.QUICK_LOGGING
    ) -> CompositeNutritionRecord:
        """Analyze a typed description."""
        return await self.analyze(
            self._build_input(raw_text=text, input_kind=InputKind.TEXT, context=context)
        )

    async def analyze_speech(
        self, transcript: str, context: AnalysisContext = AnalysisContext.QUICK_LOGGING
    ) -> CompositeNutritionRecord:
        """Analyze a speech transcript."""
        return await self.analyze(
            self._build_input(raw_text=transcript, input_kind=InputKind.SPEECH, context=context)
        )

    async def analyze_image(
        self,
        image: bytes,
        description: str = "",
        context: AnalysisContext = AnalysisContext.QUICK_LOGGING,
    ) -> CompositeNutritionRecord:
        """Analyze a meal photo, optionally with a user description."""
        return await self.analyze(
            self._build_input(
                raw_text=description,
                input_kind=InputKind.IMAGE,
                image=image,
                context=context,
            )
        )

    async def lookup_barcode(self, barcode: str) -> CompositeNutritionRecord:
        """Analyze a packaged product by barcode (8-14 digits)."""
        return await self.analyze(
            self._build_input(raw_text=barcode.strip(), input_kind=InputKind.BARCODE)
        )

    async def analyze_recipe(self, recipe: str, servings: int = 1) -> CompositeNutritionRecord:
        """
        Analyze a full recipe and return per-serving values.

        Args:
            recipe: Recipe text, title on the first line
            servings: Number of servings the recipe makes

        Returns:
            Per-serving record titled with the recipe's first line

        Raises:
            InvalidInputError: Blank recipe or servings < 1
            NoAnalyzersAvailableError: Every eligible backend failed
        """
        if servings < 1:
            raise InvalidInputError(f"Servings must be at least 1: {servings}")

        food_input = self._build_input(
            raw_text=recipe,
            input_kind=InputKind.TEXT,
            context=AnalysisContext.RECIPE_ANALYSIS,
        )
        record = await self.analyze(food_input)
        return record.per_serving(servings, description=recipe_title(recipe))

    @staticmethod
    def _build_input(**fields: Any) -> FoodInput:
        try:
            return FoodInput(**fields)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise InvalidInputError(messages) from e
