"""Fallback strategy across analyzer backends.

Tries backends one at a time in precedence order and returns the first
success. No backend runs after one has answered.
"""

from __future__ import annotations

import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from macro_analysis.domain.analysis.models import (
    DEFAULT_ANALYZER_ORDER,
    AnalyzerType,
    FoodInput,
    NutritionResult,
)
from macro_analysis.domain.analysis.ports import INutritionAnalyzer
from macro_analysis.domain.shared.errors import NoAnalyzersAvailableError
from macro_analysis.infrastructure.metrics import (
    ANALYZER_CALLS,
    ANALYZER_LATENCY,
    MetricsRegistry,
)

logger = structlog.get_logger(__name__)

class FallbackStrategy:
    """
    Sequential, short-circuit cascade over analyzers.

    Default precedence:
    1. Regional database (most accurate for the locale)
    2. AI (handles free-form input best)
    3. Local database (fast, offline)
    4. External API (highest latency and cost)

    Analyzers that are unregistered, or that do not support the input
    kind, are skipped. The returned result's ``source`` always reflects
    the single analyzer that produced it.

    Example:
        >>> strategy = FallbackStrategy([regional, ai, database])
        >>> result = await strategy.analyze(FoodInput(raw_text="avocado"))
        >>> result.source
        'regional'
    """

    def __init__(
        self,
        analyzers: Iterable[INutritionAnalyzer],
        order: Optional[Sequence[AnalyzerType]] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        """
        Initialize strategy.

        Args:
            analyzers: Registered analyzers, at most one per type
            order: Precedence list (defaults to regional, ai, database, api)
            metrics: Registry for per-analyzer counters and latency
        """
        self._order: Tuple[AnalyzerType, ...] = tuple(
            AnalyzerType(t) for t in (order if order is not None else DEFAULT_ANALYZER_ORDER)
        )
        self._analyzers: Dict[AnalyzerType, INutritionAnalyzer] = {}
        for analyzer in analyzers:
            self._analyzers[AnalyzerType(analyzer.analyzer_type)] = analyzer
        self._metrics = metrics or MetricsRegistry()

    @property
    def order(self) -> Tuple[AnalyzerType, ...]:
        return self._order

    @property
    def analyzers(self) -> Dict[AnalyzerType, INutritionAnalyzer]:
        return dict(self._analyzers)

    def eligible(self, food_input: FoodInput) -> List[INutritionAnalyzer]:
        """Analyzers that would be tried for this input, in order."""
        eligible = []
        for analyzer_type in self._order:
            analyzer = self._analyzers.get(analyzer_type)
            if analyzer is None or not analyzer.supports(food_input.input_kind):
                continue
            eligible.append(analyzer)
        return eligible

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        """
        Run the cascade.

        Args:
            food_input: Request to analyze

        Returns:
            Result of the first analyzer that succeeds

        Raises:
            NoAnalyzersAvailableError: Every eligible analyzer failed, or
                none was eligible. The last failure is chained as cause.
        """
        failures: List[Tuple[AnalyzerType, Exception]] = []

        for analyzer in self.eligible(food_input):
            analyzer_type = AnalyzerType(analyzer.analyzer_type)
            started = time.perf_counter()
            try:
                result = await analyzer.analyze(food_input)
            except Exception as e:
                self._record(analyzer_type, "failure", started)
                failures.append((analyzer_type, e))
                logger.warning(
                    "Analyzer failed, trying next",
                    analyzer=analyzer_type.value,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue

            self._record(analyzer_type, "success", started)
            logger.info(
                "Analyzer succeeded",
                analyzer=analyzer_type.value,
                items=len(result.items),
                confidence=result.confidence,
                attempts=len(failures) + 1,
            )
            return result

        if not failures:
            logger.warning("No analyzer eligible", input_kind=str(food_input.input_kind))
            raise NoAnalyzersAvailableError("No analyzer registered for this input")

        last_error = failures[-1][1]
        raise NoAnalyzersAvailableError(
            f"All {len(failures)} analyzers failed", failures=failures
        ) from last_error

    def _record(self, analyzer_type: AnalyzerType, outcome: str, started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._metrics.counter(ANALYZER_CALLS, analyzer=analyzer_type.value, outcome=outcome).inc()
        self._metrics.histogram(ANALYZER_LATENCY, analyzer=analyzer_type.value).observe(elapsed_ms)
