"""Shared test fixtures.

Unit tests never touch the network: analyzers are fakes or receive
mocked OpenAI clients and aiohttp sessions.
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Sequence

import pytest

from macro_analysis.application.analysis.fallback import FallbackStrategy
from macro_analysis.application.analysis.orchestrator import AnalysisOrchestrator
from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    FoodInput,
    InputKind,
    NutritionItem,
    NutritionResult,
)
from macro_analysis.infrastructure.cache.analysis_cache import InMemoryAnalysisCache
from macro_analysis.infrastructure.config import AppConfiguration
from macro_analysis.infrastructure.metrics import MetricsRegistry


class FakeAnalyzer:
    """Scripted analyzer recording every call."""

    def __init__(
        self,
        analyzer_type: AnalyzerType,
        result: Optional[NutritionResult] = None,
        error: Optional[Exception] = None,
        kinds: Optional[Sequence[InputKind]] = None,
        delay: float = 0.0,
        healthy: bool = True,
    ) -> None:
        self._type = analyzer_type
        self.result = result
        self.error = error
        self.kinds = set(kinds) if kinds is not None else set(InputKind)
        self.delay = delay
        self.healthy = healthy
        self.calls: List[FoodInput] = []
        self.closed = False

    @property
    def analyzer_type(self) -> AnalyzerType:
        return self._type

    def supports(self, input_kind: InputKind) -> bool:
        return input_kind in self.kinds

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        self.calls.append(food_input)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result

    async def ping(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_analyzer() -> Callable[..., FakeAnalyzer]:
    """Factory for FakeAnalyzer instances."""
    return FakeAnalyzer


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def eggs() -> NutritionItem:
    return NutritionItem(name="eggs", calories=140, protein=12, carbs=1, fat=10)


@pytest.fixture
def toast() -> NutritionItem:
    return NutritionItem(name="toast", calories=80, protein=3, carbs=15, fat=1)


@pytest.fixture
def eggs_and_toast_result(eggs: NutritionItem, toast: NutritionItem) -> NutritionResult:
    """AI answer for "2 eggs and toast"."""
    return NutritionResult(items=[eggs, toast], confidence=0.8, source="ai")


@pytest.fixture
def eggs_input() -> FoodInput:
    return FoodInput(raw_text="2 eggs and toast", input_kind="text", context="quick_logging")


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryAnalysisCache:
    return InMemoryAnalysisCache(default_ttl_seconds=3600, clock=clock)


@pytest.fixture
def build_orchestrator(
    cache: InMemoryAnalysisCache, metrics: MetricsRegistry
) -> Callable[..., AnalysisOrchestrator]:
    """Build an orchestrator over the given analyzers and the shared cache."""

    def _build(*analyzers: FakeAnalyzer) -> AnalysisOrchestrator:
        strategy = FallbackStrategy(analyzers, metrics=metrics)
        return AnalysisOrchestrator(strategy, cache, metrics=metrics)

    return _build


@pytest.fixture
def bare_config() -> AppConfiguration:
    """Configuration with no credentials at all."""
    return AppConfiguration()


@pytest.fixture
def full_config() -> AppConfiguration:
    return AppConfiguration(openai_api_key="sk-test", usda_api_key="usda-test")
