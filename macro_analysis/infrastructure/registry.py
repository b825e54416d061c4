"""Service registry.

Owns the analyzers, cache, store, metrics and orchestrator, built once
from an explicit AppConfiguration. Backend selection (real vs stub) is
a pure function of that configuration.

Usage:
    registry = build_registry()
    await registry.startup()
    record = await registry.orchestrator.analyze_text("2 eggs and toast")
    await registry.shutdown()
"""

from __future__ import annotations

from threading import Lock
from typing import Awaitable, Callable, Dict, Mapping, Optional

import structlog

from macro_analysis.application.analysis.fallback import FallbackStrategy
from macro_analysis.application.analysis.journal import NutritionJournal
from macro_analysis.application.analysis.orchestrator import AnalysisOrchestrator
from macro_analysis.domain.analysis.models import AnalyzerType
from macro_analysis.domain.analysis.ports import (
    IAnalysisCache,
    INutritionAnalyzer,
    INutritionStore,
)
from macro_analysis.domain.shared.errors import ApiKeyMissingError, ConfigurationError
from macro_analysis.infrastructure.analyzers.food_database import FoodDatabaseAnalyzer
from macro_analysis.infrastructure.analyzers.openai_analyzer import OpenAINutritionAnalyzer
from macro_analysis.infrastructure.analyzers.stub_analyzer import StubAIAnalyzer
from macro_analysis.infrastructure.analyzers.usda_analyzer import USDANutritionAnalyzer
from macro_analysis.infrastructure.cache.analysis_cache import InMemoryAnalysisCache
from macro_analysis.infrastructure.config import AppConfiguration
from macro_analysis.infrastructure.logging_config import configure_logging
from macro_analysis.infrastructure.metrics import MetricsRegistry
from macro_analysis.infrastructure.persistence.in_memory_store import InMemoryNutritionStore

logger = structlog.get_logger(__name__)

AnalyzerFactory = Callable[[AppConfiguration], INutritionAnalyzer]

HEALTH_KEYS: Dict[AnalyzerType, str] = {
    AnalyzerType.AI: "ai_service",
    AnalyzerType.REGIONAL: "regional_database_service",
    AnalyzerType.DATABASE: "local_database_service",
    AnalyzerType.API: "external_api_service",
}


# ═══════════════════════════════════════════════════════════
# ANALYZER FACTORIES
# ═══════════════════════════════════════════════════════════


def create_regional_analyzer(config: AppConfiguration) -> INutritionAnalyzer:
    return FoodDatabaseAnalyzer.regional()


def create_local_analyzer(config: AppConfiguration) -> INutritionAnalyzer:
    return FoodDatabaseAnalyzer.local()


def create_openai_analyzer(config: AppConfiguration) -> INutritionAnalyzer:
    return OpenAINutritionAnalyzer(
        api_key=config.openai_api_key,
        model=config.openai_model,
        vision_model=config.openai_vision_model,
        timeout=config.analysis_timeout_s,
        region=config.region,
    )


def create_stub_ai_analyzer(config: AppConfiguration) -> INutritionAnalyzer:
    return StubAIAnalyzer()


def create_usda_analyzer(config: AppConfiguration) -> INutritionAnalyzer:
    return USDANutritionAnalyzer(
        api_key=config.usda_api_key,
        timeout_seconds=min(config.analysis_timeout_s, 10.0),
    )


def select_analyzer_factories(config: AppConfiguration) -> Dict[AnalyzerType, AnalyzerFactory]:
    """
    Choose one analyzer constructor per type from configuration alone.

    - Regional and local databases: always
    - AI: OpenAI when a key is configured, stub otherwise
    - External API: only when USDA credentials are configured

    Example:
        >>> factories = select_analyzer_factories(AppConfiguration())
        >>> factories[AnalyzerType.AI] is create_stub_ai_analyzer
        True
    """
    factories: Dict[AnalyzerType, AnalyzerFactory] = {
        AnalyzerType.REGIONAL: create_regional_analyzer,
        AnalyzerType.DATABASE: create_local_analyzer,
        AnalyzerType.AI: (
            create_openai_analyzer if config.has_ai_configuration() else create_stub_ai_analyzer
        ),
    }
    if config.has_nutrition_apis():
        factories[AnalyzerType.API] = create_usda_analyzer
    return factories


# ═══════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════


class ServiceRegistry:
    """
    Owned aggregate of every analysis service.

    Construct once at startup and pass by reference. All owned services
    are safe for concurrent use by multiple orchestrator calls.

    Lifecycle methods never raise: failures are logged and reported
    through ``health_check``.

    Example:
        >>> registry = ServiceRegistry(AppConfiguration.from_env())
        >>> await registry.startup()
        >>> (await registry.health_check())["ai_service"]
        True
    """

    def __init__(
        self,
        configuration: AppConfiguration,
        analyzer_factories: Optional[Mapping[AnalyzerType, AnalyzerFactory]] = None,
        cache: Optional[IAnalysisCache] = None,
        store: Optional[INutritionStore] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        """
        Build every service.

        Args:
            configuration: Application settings
            analyzer_factories: One constructor per analyzer type
                (defaults to ``select_analyzer_factories(configuration)``)
            cache: Result cache (defaults to in-memory, configured TTL)
            store: Persistent journal store (defaults to in-memory)
            metrics: Metrics registry (defaults to a fresh one)

        Raises:
            ConfigurationError: A non-AI analyzer is misconfigured
        """
        self._configuration = configuration
        self._metrics = metrics or MetricsRegistry()
        self._cache: IAnalysisCache = cache or InMemoryAnalysisCache(
            default_ttl_seconds=configuration.cache_ttl_s
        )
        self._store: INutritionStore = store or InMemoryNutritionStore()

        factories = (
            analyzer_factories
            if analyzer_factories is not None
            else select_analyzer_factories(configuration)
        )
        self._analyzers: Dict[AnalyzerType, INutritionAnalyzer] = {}
        for analyzer_type, factory in factories.items():
            self._analyzers[AnalyzerType(analyzer_type)] = self._build_analyzer(
                AnalyzerType(analyzer_type), factory
            )

        self._strategy = FallbackStrategy(
            self._analyzers.values(),
            order=configuration.analyzer_order,
            metrics=self._metrics,
        )
        self._orchestrator = AnalysisOrchestrator(
            self._strategy,
            self._cache,
            metrics=self._metrics,
            cache_ttl_seconds=configuration.cache_ttl_s,
        )
        self._journal = NutritionJournal(self._store)

        logger.info(
            "Service registry built",
            analyzers={t.value: type(a).__name__ for t, a in self._analyzers.items()},
            order=[t.value for t in self._strategy.order],
        )

    def _build_analyzer(
        self, analyzer_type: AnalyzerType, factory: AnalyzerFactory
    ) -> INutritionAnalyzer:
        try:
            return factory(self._configuration)
        except ApiKeyMissingError as e:
            if analyzer_type != AnalyzerType.AI:
                raise ConfigurationError(str(e)) from e
            logger.warning("AI key missing, using stub analyzer", error=str(e))
            return StubAIAnalyzer()

    # ═══════════════════════════════════════════════════════════
    # ACCESSORS
    # ═══════════════════════════════════════════════════════════

    @property
    def configuration(self) -> AppConfiguration:
        return self._configuration

    @property
    def analyzers(self) -> Dict[AnalyzerType, INutritionAnalyzer]:
        return dict(self._analyzers)

    @property
    def cache(self) -> IAnalysisCache:
        return self._cache

    @property
    def store(self) -> INutritionStore:
        return self._store

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    @property
    def strategy(self) -> FallbackStrategy:
        return self._strategy

    @property
    def orchestrator(self) -> AnalysisOrchestrator:
        return self._orchestrator

    @property
    def journal(self) -> NutritionJournal:
        return self._journal

    def configuration_status(self) -> Dict[str, bool]:
        return self._configuration.configuration_status()

    # ═══════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def startup(self) -> None:
        """Best-effort initialization. Logs each failed step and continues."""
        logger.info("Starting analysis services", **self.configuration_status())

        try:
            logger.info("Cache ready", size_bytes=await self._cache.size_bytes())
        except Exception as e:
            logger.error("Cache initialization failed", error=str(e))

        try:
            logger.info("Store ready", entries=await self._store.count())
        except Exception as e:
            logger.error("Store initialization failed", error=str(e))

        for analyzer_type, analyzer in self._analyzers.items():
            try:
                if not await analyzer.ping():
                    logger.warning("Analyzer not responding", analyzer=analyzer_type.value)
            except Exception as e:
                logger.error("Analyzer check failed", analyzer=analyzer_type.value, error=str(e))

        logger.info("Analysis services started")

    async def shutdown(self) -> None:
        """Clear transient cache state and release clients. Never raises."""
        try:
            await self._cache.clear()
        except Exception as e:
            logger.error("Cache clear failed during shutdown", error=str(e))

        for analyzer_type, analyzer in self._analyzers.items():
            try:
                await analyzer.aclose()
            except Exception as e:
                logger.error(
                    "Analyzer close failed during shutdown",
                    analyzer=analyzer_type.value,
                    error=str(e),
                )

        logger.info("Analysis services stopped")

    async def health_check(self) -> Dict[str, bool]:
        """
        Probe each owned service with a cheap operation.

        Returns:
            Component name -> healthy. ``nutrition_service`` is healthy when
            at least one analyzer in the fallback order answers its ping.
            ``configuration`` reports whether real AI credentials are present.
        """
        health: Dict[str, bool] = {}
        for analyzer_type, analyzer in self._analyzers.items():
            health[HEALTH_KEYS[analyzer_type]] = await self._probe(analyzer.ping)

        health["database_service"] = await self._probe(self._store_alive)
        health["cache_service"] = await self._probe(self._cache_alive)
        health["nutrition_service"] = any(
            health[HEALTH_KEYS[analyzer_type]]
            for analyzer_type in self._strategy.order
            if analyzer_type in self._analyzers
        )
        health["configuration"] = self._configuration.has_ai_configuration()
        return health

    async def _store_alive(self) -> bool:
        return await self._store.count() >= 0

    async def _cache_alive(self) -> bool:
        return await self._cache.size_bytes() >= 0

    @staticmethod
    async def _probe(check: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return bool(await check())
        except Exception as e:
            logger.warning("Health probe failed", error=str(e))
            return False


class RegistryProvider:
    """
    Lock-guarded, build-once holder for a ServiceRegistry.

    Concurrent first access creates exactly one registry.

    Example:
        >>> provider = RegistryProvider(build_registry)
        >>> provider.get() is provider.get()
        True
    """

    def __init__(self, builder: Callable[[], ServiceRegistry]):
        self._builder = builder
        self._instance: Optional[ServiceRegistry] = None
        self._lock = Lock()

    def get(self) -> ServiceRegistry:
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = self._builder()
        return self._instance

    @property
    def is_built(self) -> bool:
        return self._instance is not None

    def reset(self) -> None:
        """Drop the held registry (for testing)."""
        with self._lock:
            self._instance = None


def build_registry(configuration: Optional[AppConfiguration] = None) -> ServiceRegistry:
    """Load configuration, configure logging and build the registry."""
    config = configuration or AppConfiguration.from_env()
    configure_logging(config.log_level, json_output=config.log_format == "json")
    return ServiceRegistry(config)
