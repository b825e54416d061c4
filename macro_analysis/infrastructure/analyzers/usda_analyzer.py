"""
USDA FoodData Central analyzer.

External API backend: searches FoodData Central by description, or by
GTIN/UPC for barcode inputs, and maps the best match to a single item.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    FoodInput,
    InputKind,
    NutritionItem,
    NutritionResult,
    ResultSource,
)
from macro_analysis.domain.shared.errors import (
    AnalysisTimeoutError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

USDA_CONFIDENCE = 0.85


class USDANutritionAnalyzer:
    """
    External API analyzer over USDA FoodData Central.

    Transient failures (rate limit, 5xx, connection errors) are retried
    with exponential backoff; the last failure is re-raised.

    Example:
        >>> async with USDANutritionAnalyzer(api_key="...") as usda:
        ...     result = await usda.analyze(FoodInput(raw_text="chicken breast"))
    """

    BASE_URL = "https://api.nal.usda.gov/fdc/v1"

    # USDA nutrient number -> NutritionItem field
    NUTRIENT_MAP = {
        "208": "calories",  # Energy (kcal)
        "203": "protein",  # Protein (g)
        "205": "carbs",  # Carbohydrate, by difference (g)
        "204": "fat",  # Total lipid (fat) (g)
        "269": "sugar",  # Sugars, total (g)
        "291": "fibre",  # Fiber, total dietary (g)
        "606": "saturated_fat",  # Fatty acids, total saturated (g)
        "307": "sodium",  # Sodium (mg)
        "601": "cholesterol",  # Cholesterol (mg)
    }

    def __init__(
        self,
        api_key: Optional[str],
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        retry_wait: float = 1.0,
        page_size: int = 5,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Initialize analyzer.

        Args:
            api_key: FoodData Central API key
            timeout_seconds: Per-request timeout
            max_retries: Attempts per analysis
            retry_wait: Backoff multiplier in seconds (0 disables waiting)
            page_size: Matches requested per search
            session: Shared aiohttp session (created lazily if None)

        Raises:
            ConfigurationError: If api_key is missing
        """
        if not api_key:
            raise ConfigurationError("AI_USDA_API_KEY is required for the USDA analyzer")

        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_wait = retry_wait
        self.page_size = page_size
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> USDANutritionAnalyzer:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def analyzer_type(self) -> AnalyzerType:
        return AnalyzerType.API

    def supports(self, input_kind: InputKind) -> bool:
        return input_kind != InputKind.IMAGE

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        """
        Search FoodData Central and map the best match.

        Raises:
            AnalysisTimeoutError: Request timed out
            NetworkError: Upstream error after retries
            NotFoundError: Zero hits
        """
        query = food_input.raw_text.strip()
        params: Dict[str, Any] = {
            "api_key": self.api_key,
            "query": query,
            "pageSize": self.page_size,
        }
        if food_input.input_kind == InputKind.BARCODE:
            params["dataType"] = "Branded"
            params["pageSize"] = 1

        data: Dict[str, Any] = {}
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_wait, max=8),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        ):
            with attempt:
                data = await self._search(params)

        foods: List[Dict[str, Any]] = data.get("foods") or []
        if not foods:
            raise NotFoundError(f"USDA has no match for '{query}'")

        best = foods[0]
        item = self.to_item(best)
        logger.info("USDA match", query=query, fdc_id=best.get("fdcId"), food=item.name)

        return NutritionResult(
            items=[item],
            confidence=USDA_CONFIDENCE,
            source=ResultSource.API,
            suggestions=[
                f"Also matched: {food['description']}"
                for food in foods[1:]
                if food.get("description")
            ],
        )

    async def _search(self, params: Dict[str, Any]) -> Dict[str, Any]:
        session = self._get_session()
        url = f"{self.BASE_URL}/foods/search"
        try:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status == 429:
                    logger.warning("USDA API rate limit")
                    raise NetworkError("USDA API rate limit")

                if response.status >= 400:
                    raise NetworkError(f"USDA API error: {response.status}")

                return await response.json()

        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError("USDA API timeout") from e
        except aiohttp.ClientError as e:
            logger.warning("USDA API client error", error=str(e))
            raise NetworkError(f"USDA API client error: {e}") from e

    @classmethod
    def to_item(cls, food: Dict[str, Any]) -> NutritionItem:
        """Map one search hit to a NutritionItem (values per 100g)."""
        values: Dict[str, float] = {}
        for nutrient in food.get("foodNutrients") or []:
            number = str(nutrient.get("nutrientNumber", ""))
            field_name = cls.NUTRIENT_MAP.get(number)
            amount = nutrient.get("value")
            if field_name and amount is not None and field_name not in values:
                values[field_name] = max(float(amount), 0.0)

        return NutritionItem(
            name=food.get("description") or "Unknown food",
            calories=values.pop("calories", 0.0),
            protein=values.pop("protein", 0.0),
            carbs=values.pop("carbs", 0.0),
            fat=values.pop("fat", 0.0),
            **values,
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def ping(self) -> bool:
        """Key is configured. No request is sent, to spare quota."""
        return bool(self.api_key)

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
