"""
OpenAI nutrition analyzer.

Sends a structured prompt to the chat completions API in JSON mode and
maps the answer to a NutritionResult. Composite meals come back as
several items.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import ValidationError

from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    FoodInput,
    InputKind,
    NutritionItem,
    NutritionResult,
    ResultSource,
)
from macro_analysis.domain.shared.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    ApiKeyMissingError,
    NetworkError,
    NotFoundError,
)
from macro_analysis.infrastructure.analyzers.prompts import build_messages

logger = structlog.get_logger(__name__)

DEFAULT_CONFIDENCE = 0.8

# response key -> NutritionItem field
_MICRO_KEYS = {
    "sugar": "sugar",
    "fibre": "fibre",
    "fiber": "fibre",
    "saturatedFat": "saturated_fat",
    "saturated_fat": "saturated_fat",
    "sodium": "sodium",
    "cholesterol": "cholesterol",
}


class OpenAINutritionAnalyzer:
    """
    AI analyzer backed by OpenAI chat completions.

    Text, speech and barcode inputs use ``model``; images are sent as a
    base64 data URL to ``vision_model``.

    Example:
        >>> analyzer = OpenAINutritionAnalyzer(api_key="sk-...")
        >>> result = await analyzer.analyze(FoodInput(raw_text="2 eggs and toast"))
        >>> [item.name for item in result.items]
        ['eggs', 'toast']
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        vision_model: str = "gpt-4o",
        timeout: float = 30.0,
        region: str = "AU",
        temperature: float = 0.2,
        max_tokens: int = 1500,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize analyzer.

        Args:
            api_key: OpenAI API key
            model: Model for text inputs
            vision_model: Model for image inputs
            timeout: Per-request deadline in seconds
            region: Region code for prompt guidelines
            temperature: Sampling temperature
            max_tokens: Max tokens in response
            client: Pre-configured AsyncOpenAI client (for testing)

        Raises:
            ApiKeyMissingError: If neither api_key nor client is provided
        """
        if client is None:
            if not api_key:
                raise ApiKeyMissingError("OPENAI_API_KEY is not configured")
            client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=1)

        self._client = client
        self.model = model
        self.vision_model = vision_model
        self.timeout = timeout
        self.region = region
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def analyzer_type(self) -> AnalyzerType:
        return AnalyzerType.AI

    def supports(self, input_kind: InputKind) -> bool:
        return True

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        """
        Analyze a food input with OpenAI.

        Raises:
            AnalysisTimeoutError: Request exceeded ``timeout``
            ApiKeyMissingError: Key rejected by OpenAI
            NetworkError: Connection failure or API error status
            NotFoundError: Answer contained no usable items
            AnalysisError: Answer was not valid JSON
        """
        model = self.vision_model if food_input.input_kind == InputKind.IMAGE else self.model
        messages = build_messages(food_input, region=self.region)

        try:
            completion = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise AnalysisTimeoutError(f"OpenAI request timed out after {self.timeout}s") from e
        except openai.AuthenticationError as e:
            raise ApiKeyMissingError("OpenAI rejected the API key") from e
        except openai.APIConnectionError as e:
            raise NetworkError(f"OpenAI connection failed: {e}") from e
        except openai.APIError as e:
            raise NetworkError(f"OpenAI API error: {e}") from e

        content = completion.choices[0].message.content or ""
        result = self.parse_response(content)

        logger.info(
            "OpenAI analysis completed",
            model=model,
            items=len(result.items),
            confidence=result.confidence,
            tokens=getattr(completion.usage, "total_tokens", None),
        )
        return result

    def parse_response(self, content: str) -> NutritionResult:
        """
        Map a model answer to a NutritionResult.

        Accepts the JSON object format requested in the prompt, or a bare
        JSON array embedded anywhere in the text. Items without a
        description or calories are skipped.

        Raises:
            AnalysisError: No JSON could be extracted
            NotFoundError: No usable items
        """
        data = self._load_json(content)

        suggestions: List[str] = []
        confidence = DEFAULT_CONFIDENCE
        if isinstance(data, dict):
            raw_items = data.get("items") or []
            confidence = self._coerce_confidence(data.get("confidence"))
            suggestions = [str(s) for s in data.get("suggestions") or [] if s]
        elif isinstance(data, list):
            raw_items = data
        else:
            raise AnalysisError("Unexpected OpenAI response shape")

        items = [item for item in map(self._parse_item, raw_items) if item is not None]
        if not items:
            raise NotFoundError("OpenAI returned no usable food items")

        return NutritionResult(
            items=items,
            confidence=confidence,
            source=ResultSource.AI,
            suggestions=suggestions,
        )

    @staticmethod
    def _load_json(content: str) -> Any:
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            pass

        start, end = content.find("["), content.rfind("]")
        if start == -1 or end <= start:
            logger.error("No JSON in OpenAI response", content=content[:200])
            raise AnalysisError("No JSON found in OpenAI response")
        try:
            return json.loads(content[start : end + 1])
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in OpenAI response", error=str(e))
            raise AnalysisError(f"Invalid JSON in OpenAI response: {e}") from e

    @staticmethod
    def _coerce_confidence(value: Any) -> float:
        try:
            return min(max(float(value), 0.0), 1.0)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE

    @staticmethod
    def _parse_item(raw: Any) -> Optional[NutritionItem]:
        if not isinstance(raw, dict):
            return None
        name = raw.get("description") or raw.get("name")
        if not name or raw.get("calories") is None:
            return None

        fields: Dict[str, Any] = {
            "name": str(name).strip(),
            "calories": raw.get("calories"),
            "protein": raw.get("protein") or 0,
            "carbs": raw.get("carbs") or 0,
            "fat": raw.get("fat") or 0,
        }
        for key, field_name in _MICRO_KEYS.items():
            if raw.get(key) is not None:
                fields[field_name] = raw[key]

        try:
            return NutritionItem(**fields)
        except ValidationError as e:
            logger.warning("Skipping invalid food item", item=name, error=str(e))
            return None

    async def ping(self) -> bool:
        """Client is configured. No request is sent."""
        return self._client is not None

    async def aclose(self) -> None:
        await self._client.close()
