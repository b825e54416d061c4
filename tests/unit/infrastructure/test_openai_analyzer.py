"""
Unit tests for OpenAINutritionAnalyzer.

The AsyncOpenAI client is replaced by a mock; no request leaves the process.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from macro_analysis.domain.analysis.models import AnalyzerType, FoodInput, InputKind
from macro_analysis.domain.shared.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    ApiKeyMissingError,
    NetworkError,
    NotFoundError,
)
from macro_analysis.infrastructure.analyzers.openai_analyzer import OpenAINutritionAnalyzer
from macro_analysis.infrastructure.analyzers.prompts import build_messages, build_system_prompt

EGGS_AND_TOAST = {
    "items": [
        {"description": "eggs", "calories": 140, "protein": 12, "carbs": 1, "fat": 10,
         "cholesterol": 370, "sugar": None},
        {"description": "toast", "calories": 80, "protein": 3, "carbs": 15, "fat": 1,
         "fiber": 1.2, "saturatedFat": 0.2},
    ],
    "confidence": 0.85,
    "suggestions": ["Specify the bread type"],
}


def _completion(content: str) -> MagicMock:
    completion = MagicMock()
    completion.choices = [MagicMock(message=MagicMock(content=content))]
    completion.usage.total_tokens = 321
    return completion


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=_completion(json.dumps(EGGS_AND_TOAST))
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def analyzer(client: MagicMock) -> OpenAINutritionAnalyzer:
    return OpenAINutritionAnalyzer(client=client, timeout=1.0)


class TestConstruction:
    """Test configuration handling."""

    def test_missing_key_raises(self) -> None:
        with pytest.raises(ApiKeyMissingError):
            OpenAINutritionAnalyzer(api_key=None)

    def test_slot(self, analyzer: OpenAINutritionAnalyzer) -> None:
        assert analyzer.analyzer_type == AnalyzerType.AI
        assert all(analyzer.supports(kind) for kind in InputKind)


class TestAnalyze:
    """Test requests and response mapping."""

    async def test_composite_answer(
        self, analyzer: OpenAINutritionAnalyzer, client: MagicMock
    ) -> None:
        result = await analyzer.analyze(FoodInput(raw_text="2 eggs and toast"))

        assert [i.name for i in result.items] == ["eggs", "toast"]
        eggs, toast = result.items
        assert eggs.cholesterol == 370
        assert eggs.sugar is None
        assert toast.fibre == 1.2
        assert toast.saturated_fat == 0.2
        assert result.confidence == 0.85
        assert result.source == "ai"
        assert result.suggestions == ["Specify the bread type"]

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}

    async def test_image_uses_vision_model(
        self, analyzer: OpenAINutritionAnalyzer, client: MagicMock
    ) -> None:
        await analyzer.analyze(FoodInput(input_kind=InputKind.IMAGE, image=b"\xff\xd8"))

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        user_content = kwargs["messages"][1]["content"]
        assert user_content[1]["type"] == "image_url"
        assert user_content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    async def test_timeout(self, client: MagicMock) -> None:
        async def slow(**kwargs):
            await asyncio.sleep(1)

        client.chat.completions.create = slow
        analyzer = OpenAINutritionAnalyzer(client=client, timeout=0.01)

        with pytest.raises(AnalysisTimeoutError):
            await analyzer.analyze(FoodInput(raw_text="banana"))

    async def test_connection_error(
        self, analyzer: OpenAINutritionAnalyzer, client: MagicMock
    ) -> None:
        client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=MagicMock()
        )

        with pytest.raises(NetworkError):
            await analyzer.analyze(FoodInput(raw_text="banana"))

    async def test_empty_items(self, analyzer: OpenAINutritionAnalyzer, client: MagicMock) -> None:
        client.chat.completions.create.return_value = _completion('{"items": []}')

        with pytest.raises(NotFoundError):
            await analyzer.analyze(FoodInput(raw_text="banana"))


class TestParseResponse:
    """Test tolerant response parsing."""

    def test_bare_array_in_prose(self, analyzer: OpenAINutritionAnalyzer) -> None:
        content = 'Here you go: [{"name": "banana", "calories": 105}] Enjoy!'

        result = analyzer.parse_response(content)

        assert result.items[0].name == "banana"
        assert result.items[0].protein == 0
        assert result.confidence == 0.8

    def test_invalid_json(self, analyzer: OpenAINutritionAnalyzer) -> None:
        with pytest.raises(AnalysisError):
            analyzer.parse_response("I cannot help with that")

    def test_skips_invalid_items(self, analyzer: OpenAINutritionAnalyzer) -> None:
        content = json.dumps(
            {
                "items": [
                    {"description": "apple", "calories": 95},
                    {"description": "negative", "calories": -5},
                    {"calories": 10},
                    "junk",
                ]
            }
        )

        result = analyzer.parse_response(content)

        assert [i.name for i in result.items] == ["apple"]

    @pytest.mark.parametrize("raw,expected", [(1.7, 1.0), (-1, 0.0), ("high", 0.8), (None, 0.8)])
    def test_confidence_coerced(
        self, analyzer: OpenAINutritionAnalyzer, raw, expected: float
    ) -> None:
        content = json.dumps({"items": [{"description": "apple", "calories": 95}], "confidence": raw})

        assert analyzer.parse_response(content).confidence == expected


class TestPrompts:
    """Test prompt construction."""

    def test_system_prompt_region(self) -> None:
        assert "AUSNUT" in build_system_prompt("AU")
        assert "FoodData Central" in build_system_prompt("us")
        assert "AUSNUT" not in build_system_prompt("NZ")

    def test_speech_and_context(self) -> None:
        food = FoodInput(
            raw_text="two slices margheritsa", input_kind=InputKind.SPEECH,
            context="recipe_analysis",
        )

        messages = build_messages(food)

        assert messages[0]["role"] == "system"
        assert "Speech transcript" in messages[1]["content"]
        assert "one item per ingredient" in messages[1]["content"]


class TestLifecycle:
    """Test ping and close."""

    async def test_ping_and_close(self, analyzer: OpenAINutritionAnalyzer, client: MagicMock) -> None:
        assert await analyzer.ping() is True

        await analyzer.aclose()

        client.close.assert_awaited_once()
