"""Application configuration.

Environment-driven settings with ``.env`` support. Read once at startup
and passed explicitly to the ServiceRegistry.

Environment variables:
    OPENAI_API_KEY        OpenAI key (absent -> stub AI analyzer)
    OPENAI_MODEL          Text model (default gpt-4o-mini)
    OPENAI_VISION_MODEL   Image model (default gpt-4o)
    AI_USDA_API_KEY       USDA FoodData Central key (absent -> no API analyzer)
    ANALYSIS_TIMEOUT_S    Per-backend timeout in seconds (default 30)
    ANALYSIS_CACHE_TTL_S  Cache TTL in seconds (default 3600)
    ANALYZER_ORDER        Comma list, e.g. "regional,ai,database,api"
    ANALYSIS_REGION       Region code for prompts (default AU)
    LOG_LEVEL             Logging level (default INFO)
    LOG_FORMAT            "console" or "json" (default console)
"""

from __future__ import annotations

import os
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from macro_analysis.domain.analysis.models import DEFAULT_ANALYZER_ORDER, AnalyzerType
from macro_analysis.domain.shared.errors import ConfigurationError

class AppConfiguration(BaseModel):
    """
    Immutable application settings.

    Also serves as the secure configuration provider: backends are
    selected from ``has_ai_configuration`` and ``has_nutrition_apis``.

    Example:
        >>> config = AppConfiguration(openai_api_key=None)
        >>> config.has_ai_configuration()
        False
    """

    model_config = ConfigDict(frozen=True)

    openai_api_key: Optional[str] = Field(None, repr=False)
    openai_model: str = "gpt-4o-mini"
    openai_vision_model: str = "gpt-4o"
    usda_api_key: Optional[str] = Field(None, repr=False)

    analysis_timeout_s: float = Field(30.0, gt=0)
    cache_ttl_s: int = Field(3600, gt=0)
    analyzer_order: Tuple[AnalyzerType, ...] = DEFAULT_ANALYZER_ORDER
    region: str = "AU"

    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("openai_api_key", "usda_api_key")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("analyzer_order")
    @classmethod
    def unique_order(cls, v: Tuple[AnalyzerType, ...]) -> Tuple[AnalyzerType, ...]:
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate analyzer in order: {[t.value for t in v]}")
        return v

    @field_validator("log_format")
    @classmethod
    def known_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError(f"LOG_FORMAT must be 'console' or 'json', got {v!r}")
        return v

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> AppConfiguration:
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read (defaults to os.environ)
            dotenv: Load a ``.env`` file first (never overrides set vars)

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        if dotenv and environ is None:
            load_dotenv(override=False)
        env = os.environ if environ is None else environ

        fields: Dict[str, object] = {
            "openai_api_key": env.get("OPENAI_API_KEY"),
            "usda_api_key": env.get("AI_USDA_API_KEY"),
        }
        optional = {
            "openai_model": "OPENAI_MODEL",
            "openai_vision_model": "OPENAI_VISION_MODEL",
            "analysis_timeout_s": "ANALYSIS_TIMEOUT_S",
            "cache_ttl_s": "ANALYSIS_CACHE_TTL_S",
            "region": "ANALYSIS_REGION",
            "log_level": "LOG_LEVEL",
            "log_format": "LOG_FORMAT",
        }
        for field_name, var in optional.items():
            if env.get(var):
                fields[field_name] = env[var]

        order = env.get("ANALYZER_ORDER")
        try:
            if order:
                fields["analyzer_order"] = tuple(
                    AnalyzerType(part.strip().lower()) for part in order.split(",") if part.strip()
                )
            return cls(**fields)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def has_ai_configuration(self) -> bool:
        return self.openai_api_key is not None

    def has_nutrition_apis(self) -> bool:
        return self.usda_api_key is not None

    def configuration_status(self) -> Dict[str, bool]:
        """Which integrations are configured. Never exposes secrets."""
        return {
            "hasAIConfiguration": self.has_ai_configuration(),
            "hasNutritionAPIs": self.has_nutrition_apis(),
            "OpenAI": self.openai_api_key is not None,
            "USDA": self.usda_api_key is not None,
        }
