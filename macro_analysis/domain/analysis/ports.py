"""
Ports (Interfaces) for Analysis Dependencies.

Abstract interfaces for the collaborators used by the fallback
strategy and the orchestrator. Concrete adapters live under
``macro_analysis.infrastructure``.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from macro_analysis.domain.analysis.models import (
    AnalyzerType,
    CompositeNutritionRecord,
    FoodInput,
    InputKind,
    NutritionEntry,
    NutritionResult,
)


@runtime_checkable
class INutritionAnalyzer(Protocol):
    """
    Port for an analysis backend.

    Implementations:
    - OpenAI analyzer (AI, possibly composite results)
    - Stub analyzer (AI, used without credentials)
    - Food database analyzer (local and regional catalogs)
    - USDA analyzer (external API)
    """

    @property
    def analyzer_type(self) -> AnalyzerType:
        """Precedence slot this analyzer fills."""
        ...

    def supports(self, input_kind: InputKind) -> bool:
        """Whether the analyzer can handle this kind of input."""
        ...

    async def analyze(self, food_input: FoodInput) -> NutritionResult:
        """
        Analyze a food input.

        Args:
            food_input: Normalized request

        Returns:
            NutritionResult with one or more items

        Raises:
            NotFoundError: No data for the input
            AnalysisTimeoutError: Backend deadline exceeded
            NetworkError: Transport or upstream failure
            ApiKeyMissingError: Credentials absent or rejected
        """
        ...

    async def ping(self) -> bool:
        """Cheap health probe. Must not issue a paid request."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


@runtime_checkable
class IAnalysisCache(Protocol):
    """
    Port for the fingerprint-addressed result cache.

    Implementations never raise: failures are logged and treated
    as a miss.
    """

    async def get(self, fingerprint: str) -> Optional[CompositeNutritionRecord]:
        ...

    async def set(
        self,
        fingerprint: str,
        record: CompositeNutritionRecord,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        ...

    async def remove(self, fingerprint: str) -> None:
        ...

    async def clear(self) -> None:
        ...

    async def size_bytes(self) -> int:
        ...


@runtime_checkable
class INutritionStore(Protocol):
    """
    Port for the persistent nutrition journal store.

    Used by the surrounding app, never by the orchestrator.

    Raises:
        StoreError: On storage failure or invalid query
    """

    async def save(self, entry: NutritionEntry) -> None:
        ...

    async def fetch_all(self) -> List[NutritionEntry]:
        ...

    async def fetch_by_id(self, entry_id: str) -> Optional[NutritionEntry]:
        ...

    async def delete_by_id(self, entry_id: str) -> bool:
        ...

    async def search(self, query: str) -> List[NutritionEntry]:
        ...

    async def fetch_by_date_range(
        self, start: datetime, end: datetime
    ) -> List[NutritionEntry]:
        ...

    async def count(self) -> int:
        ...
