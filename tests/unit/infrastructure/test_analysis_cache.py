"""
Unit tests for InMemoryAnalysisCache.
"""

from unittest.mock import patch

from macro_analysis.domain.analysis.models import CacheEntry, CompositeNutritionRecord
from macro_analysis.infrastructure.cache.analysis_cache import InMemoryAnalysisCache


def _record(description: str = "banana") -> CompositeNutritionRecord:
    return CompositeNutritionRecord(
        description=description, calories=105, protein=1.3, carbs=27, fat=0.4, confidence=0.9
    )


class TestGetSet:
    """Test basic reads and writes."""

    async def test_miss(self, cache: InMemoryAnalysisCache) -> None:
        assert await cache.get("nope") is None

    async def test_hit_returns_equal_copy(self, cache: InMemoryAnalysisCache) -> None:
        record = _record()
        await cache.set("fp", record)

        first = await cache.get("fp")
        second = await cache.get("fp")

        assert first == record
        assert first is not record
        assert first is not second

    async def test_overwrite(self, cache: InMemoryAnalysisCache) -> None:
        await cache.set("fp", _record("banana"))
        await cache.set("fp", _record("apple"))

        cached = await cache.get("fp")

        assert cached is not None
        assert cached.description == "apple"
        assert len(cache) == 1

    async def test_remove_and_clear(self, cache: InMemoryAnalysisCache) -> None:
        await cache.set("a", _record())
        await cache.set("b", _record())

        await cache.remove("a")
        await cache.remove("missing")
        assert not await cache.contains("a")
        assert await cache.contains("b")

        await cache.clear()
        assert len(cache) == 0


class TestExpiry:
    """Test TTL handling."""

    async def test_default_ttl(self, cache: InMemoryAnalysisCache, clock) -> None:
        await cache.set("fp", _record())

        clock.advance(3599)
        assert await cache.get("fp") is not None

        clock.advance(1)
        assert await cache.get("fp") is None
        assert len(cache) == 0

    async def test_custom_ttl(self, cache: InMemoryAnalysisCache, clock) -> None:
        await cache.set("fp", _record(), ttl_seconds=10)

        clock.advance(10)

        assert await cache.get("fp") is None

    async def test_remove_expired(self, cache: InMemoryAnalysisCache, clock) -> None:
        await cache.set("short", _record(), ttl_seconds=5)
        await cache.set("long", _record(), ttl_seconds=500)

        clock.advance(60)
        removed = cache.remove_expired()

        assert removed == 1
        assert len(cache) == 1
        assert await cache.contains("long")


class TestResilience:
    """Cache failures never escape."""

    async def test_corrupt_entry_is_a_miss(self, cache: InMemoryAnalysisCache, clock) -> None:
        cache._entries["fp"] = CacheEntry(
            fingerprint="fp", payload="{not json", expires_at=clock() + 60
        )

        assert await cache.get("fp") is None
        assert len(cache) == 0

    async def test_unserializable_record_skips_write(self, cache: InMemoryAnalysisCache) -> None:
        record = _record()
        with patch.object(
            CompositeNutritionRecord, "model_dump_json", side_effect=ValueError("boom")
        ):
            await cache.set("fp", record)

        assert len(cache) == 0


class TestSize:
    """Test footprint estimate."""

    async def test_size_bytes(self) -> None:
        cache = InMemoryAnalysisCache()
        assert await cache.size_bytes() == 0

        record = _record()
        await cache.set("fp", record)

        assert await cache.size_bytes() == len("fp") + len(record.model_dump_json())
