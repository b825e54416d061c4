"""
In-memory analysis cache with TTL support.

Maps request fingerprints to serialized records so repeated requests
skip the paid backends.
"""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Dict, Optional

import structlog
from pydantic import ValidationError

from macro_analysis.domain.analysis.models import CacheEntry, CompositeNutritionRecord

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600


class InMemoryAnalysisCache:
    """
    Fingerprint-addressed record cache with TTL.

    Records are stored as JSON and deserialized on every hit, so a
    caller can never reach cached state through a returned record.
    Expired entries are evicted lazily on lookup, or in bulk through
    ``remove_expired``.

    Never raises: serialization failures are logged and treated as a
    skipped write or a miss.

    Example:
        >>> cache = InMemoryAnalysisCache(default_ttl_seconds=60)
        >>> await cache.set("abc", record)
        >>> (await cache.get("abc")) == record
        True
    """

    def __init__(
        self,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize cache.

        Args:
            default_ttl_seconds: TTL applied when ``set`` gets none (default 1 hour)
            clock: Time source returning unix seconds
        """
        self.default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()

    async def get(self, fingerprint: str) -> Optional[CompositeNutritionRecord]:
        """Get cached record.

        Args:
            fingerprint: Request fingerprint

        Returns:
            Fresh copy of the cached record, or None if missing or expired
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                logger.debug("Cache miss", fingerprint=fingerprint)
                return None

            if entry.is_expired(now):
                del self._entries[fingerprint]
                logger.debug("Cache expired", fingerprint=fingerprint)
                return None

            payload = entry.payload

        try:
            record = CompositeNutritionRecord.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Cache entry unreadable", fingerprint=fingerprint, error=str(e))
            await self.remove(fingerprint)
            return None

        logger.debug("Cache hit", fingerprint=fingerprint)
        return record

    async def set(
        self,
        fingerprint: str,
        record: CompositeNutritionRecord,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Cache a record, overwriting any existing entry.

        Args:
            fingerprint: Request fingerprint
            record: Record to cache
            ttl_seconds: Time-to-live in seconds (defaults to ``default_ttl``)
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        try:
            payload = record.model_dump_json()
        except (ValueError, TypeError) as e:
            logger.warning("Cache write skipped", fingerprint=fingerprint, error=str(e))
            return

        entry = CacheEntry(
            fingerprint=fingerprint,
            payload=payload,
            expires_at=self._clock() + ttl,
        )
        with self._lock:
            self._entries[fingerprint] = entry

        logger.debug("Cached record", fingerprint=fingerprint, ttl=ttl)

    async def contains(self, fingerprint: str) -> bool:
        """Check for an unexpired entry."""
        return (await self.get(fingerprint)) is not None

    async def remove(self, fingerprint: str) -> None:
        with self._lock:
            removed = self._entries.pop(fingerprint, None)
        if removed is not None:
            logger.debug("Cache entry removed", fingerprint=fingerprint)

    async def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cache cleared", entries=count)

    async def size_bytes(self) -> int:
        """Approximate serialized footprint of all entries, in bytes."""
        with self._lock:
            return sum(
                len(key.encode("utf-8")) + len(entry.payload.encode("utf-8"))
                for key, entry in self._entries.items()
            )

    def remove_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired_keys = [
                key for key, entry in self._entries.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._entries[key]

        if expired_keys:
            logger.info("Expired cache entries removed", count=len(expired_keys))

        return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
