"""In-process metrics for the analysis pipeline.

Outcome counters and latency windows keyed by metric name and tags.
Thread-safe, no exporter: snapshots are read by health checks and tests.
"""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Any, Deque, Dict, List, Tuple, TypedDict

MetricKey = Tuple[str, Tuple[Tuple[str, str], ...]]

ANALYZER_CALLS = "analyzer_calls_total"
ANALYZER_LATENCY = "analyzer_latency_ms"
CACHE_LOOKUPS = "analysis_cache_total"
ANALYSIS_REQUESTS = "analysis_requests_total"

DEFAULT_LATENCY_WINDOW = 1000


def _metric_key(name: str, tags: Dict[str, str]) -> MetricKey:
    return name, tuple(sorted(tags.items()))


class Counter:
    """Monotonic count of outcomes (successes, failures, cache hits)."""

    __slots__ = ("name", "tags", "_count", "_lock")

    def __init__(self, name: str, tags: Dict[str, str]) -> None:
        self.name = name
        self.tags = tags
        self._count = 0
        self._lock = Lock()

    def inc(self, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError(f"Counter {self.name} cannot decrease")
        with self._lock:
            self._count += amount

    def value(self) -> int:
        return self._count

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "tags": self.tags, "value": self._count}


class Histogram:
    """
    Sliding window of latency samples (milliseconds).

    Only the most recent ``window`` samples are kept.
    """

    __slots__ = ("name", "tags", "_samples", "_lock")

    def __init__(self, name: str, tags: Dict[str, str], window: int = DEFAULT_LATENCY_WINDOW) -> None:
        self.name = name
        self.tags = tags
        self._samples: Deque[float] = deque(maxlen=window)
        self._lock = Lock()

    def observe(self, value: float) -> None:
        with self._lock:
            self._samples.append(value)

    def summary(self) -> Dict[str, float]:
        """Count, mean, p95, min and max of the current window."""
        with self._lock:
            ordered = sorted(self._samples)
        if not ordered:
            return {"count": 0, "avg": 0.0, "p95": 0.0, "min": 0.0, "max": 0.0}
        last = len(ordered) - 1
        return {
            "count": len(ordered),
            "avg": sum(ordered) / len(ordered),
            "p95": ordered[int(0.95 * last)],
            "min": ordered[0],
            "max": ordered[last],
        }

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "tags": self.tags, **self.summary()}


class MetricsSnapshot(TypedDict):
    counters: List[Dict[str, Any]]
    histograms: List[Dict[str, Any]]
    generated_at: float


class MetricsRegistry:
    """
    Registry of counters and histograms.

    One instance is owned by the ServiceRegistry and injected into the
    fallback strategy and orchestrator.

    Example:
        >>> metrics = MetricsRegistry()
        >>> metrics.counter("analysis_requests_total", outcome="success").inc()
        >>> metrics.counter_value("analysis_requests_total", outcome="success")
        1
    """

    def __init__(self, latency_window: int = DEFAULT_LATENCY_WINDOW) -> None:
        self.latency_window = latency_window
        self._counters: Dict[MetricKey, Counter] = {}
        self._histograms: Dict[MetricKey, Histogram] = {}
        self._lock = Lock()

    def counter(self, name: str, **tags: str) -> Counter:
        key = _metric_key(name, tags)
        with self._lock:
            return self._counters.setdefault(key, Counter(name, tags))

    def histogram(self, name: str, **tags: str) -> Histogram:
        key = _metric_key(name, tags)
        with self._lock:
            if key not in self._histograms:
                self._histograms[key] = Histogram(name, tags, window=self.latency_window)
            return self._histograms[key]

    def counter_value(self, name: str, **tags: str) -> int:
        """Current value of a counter, 0 if it was never incremented."""
        with self._lock:
            ctr = self._counters.get(_metric_key(name, tags))
        return ctr.value() if ctr is not None else 0

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        return {
            "counters": [c.as_dict() for c in counters],
            "histograms": [h.as_dict() for h in histograms],
            "generated_at": time.time(),
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
