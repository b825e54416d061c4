"""
Unit tests for MetricsRegistry.
"""

import pytest

from macro_analysis.infrastructure.metrics import ANALYZER_LATENCY, MetricsRegistry


class TestCounters:
    def test_same_tags_same_counter(self) -> None:
        metrics = MetricsRegistry()

        metrics.counter("calls", analyzer="ai", outcome="success").inc()
        metrics.counter("calls", outcome="success", analyzer="ai").inc(2)

        assert metrics.counter_value("calls", analyzer="ai", outcome="success") == 3
        assert metrics.counter_value("calls", analyzer="api", outcome="success") == 0

    def test_counter_cannot_decrease(self) -> None:
        counter = MetricsRegistry().counter("calls")

        with pytest.raises(ValueError):
            counter.inc(-1)
        assert counter.value() == 0


class TestHistograms:
    def test_summary(self) -> None:
        metrics = MetricsRegistry()
        latency = metrics.histogram(ANALYZER_LATENCY, analyzer="ai")
        for value in range(1, 101):
            latency.observe(float(value))

        summary = latency.summary()

        assert summary["count"] == 100
        assert summary["min"] == 1
        assert summary["max"] == 100
        assert summary["avg"] == 50.5
        assert summary["p95"] == 95

    def test_bounded_samples(self) -> None:
        latency = MetricsRegistry(latency_window=3).histogram("latency")
        for value in (1.0, 2.0, 3.0, 4.0):
            latency.observe(value)

        assert latency.summary()["min"] == 2

    def test_empty_summary(self) -> None:
        assert MetricsRegistry().histogram("latency").summary()["count"] == 0


class TestSnapshot:
    def test_snapshot_and_reset(self) -> None:
        metrics = MetricsRegistry()
        metrics.counter("calls", outcome="success").inc()
        metrics.histogram("latency").observe(12.0)

        snapshot = metrics.snapshot()

        assert snapshot["counters"] == [
            {"name": "calls", "tags": {"outcome": "success"}, "value": 1}
        ]
        assert snapshot["histograms"][0]["count"] == 1
        assert snapshot["generated_at"] > 0

        metrics.reset()
        assert metrics.snapshot()["counters"] == []
