"""
Tests for Prometheus metrics collection.
"""
from src.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    metrics,
)


class TestCounter:
    """Tests for Counter metric."""

    def test_counter_increment(self):
        counter = Counter("test_counter", "Test counter")
        counter.inc()
        counter.inc(2)

        assert counter.value() == 3

    def test_counter_with_labels(self):
        counter = Counter("test_labeled", "Labeled counter", ["status"])
        counter.inc(status="ok")
        counter.inc(status="ok")
        counter.inc(status="error")

        assert counter.value(status="ok") == 2
        assert counter.value(status="error") == 1
        assert counter.value(status="never") == 0


class TestGauge:
    """Tests for Gauge metric."""

    def test_gauge_set(self):
        gauge = Gauge("test_gauge", "Test gauge")
        gauge.set(5)
        assert gauge.value() == 5

    def test_gauge_inc_dec(self):
        gauge = Gauge("test_gauge", "Test gauge")
        gauge.inc(3)
        gauge.dec()
        assert gauge.value() == 2


class TestHistogram:
    """Tests for Histogram metric."""

    def test_histogram_lines(self):
        histogram = Histogram("test_hist", "Test histogram", buckets=(0.1, 1.0))
        histogram.observe(0.05)
        histogram.observe(0.5)

        lines = histogram.lines()

        assert 'test_hist_bucket{le="0.1"} 1' in lines
        assert 'test_hist_bucket{le="1.0"} 2' in lines
        assert 'test_hist_bucket{le="+Inf"} 2' in lines
        assert "test_hist_count 2" in lines


class TestTimer:
    """Tests for Timer context manager."""

    def test_timer_records_duration(self):
        histogram = Histogram("test_timer", "Timer histogram")

        with Timer(histogram, endpoint="test"):
            pass

        assert 'test_timer_count{endpoint="test"} 1' in histogram.lines()


class TestMetricsRegistry:
    """Tests for MetricsRegistry singleton."""

    def test_registry_is_singleton(self):
        assert MetricsRegistry() is MetricsRegistry()
        assert metrics is MetricsRegistry()

    def test_registry_has_application_metrics(self):
        for name in [
            "requests_total",
            "request_duration",
            "sessions_initialized",
            "enrichment_invocations",
            "enrichment_joins",
            "enrichment_failures",
            "inflight_enrichments",
            "stage_transitions",
            "capabilities_recorded",
            "stream_frames",
            "store_failures",
        ]:
            assert hasattr(metrics, name), name

    def test_export_prometheus_format(self):
        metrics.requests_total.inc(endpoint="/health", status="200")
        metrics.inflight_enrichments.set(2)

        output = metrics.export()

        assert "# HELP li_requests_total" in output
        assert "# TYPE li_requests_total counter" in output
        assert 'li_requests_total{endpoint="/health",status="200"} 1.0' in output
        assert "# TYPE li_inflight_enrichments gauge" in output
        assert "li_inflight_enrichments 2" in output

    def test_reset_clears_metrics(self):
        metrics.requests_total.inc(endpoint="/health", status="200")

        metrics.reset()

        assert metrics.requests_total.collect() == []
