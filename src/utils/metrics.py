"""
Prometheus Metrics Collector

In-process metrics for the intelligence pipeline, exported in the
Prometheus text exposition format (text/plain; version=0.0.4).
"""
import time
import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field


@dataclass
class MetricValue:
    """Single metric value with optional labels."""
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class _LabeledMetric:
    """Shared storage for metrics keyed by a label set."""

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self._values: Dict[tuple, float] = {}
        self._lock = threading.Lock()

    def _label_key(self, labels: Dict[str, str]) -> tuple:
        return tuple(sorted(labels.items()))

    def value(self, **labels: str) -> float:
        """Current value for one label set (0 if never touched)."""
        with self._lock:
            return self._values.get(self._label_key(labels), 0.0)

    def collect(self) -> List[MetricValue]:
        with self._lock:
            return [MetricValue(value=v, labels=dict(k)) for k, v in self._values.items()]


class Counter(_LabeledMetric):
    """Cumulative metric that only goes up."""

    kind = "counter"

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        key = self._label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount


class Gauge(_LabeledMetric):
    """Metric that can go up and down."""

    kind = "gauge"

    def set(self, value: float, **labels: str) -> None:
        with self._lock:
            self._values[self._label_key(labels)] = value

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        key = self._label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def dec(self, amount: float = 1.0, **labels: str) -> None:
        self.inc(-amount, **labels)


class Histogram:
    """
    Prometheus Histogram metric.
    Samples observations and counts them in cumulative buckets.
    """

    kind = "histogram"

    # Default buckets suitable for HTTP request latencies (in seconds)
    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self.buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._values: Dict[tuple, Dict] = {}
        self._lock = threading.Lock()

    def observe(self, value: float, **labels: str) -> None:
        key = tuple(sorted(labels.items()))
        with self._lock:
            data = self._values.setdefault(
                key, {"buckets": {b: 0 for b in self.buckets}, "sum": 0.0, "count": 0}
            )
            data["sum"] += value
            data["count"] += 1
            for bucket in self.buckets:
                if value <= bucket:
                    data["buckets"][bucket] += 1

    def lines(self) -> List[str]:
        """Exposition lines for every label set (buckets, +Inf, sum, count)."""
        result = []
        with self._lock:
            for key, data in self._values.items():
                base_labels = dict(key)
                for bucket in self.buckets:
                    labels = _format_labels({**base_labels, "le": str(bucket)})
                    result.append(f"{self.name}_bucket{labels} {data['buckets'][bucket]}")
                result.append(f"{self.name}_bucket{_format_labels({**base_labels, 'le': '+Inf'})} {data['count']}")
                result.append(f"{self.name}_sum{_format_labels(base_labels)} {data['sum']}")
                result.append(f"{self.name}_count{_format_labels(base_labels)} {data['count']}")
        return result


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, histogram: Histogram, **labels: str):
        self.histogram = histogram
        self.labels = labels
        self.start_time: Optional[float] = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        if self.start_time is not None:
            self.histogram.observe(time.perf_counter() - self.start_time, **self.labels)


def _format_labels(labels: Dict[str, str]) -> str:
    """Format labels as Prometheus label string."""
    if not labels:
        return ""
    parts = [f'{k}="{v}"' for k, v in sorted(labels.items())]
    return "{" + ",".join(parts) + "}"


class MetricsRegistry:
    """
    Central registry for all application metrics.
    Provides singleton access and Prometheus text format export.
    """

    _instance: Optional["MetricsRegistry"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._metrics: Dict[str, Counter | Gauge | Histogram] = {}
        self._initialized = True
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        """Initialize all application metrics."""

        # ============================================
        # REQUEST METRICS
        # ============================================
        self.requests_total = self.register(Counter(
            "li_requests_total",
            "Total HTTP requests by endpoint and status",
            ["endpoint", "status"]
        ))

        self.request_duration = self.register(Histogram(
            "li_request_duration_seconds",
            "HTTP request duration in seconds",
            ["endpoint"]
        ))

        # ============================================
        # SESSION & ENRICHMENT METRICS
        # ============================================
        self.sessions_initialized = self.register(Counter(
            "li_sessions_initialized_total",
            "Session initializations by outcome",
            ["outcome"]
        ))

        self.enrichment_invocations = self.register(Counter(
            "li_enrichment_invocations_total",
            "Research provider invocations (one per deduplicated request)"
        ))

        self.enrichment_joins = self.register(Counter(
            "li_enrichment_joins_total",
            "Callers that joined an already in-flight enrichment"
        ))

        self.enrichment_failures = self.register(Counter(
            "li_enrichment_failures_total",
            "Failed enrichments by reason",
            ["reason"]
        ))

        self.enrichment_duration = self.register(Histogram(
            "li_enrichment_duration_seconds",
            "Research provider call duration",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
        ))

        self.inflight_enrichments = self.register(Gauge(
            "li_inflight_enrichments",
            "Enrichment tasks currently pending"
        ))

        # ============================================
        # CONVERSATION METRICS
        # ============================================
        self.stage_transitions = self.register(Counter(
            "li_stage_transitions_total",
            "Applied stage transitions",
            ["from_stage", "to_stage"]
        ))

        self.capabilities_recorded = self.register(Counter(
            "li_capabilities_recorded_total",
            "Capability usage events",
            ["capability"]
        ))

        # ============================================
        # STREAMING METRICS
        # ============================================
        self.stream_frames = self.register(Counter(
            "li_stream_frames_total",
            "Streamed chat frames by type",
            ["type"]
        ))

        self.stream_duration = self.register(Histogram(
            "li_stream_duration_seconds",
            "Full chat turn streaming duration",
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
        ))

        # ============================================
        # STORE METRICS
        # ============================================
        self.store_failures = self.register(Counter(
            "li_store_failures_total",
            "Context store failures by operation",
            ["operation"]
        ))

    def register(self, metric):
        self._metrics[metric.name] = metric
        return metric

    def export(self) -> str:
        """
        Export all metrics in Prometheus text exposition format.

        Format specification:
        https://prometheus.io/docs/instrumenting/exposition_formats/
        """
        lines = []

        for name, metric in self._metrics.items():
            lines.append(f"# HELP {name} {metric.description}")
            lines.append(f"# TYPE {name} {metric.kind}")

            if isinstance(metric, Histogram):
                lines.extend(metric.lines())
            else:
                for mv in metric.collect():
                    lines.append(f"{name}{_format_labels(mv.labels)} {mv.value}")

            lines.append("")  # Empty line between metrics

        return "\n".join(lines)

    def reset(self) -> None:
        """Reset all metrics. Useful for testing."""
        self._metrics.clear()
        self._setup_metrics()


# Global metrics instance
metrics = MetricsRegistry()
