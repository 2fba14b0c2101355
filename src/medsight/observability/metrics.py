"""
MedSight Metrics

In-process metrics for monitoring analysis requests.
"""

import time
from collections import defaultdict
from threading import Lock
from typing import Any


def _labels_key(labels: dict[str, str] | None) -> str:
    if not labels:
        return ""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


class Counter:
    """
    Monotonically increasing counter.

    Usage:
        counter = Counter("analyses_total", "Analyses run")
        counter.inc()
        counter.inc(labels={"mode": "clinical"})
    """

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self._values: dict[str, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        key = _labels_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        key = _labels_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def total(self) -> float:
        """Sum across all label combinations."""
        with self._lock:
            return sum(self._values.values())

    def values(self) -> dict[str, float]:
        with self._lock:
            return dict(self._values)


class Gauge:
    """Value that can go up and down (in-flight analyses)."""

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self._values: dict[str, float] = defaultdict(float)
        self._lock = Lock()

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._values[_labels_key(labels)] = value

    def inc(self, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._values[_labels_key(labels)] += value

    def dec(self, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        self.inc(-value, labels)

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._values.get(_labels_key(labels), 0.0)

    def values(self) -> dict[str, float]:
        with self._lock:
            return dict(self._values)


class Histogram:
    """
    Distribution of observed values (latencies).

    Usage:
        with hist.time(labels={"stage": "rank"}):
            rank(...)
    """

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self._sums: dict[str, float] = defaultdict(float)
        self._counts: dict[str, int] = defaultdict(int)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _labels_key(labels)
        with self._lock:
            self._sums[key] += value
            self._counts[key] += 1

    def time(self, labels: dict[str, str] | None = None) -> "_HistogramTimer":
        return _HistogramTimer(self, labels)

    def get_count(self, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counts.get(_labels_key(labels), 0)

    def get_mean(self, labels: dict[str, str] | None = None) -> float:
        key = _labels_key(labels)
        with self._lock:
            count = self._counts.get(key, 0)
            return self._sums[key] / count if count else 0.0

    def summary(self) -> dict[str, dict[str, float]]:
        with self._lock:
            return {
                key: {"count": self._counts[key], "sum": self._sums[key]}
                for key in self._counts
            }


class _HistogramTimer:
    """Context manager for timing with histogram."""

    def __init__(self, histogram: Histogram, labels: dict[str, str] | None) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None

    def __enter__(self) -> "_HistogramTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        if self._start is not None:
            self._histogram.observe(time.perf_counter() - self._start, self._labels)


class MetricsRegistry:
    """Registry for all metrics, keyed by name."""

    def __init__(self) -> None:
        self._metrics: dict[str, Counter | Gauge | Histogram] = {}
        self._lock = Lock()

    def counter(self, name: str, description: str = "") -> Counter:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Counter(name, description)
            return self._metrics[name]  # type: ignore

    def gauge(self, name: str, description: str = "") -> Gauge:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Gauge(name, description)
            return self._metrics[name]  # type: ignore

    def histogram(self, name: str, description: str = "") -> Histogram:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Histogram(name, description)
            return self._metrics[name]  # type: ignore

    def get_all(self) -> dict[str, Any]:
        """Snapshot of every metric, for the /metrics endpoint."""
        with self._lock:
            metrics = dict(self._metrics)
        result: dict[str, Any] = {}
        for name, metric in metrics.items():
            if isinstance(metric, (Counter, Gauge)):
                result[name] = metric.values()
            else:
                result[name] = metric.summary()
        return result


_registry: MetricsRegistry | None = None


def get_registry() -> MetricsRegistry:
    """Get global metrics registry."""
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


def reset_metrics() -> None:
    """Reset global metrics."""
    global _registry
    _registry = None


class MedSightMetrics:
    """Pre-defined pipeline metrics."""

    def __init__(self, registry: MetricsRegistry | None = None) -> None:
        self._registry = registry or get_registry()

    @property
    def analyses(self) -> Counter:
        """Analyses started, by mode."""
        return self._registry.counter("medsight_analyses_total", "Analyses started")

    @property
    def analyses_active(self) -> Gauge:
        return self._registry.gauge("medsight_analyses_active", "Analyses in flight")

    @property
    def rejected_requests(self) -> Counter:
        return self._registry.counter(
            "medsight_rejected_requests_total", "Requests failing validation"
        )

    @property
    def judgment_requests(self) -> Counter:
        """Judgment collaborator calls, by stage."""
        return self._registry.counter(
            "medsight_judgment_requests_total", "Judgment collaborator calls"
        )

    @property
    def judgment_fallbacks(self) -> Counter:
        """Deterministic fallbacks taken, by stage."""
        return self._registry.counter(
            "medsight_judgment_fallbacks_total", "Stage fallbacks after collaborator failure"
        )

    @property
    def vetoes(self) -> Counter:
        """Veto decisions, by type."""
        return self._registry.counter("medsight_vetoes_total", "Veto decisions")

    @property
    def stage_latency(self) -> Histogram:
        return self._registry.histogram("medsight_stage_latency_seconds", "Stage latency")


def get_metrics() -> MedSightMetrics:
    """Get pipeline metrics bound to the global registry."""
    return MedSightMetrics()
