"""
MedSight Observability Layer

Tracing and metrics.
"""

from medsight.observability.metrics import (
    Counter,
    Gauge,
    Histogram,
    MedSightMetrics,
    MetricsRegistry,
    get_metrics,
    get_registry,
    reset_metrics,
)
from medsight.observability.tracer import (
    Span,
    SpanEvent,
    SpanKind,
    SpanStatus,
    Tracer,
    get_tracer,
    reset_tracers,
    tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "Span",
    "SpanEvent",
    "SpanKind",
    "SpanStatus",
    "get_tracer",
    "reset_tracers",
    "tracer",
    # Metrics
    "MetricsRegistry",
    "Counter",
    "Gauge",
    "Histogram",
    "MedSightMetrics",
    "get_registry",
    "get_metrics",
    "reset_metrics",
]
