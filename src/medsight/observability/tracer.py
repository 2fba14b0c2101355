"""
MedSight Tracer

Structured tracing for pipeline stages using an OpenTelemetry-compatible span shape.

The active span is held in a ContextVar, so stages running as concurrent
asyncio tasks each see their own parent and nest correctly.
"""

import json
import time
import uuid
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Any, Generator

from medsight.config import get_settings


class SpanKind(str, Enum):
    """Span types for categorization."""

    INTERNAL = "internal"
    CLIENT = "client"  # Judgment collaborator / paper source calls


class SpanStatus(str, Enum):
    """Span completion status."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass
class SpanEvent:
    """Event within a span."""

    name: str
    timestamp: float = field(default_factory=time.time)
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class Span:
    """
    Trace span representing a unit of work.

    Attributes:
        trace_id: Trace identifier (one per tracer).
        span_id: Unique span identifier.
        parent_id: Parent span ID (None for root).
        name: Operation name, prefixed with the tracer name.
        attributes: Key-value metadata.
        events: Events during span.
    """

    trace_id: str
    span_id: str
    name: str
    kind: SpanKind = SpanKind.INTERNAL
    parent_id: str | None = None
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    status: SpanStatus = SpanStatus.UNSET
    status_message: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)

    @property
    def duration_ms(self) -> float | None:
        """Duration in milliseconds."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def add_event(self, name: str, attributes: dict[str, Any] | None = None) -> None:
        self.events.append(SpanEvent(name=name, attributes=attributes or {}))

    def set_status(self, status: SpanStatus, message: str | None = None) -> None:
        self.status = status
        self.status_message = message

    def end(self) -> None:
        if self.end_time is None:
            self.end_time = time.time()

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready record; enum fields serialize as their values."""
        return {**asdict(self), "duration_ms": self.duration_ms}


_current_span: ContextVar[Span | None] = ContextVar("medsight_current_span", default=None)

MAX_RETAINED_SPANS = 512


class Tracer:
    """
    Tracer for pipeline operations.

    Usage:
        tracer = get_tracer("medsight.quality")

        with tracer.span("assess", attributes={"papers": 4}) as span:
            ...
            span.set_attribute("overall_bias_risk", "moderate")
    """

    def __init__(
        self, name: str, export_path: Path | None = None, max_spans: int = MAX_RETAINED_SPANS
    ) -> None:
        self._name = name
        self._trace_id = uuid.uuid4().hex[:16]
        self._export_path = export_path
        # Bounded: module-level tracers are shared by every request
        self._spans: deque[Span] = deque(maxlen=max_spans)
        self._lock = Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def trace_id(self) -> str:
        return self._trace_id

    @contextmanager
    def span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[Span, None, None]:
        """
        Open a span for the duration of the block.

        Exceptions mark the span as ERROR and are re-raised.
        """
        parent = _current_span.get()
        span = Span(
            trace_id=parent.trace_id if parent else self._trace_id,
            span_id=uuid.uuid4().hex[:16],
            parent_id=parent.span_id if parent else None,
            name=f"{self._name}.{name}",
            kind=kind,
            attributes=dict(attributes or {}),
        )
        token = _current_span.set(span)

        try:
            yield span
            if span.status == SpanStatus.UNSET:
                span.set_status(SpanStatus.OK)
        except BaseException as e:
            span.set_status(SpanStatus.ERROR, str(e))
            span.add_event("exception", {"type": type(e).__name__, "message": str(e)})
            raise
        finally:
            span.end()
            _current_span.reset(token)
            with self._lock:
                self._spans.append(span)
            if self._export_path:
                self._export_span(span)

    def _export_span(self, span: Span) -> None:
        """Append span to the tracer's JSONL file."""
        self._export_path.mkdir(parents=True, exist_ok=True)
        day = datetime.now(timezone.utc).strftime("%Y%m%d")
        with open(self._export_path / f"trace_{self._name}_{day}.jsonl", "a") as f:
            f.write(json.dumps(span.to_dict(), default=str) + "\n")

    def get_spans(self) -> list[Span]:
        """Most recent finished spans, oldest first."""
        with self._lock:
            return list(self._spans)

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()


_tracers: dict[str, Tracer] = {}


def get_tracer(name: str) -> Tracer:
    """
    Get or create a tracer by name.

    Spans are exported as JSONL only when MEDSIGHT_DEBUG is on.
    """
    if name not in _tracers:
        settings = get_settings()
        export_path = settings.features.trace_path if settings.features.debug else None
        _tracers[name] = Tracer(name, export_path)
    return _tracers[name]


def reset_tracers() -> None:
    """Reset all tracers (for testing)."""
    _tracers.clear()


tracer = get_tracer("medsight")
