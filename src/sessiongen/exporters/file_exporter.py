"""
JSON-lines file exporters, selected by a ``file`` exporter block in the SDK config.

Each exported item is written as one JSON object per line, which keeps the
output easy to diff in tests and to replay into a pipeline offline.
"""

import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from opentelemetry.sdk._logs.export import LogExportResult, LogRecordExporter
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricExportResult,
    MetricsData,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from .otlp_exporter import metric_temporality

logger = logging.getLogger(__name__)


class _JsonLinesFile:
    """Thread-safe appender; exporters are called from SDK worker threads."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        if not append and self.output_path.exists():
            self.output_path.unlink()
        self._lock = threading.Lock()

    def write(self, items: list[dict[str, Any]]) -> bool:
        try:
            lines = "".join(json.dumps(item, default=str) + "\n" for item in items)
            with self._lock, self.output_path.open("a", encoding="utf-8") as f:
                f.write(lines)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to write telemetry to %s", self.output_path)
            return False
        return True


def span_to_dict(span: ReadableSpan) -> dict[str, Any]:
    """Flatten a finished span into a JSON-friendly dict."""
    return {
        "name": span.name,
        "trace_id": format(span.context.trace_id, "032x"),
        "span_id": format(span.context.span_id, "016x"),
        "parent_span_id": format(span.parent.span_id, "016x") if span.parent else None,
        "start_time": span.start_time,
        "end_time": span.end_time,
        "status": span.status.status_code.name,
        "attributes": dict(span.attributes) if span.attributes else {},
        "kind": span.kind.name,
        "resource": dict(span.resource.attributes) if span.resource else {},
    }


def metrics_to_dicts(metrics_data: MetricsData) -> list[dict[str, Any]]:
    """One dict per metric stream, with its data points."""
    out: list[dict[str, Any]] = []
    for resource_metrics in metrics_data.resource_metrics:
        resource_attrs = dict(resource_metrics.resource.attributes)
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                points = []
                for dp in metric.data.data_points:
                    point: dict[str, Any] = {
                        "attributes": dict(dp.attributes or {}),
                        "start_time": dp.start_time_unix_nano,
                        "time": dp.time_unix_nano,
                    }
                    for field_name in ("value", "count", "sum", "min", "max"):
                        if hasattr(dp, field_name):
                            point[field_name] = getattr(dp, field_name)
                    points.append(point)
                out.append(
                    {
                        "name": metric.name,
                        "unit": metric.unit,
                        "scope": scope_metrics.scope.name,
                        "resource": resource_attrs,
                        "data_points": points,
                    }
                )
    return out


def log_to_dict(item: Any) -> dict[str, Any]:
    """Flatten an exported log item; accepts both wrapper and bare record shapes."""
    record = getattr(item, "log_record", item)
    resource = getattr(item, "resource", None) or getattr(record, "resource", None)
    severity = getattr(record, "severity_number", None)
    trace_id = getattr(record, "trace_id", None)
    span_id = getattr(record, "span_id", None)
    attributes = getattr(record, "attributes", None)
    return {
        "timestamp": getattr(record, "timestamp", None),
        "severity_number": severity.value if severity is not None else None,
        "severity_text": getattr(record, "severity_text", None),
        "body": getattr(record, "body", None),
        "attributes": dict(attributes) if attributes else {},
        "trace_id": format(trace_id, "032x") if trace_id else None,
        "span_id": format(span_id, "016x") if span_id else None,
        "resource": dict(resource.attributes) if resource is not None else {},
    }


class FileSpanExporter(SpanExporter):
    """Export spans to a JSON-lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self._file = _JsonLinesFile(output_path, append)

    @property
    def output_path(self) -> Path:
        return self._file.output_path

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._file.write([span_to_dict(s) for s in spans]):
            return SpanExportResult.SUCCESS
        return SpanExportResult.FAILURE

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


class FileMetricExporter(MetricExporter):
    """Export metrics to a JSON-lines file."""

    def __init__(
        self,
        output_path: str | Path,
        append: bool = True,
        temporality_preference: str | None = None,
    ):
        super().__init__(preferred_temporality=metric_temporality(temporality_preference))
        self._file = _JsonLinesFile(output_path, append)

    @property
    def output_path(self) -> Path:
        return self._file.output_path

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10000,
        **kwargs,
    ) -> MetricExportResult:
        if self._file.write(metrics_to_dicts(metrics_data)):
            return MetricExportResult.SUCCESS
        return MetricExportResult.FAILURE

    def shutdown(self, timeout_millis: float = 30000, **kwargs) -> None:
        pass

    def force_flush(self, timeout_millis: float = 10000) -> bool:
        return True


class FileLogExporter(LogRecordExporter):
    """Export log records to a JSON-lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self._file = _JsonLinesFile(output_path, append)

    @property
    def output_path(self) -> Path:
        return self._file.output_path

    def export(self, batch: Sequence) -> LogExportResult:  # type: ignore[override]
        if self._file.write([log_to_dict(item) for item in batch]):
            return LogExportResult.SUCCESS
        return LogExportResult.FAILURE

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True
