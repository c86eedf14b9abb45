"""
Console exporters for debugging and development.

Prints telemetry to stdout for quick verification.
"""

from opentelemetry.sdk._logs.export import ConsoleLogRecordExporter
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from .otlp_exporter import metric_temporality


def create_console_exporter(signal: str, temporality_preference: str | None = None):
    """
    Create a console exporter for one signal type.

    Args:
        signal: "traces", "metrics" or "logs"
        temporality_preference: "cumulative" or "delta" (metrics only)

    Returns:
        SpanExporter, MetricExporter or LogRecordExporter
    """
    if signal == "traces":
        return ConsoleSpanExporter()
    if signal == "metrics":
        return ConsoleMetricExporter(
            preferred_temporality=metric_temporality(temporality_preference)
        )
    if signal == "logs":
        return ConsoleLogRecordExporter()
    raise ValueError(f"Unknown signal: {signal}")
