"""
OTLP exporters for traces, metrics, and logs.

Provides factory functions for creating OTLP exporters from an ``otlp`` exporter
block of the SDK config. Supports the http/protobuf and grpc protocols.
"""

from typing import Any
from urllib.parse import urlparse

from opentelemetry.sdk.metrics import (
    Counter,
    Histogram,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from opentelemetry.sdk.metrics.export import AggregationTemporality

PROTOCOL_HTTP = "http/protobuf"
PROTOCOL_GRPC = "grpc"
SUPPORTED_PROTOCOLS = (PROTOCOL_HTTP, PROTOCOL_GRPC)

DEFAULT_HTTP_ENDPOINT = "http://localhost:4318"
DEFAULT_GRPC_ENDPOINT = "http://localhost:4317"


def _http_signal_endpoint(endpoint: str | None, signal_path: str) -> str:
    """Use an endpoint with a path as-is; otherwise append the signal path."""
    target = endpoint or DEFAULT_HTTP_ENDPOINT
    if urlparse(target).path not in ("", "/"):
        return target
    return target.rstrip("/") + signal_path


def _grpc_kwargs(
    endpoint: str | None,
    headers: dict[str, str] | None,
    timeout_ms: int | None,
    compression: str | None,
) -> dict[str, Any]:
    target = endpoint or DEFAULT_GRPC_ENDPOINT
    kwargs: dict[str, Any] = {
        "endpoint": target,
        "insecure": target.startswith("http://"),
        "headers": headers,
    }
    if timeout_ms is not None:
        kwargs["timeout"] = timeout_ms / 1000.0
    if compression == "gzip":
        from grpc import Compression

        kwargs["compression"] = Compression.Gzip
    return kwargs


def _http_kwargs(
    headers: dict[str, str] | None,
    timeout_ms: int | None,
    compression: str | None,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"headers": headers}
    if timeout_ms is not None:
        kwargs["timeout"] = timeout_ms / 1000.0
    if compression == "gzip":
        from opentelemetry.exporter.otlp.proto.http import Compression

        kwargs["compression"] = Compression.Gzip
    return kwargs


def metric_temporality(preference: str | None) -> dict[type, AggregationTemporality] | None:
    """Map a temporality preference name to the exporter's per-instrument dict."""
    if preference is None or preference == "cumulative":
        return None
    if preference == "delta":
        # Up-down counters and gauges stay cumulative under delta
        return {
            Counter: AggregationTemporality.DELTA,
            Histogram: AggregationTemporality.DELTA,
            ObservableCounter: AggregationTemporality.DELTA,
            UpDownCounter: AggregationTemporality.CUMULATIVE,
            ObservableUpDownCounter: AggregationTemporality.CUMULATIVE,
            ObservableGauge: AggregationTemporality.CUMULATIVE,
        }
    raise ValueError(f"Unknown temporality preference: {preference}")


def create_otlp_trace_exporter(
    endpoint: str | None = None,
    protocol: str = PROTOCOL_HTTP,
    headers: dict[str, str] | None = None,
    timeout_ms: int | None = None,
    compression: str | None = None,
):
    """
    Create an OTLP trace exporter.

    Args:
        endpoint: OTLP endpoint URL (http/protobuf appends the signal path when it has none)
        protocol: "http/protobuf" or "grpc"
        headers: Optional headers to include
        timeout_ms: Export timeout in milliseconds
        compression: "gzip" or "none"

    Returns:
        Configured SpanExporter
    """
    if protocol == PROTOCOL_GRPC:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(**_grpc_kwargs(endpoint, headers, timeout_ms, compression))
    else:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (  # type: ignore[assignment]
            OTLPSpanExporter,
        )

        return OTLPSpanExporter(
            endpoint=_http_signal_endpoint(endpoint, "/v1/traces"),
            **_http_kwargs(headers, timeout_ms, compression),
        )


def create_otlp_metric_exporter(
    endpoint: str | None = None,
    protocol: str = PROTOCOL_HTTP,
    headers: dict[str, str] | None = None,
    timeout_ms: int | None = None,
    compression: str | None = None,
    temporality_preference: str | None = None,
):
    """
    Create an OTLP metric exporter.

    Args:
        endpoint: OTLP endpoint URL (http/protobuf appends the signal path when it has none)
        protocol: "http/protobuf" or "grpc"
        headers: Optional headers to include
        timeout_ms: Export timeout in milliseconds
        compression: "gzip" or "none"
        temporality_preference: "cumulative" (default) or "delta"

    Returns:
        Configured MetricExporter
    """
    temporality = metric_temporality(temporality_preference)
    if protocol == PROTOCOL_GRPC:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        return OTLPMetricExporter(
            preferred_temporality=temporality,
            **_grpc_kwargs(endpoint, headers, timeout_ms, compression),
        )
    else:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import (  # type: ignore[assignment]
            OTLPMetricExporter,
        )

        return OTLPMetricExporter(
            endpoint=_http_signal_endpoint(endpoint, "/v1/metrics"),
            preferred_temporality=temporality,
            **_http_kwargs(headers, timeout_ms, compression),
        )


def create_otlp_log_exporter(
    endpoint: str | None = None,
    protocol: str = PROTOCOL_HTTP,
    headers: dict[str, str] | None = None,
    timeout_ms: int | None = None,
    compression: str | None = None,
):
    """
    Create an OTLP log exporter.

    Args:
        endpoint: OTLP endpoint URL (http/protobuf appends the signal path when it has none)
        protocol: "http/protobuf" or "grpc"
        headers: Optional headers to include
        timeout_ms: Export timeout in milliseconds
        compression: "gzip" or "none"

    Returns:
        Configured LogRecordExporter
    """
    if protocol == PROTOCOL_GRPC:
        from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter

        return OTLPLogExporter(**_grpc_kwargs(endpoint, headers, timeout_ms, compression))
    else:
        from opentelemetry.exporter.otlp.proto.http._log_exporter import (  # type: ignore[assignment]
            OTLPLogExporter,
        )

        return OTLPLogExporter(
            endpoint=_http_signal_endpoint(endpoint, "/v1/logs"),
            **_http_kwargs(headers, timeout_ms, compression),
        )
