"""Tests for building and installing the telemetry SDK."""

import json
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from opentelemetry import metrics, propagate, trace
from opentelemetry._logs import get_logger_provider
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from sessiongen.errors import (
    ConfigInvalidError,
    ConfigUnreadableError,
    ProviderConstructionError,
    TelemetryShutdownError,
)
from sessiongen.telemetry.bootstrap import _OTLP_FACTORIES, bootstrap, build_sdk, setup
from sessiongen.telemetry.sdk_config import parse_sdk_config

pytestmark = pytest.mark.usefixtures("otel_globals")


def _assert_globals_untouched() -> None:
    assert not isinstance(trace.get_tracer_provider(), TracerProvider)
    assert not isinstance(metrics.get_meter_provider(), MeterProvider)
    assert not isinstance(get_logger_provider(), LoggerProvider)


def test_bootstrap_installs_sdk_providers(file_config: Path) -> None:
    """A valid config replaces the default proxy providers with SDK providers."""
    _assert_globals_untouched()

    sdk = bootstrap(file_config)
    try:
        assert trace.get_tracer_provider() is sdk.tracer_provider
        assert metrics.get_meter_provider() is sdk.meter_provider
        assert get_logger_provider() is sdk.logger_provider
        assert isinstance(sdk.tracer_provider, TracerProvider)
        assert isinstance(sdk.meter_provider, MeterProvider)
        assert isinstance(sdk.logger_provider, LoggerProvider)
        assert sdk.resource is not None
        assert sdk.resource.attributes["service.name"] == "sessiongen-test"
    finally:
        sdk.shutdown()


def test_bootstrap_installs_composite_propagator(file_config: Path) -> None:
    """Trace-context and baggage propagation are installed process-wide."""
    sdk = bootstrap(file_config)
    try:
        textmap = propagate.get_global_textmap()
        assert isinstance(textmap, CompositePropagator)
        assert textmap is sdk.propagator
        fields = textmap.fields
        assert fields >= TraceContextTextMapPropagator().fields
        assert fields >= W3CBaggagePropagator().fields
    finally:
        sdk.shutdown()


def test_propagator_list_cannot_drop_trace_context(
    write_config: Callable[[str], Path], caplog: pytest.LogCaptureFixture
) -> None:
    """An empty or partial composite list still installs trace-context and baggage."""
    sdk = bootstrap(write_config("file_format: '0.3'\npropagator:\n  composite: []\n"))
    try:
        fields = propagate.get_global_textmap().fields
        assert fields >= {"traceparent", "tracestate", "baggage"}
        assert "propagator.composite is fixed" in caplog.text
    finally:
        sdk.shutdown()


def test_setup_returns_idempotent_shutdown(file_config: Path) -> None:
    """setup() hands back a shutdown callable that only acts once."""
    shutdown = setup(file_config)
    assert callable(shutdown)
    shutdown()
    shutdown()


def test_missing_config_installs_nothing(tmp_path: Path) -> None:
    """An unreadable config raises and leaves the globals alone."""
    with pytest.raises(ConfigUnreadableError):
        bootstrap(tmp_path / "missing.yaml")
    _assert_globals_untouched()


@pytest.mark.parametrize(
    "text",
    [
        "file_format: [broken",
        "resource: {}\n",
        "file_format: '0.3'\ntracer_provider:\n  processors:\n    - batch:\n        exporter:\n          jaeger: {}\n",
    ],
)
def test_invalid_config_installs_nothing(write_config: Callable[[str], Path], text: str) -> None:
    """Malformed YAML or schema violations raise and leave the globals alone."""
    with pytest.raises(ConfigInvalidError):
        bootstrap(write_config(text))
    _assert_globals_untouched()


def test_exporter_construction_failure_installs_nothing(
    write_config: Callable[[str], Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failing exporter factory becomes ProviderConstructionError, with no partial install."""

    def broken_factory(**kwargs):
        raise RuntimeError("endpoint unreachable")

    monkeypatch.setitem(_OTLP_FACTORIES, "logs", broken_factory)
    path = write_config(
        """
file_format: "0.3"
logger_provider:
  processors:
    - batch:
        exporter:
          otlp:
            endpoint: http://localhost:4318
"""
    )
    with pytest.raises(ProviderConstructionError, match="endpoint unreachable"):
        bootstrap(path)
    _assert_globals_untouched()


def test_env_placeholders_reach_resource(write_config: Callable[[str], Path]) -> None:
    """Environment references are expanded before the config is parsed."""
    path = write_config(
        """
file_format: "0.3"
resource:
  attributes:
    - name: service.name
      value: ${SERVICE:-fallback}
    - name: deployment.environment.name
      value: ${ENVIRONMENT:-dev}
"""
    )
    sdk = bootstrap(path, environ={"SERVICE": "sessions"})
    try:
        assert sdk.resource.attributes["service.name"] == "sessions"
        assert sdk.resource.attributes["deployment.environment.name"] == "dev"
    finally:
        sdk.shutdown()


def test_disabled_config_installs_noop_providers(write_config: Callable[[str], Path]) -> None:
    """disabled: true installs no-op providers and shutdown is a no-op."""
    sdk = bootstrap(write_config("file_format: '0.3'\ndisabled: true\n"))
    assert isinstance(trace.get_tracer_provider(), trace.NoOpTracerProvider)
    assert isinstance(metrics.get_meter_provider(), metrics.NoOpMeterProvider)
    sdk.shutdown()
    assert sdk.is_shut_down


def test_spans_are_exported_to_configured_file(file_config: Path, tmp_path: Path) -> None:
    """Spans created through the global tracer reach the configured file exporter."""
    shutdown = setup(file_config)
    with trace.get_tracer("test").start_as_current_span("bootstrap-check"):
        pass
    shutdown()

    lines = (tmp_path / "out" / "spans.jsonl").read_text().splitlines()
    spans = [json.loads(line) for line in lines]
    assert [s["name"] for s in spans] == ["bootstrap-check"]
    assert spans[0]["resource"]["service.name"] == "sessiongen-test"


def test_metrics_flushed_on_shutdown(file_config: Path, tmp_path: Path) -> None:
    """Shutdown collects the periodic reader one last time."""
    sdk = bootstrap(file_config)
    metrics.get_meter("test").create_counter("bootstrap_checks_total").add(3)
    sdk.shutdown()

    records = [
        json.loads(line) for line in (tmp_path / "out" / "metrics.jsonl").read_text().splitlines()
    ]
    counters = [r for r in records if r["name"] == "bootstrap_checks_total"]
    assert counters
    assert counters[-1]["data_points"][0]["value"] == 3


def test_shutdown_reports_provider_failures() -> None:
    """A provider failing to shut down does not stop the others and is reported."""
    sdk = build_sdk(parse_sdk_config({"file_format": "0.3"}))

    def broken_shutdown():
        raise RuntimeError("flush failed")

    sdk.tracer_provider.shutdown = broken_shutdown
    with pytest.raises(TelemetryShutdownError) as exc_info:
        sdk.shutdown()
    assert [name for name, _ in exc_info.value.failures] == ["tracer_provider"]
    assert sdk.is_shut_down


def test_shutdown_acts_only_once() -> None:
    """Providers are shut down on the first call only."""
    sdk = build_sdk(parse_sdk_config({"file_format": "0.3"}))
    calls = []
    original = sdk.meter_provider.shutdown

    def counting_shutdown(*args, **kwargs):
        calls.append(1)
        return original(*args, **kwargs)

    sdk.meter_provider.shutdown = counting_shutdown
    sdk.shutdown()
    sdk.shutdown()
    assert len(calls) == 1


def test_shutdown_budget_is_shared_between_providers() -> None:
    """A slow flush eats into the time left for the providers after it."""
    sdk = build_sdk(parse_sdk_config({"file_format": "0.3"}))
    budgets: dict[str, int] = {}

    def recording_flush(name: str, delay: float):
        def flush(timeout_millis: int = 30000) -> bool:
            budgets[name] = timeout_millis
            time.sleep(delay)
            return True

        return flush

    sdk.tracer_provider.force_flush = recording_flush("traces", 0.3)
    sdk.meter_provider.force_flush = recording_flush("metrics", 0.0)
    sdk.logger_provider.force_flush = recording_flush("logs", 0.0)

    sdk.shutdown(timeout_millis=1000)

    assert budgets["traces"] > 900
    assert budgets["metrics"] <= 700
    assert budgets["logs"] <= budgets["metrics"]
