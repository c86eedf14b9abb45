"""
Build OpenTelemetry providers from the SDK config and install them process-wide.

bootstrap() is the only place that touches OpenTelemetry global state. Every
provider and exporter is constructed before anything is installed, so a failure
at any stage leaves the previous globals untouched. The returned TelemetrySDK
is the telemetry context for the rest of the process: components receive
meters, tracers and the logger provider from it explicitly.
"""

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry._logs import NoOpLoggerProvider, get_logger_provider, set_logger_provider
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, SimpleLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import (
    ALWAYS_OFF,
    ALWAYS_ON,
    ParentBased,
    Sampler,
    TraceIdRatioBased,
)
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from .. import config as config_source
from ..errors import ProviderConstructionError, TelemetryShutdownError
from ..exporters.console_exporter import create_console_exporter
from ..exporters.file_exporter import FileLogExporter, FileMetricExporter, FileSpanExporter
from ..exporters.otlp_exporter import (
    create_otlp_log_exporter,
    create_otlp_metric_exporter,
    create_otlp_trace_exporter,
)
from .sdk_config import (
    SIGNAL_LOGS,
    SIGNAL_METRICS,
    SIGNAL_TRACES,
    ExporterConfig,
    ExporterKind,
    ProcessorConfig,
    ProcessorKind,
    SamplerConfig,
    SamplerKind,
    SdkConfig,
    parse_sdk_config,
)

logger = logging.getLogger(__name__)

ShutdownFunc = Callable[[], None]

DEFAULT_SHUTDOWN_TIMEOUT_MILLIS = 30000

_OTLP_FACTORIES = {
    SIGNAL_TRACES: create_otlp_trace_exporter,
    SIGNAL_METRICS: create_otlp_metric_exporter,
    SIGNAL_LOGS: create_otlp_log_exporter,
}
_FILE_EXPORTERS = {
    SIGNAL_TRACES: FileSpanExporter,
    SIGNAL_METRICS: FileMetricExporter,
    SIGNAL_LOGS: FileLogExporter,
}


def default_propagator() -> CompositePropagator:
    """W3C trace-context plus baggage, the propagator every bootstrap installs."""
    return CompositePropagator([TraceContextTextMapPropagator(), W3CBaggagePropagator()])


@dataclass
class TelemetrySDK:
    """Provider bundle: tracer, meter and logger providers plus the propagator."""

    tracer_provider: Any
    meter_provider: Any
    logger_provider: Any
    propagator: CompositePropagator
    resource: Resource | None = None
    _shutdown_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _shut_down: bool = field(default=False, repr=False)

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def get_meter(self, name: str, version: str | None = None):
        """Meter from this bundle's provider (not the global one)."""
        return self.meter_provider.get_meter(name, version)

    def get_tracer(self, name: str, version: str | None = None):
        """Tracer from this bundle's provider (not the global one)."""
        return self.tracer_provider.get_tracer(name, version)

    def install(self) -> None:
        """Install the propagator and the three providers as process-wide globals."""
        set_global_textmap(self.propagator)
        trace.set_tracer_provider(self.tracer_provider)
        metrics.set_meter_provider(self.meter_provider)
        set_logger_provider(self.logger_provider)
        # The API only allows one provider per process; a second bootstrap is ignored by it.
        if (
            trace.get_tracer_provider() is not self.tracer_provider
            or metrics.get_meter_provider() is not self.meter_provider
            or get_logger_provider() is not self.logger_provider
        ):
            logger.warning("Global telemetry providers were already installed; keeping previous")

    def shutdown(self, timeout_millis: int = DEFAULT_SHUTDOWN_TIMEOUT_MILLIS) -> None:
        """
        Flush and shut down all providers. Only the first call has any effect.

        timeout_millis bounds the whole shutdown; each provider gets what the
        previous ones left. All three providers are attempted even when one
        fails; failures are raised together as TelemetryShutdownError.
        """
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        deadline = time.monotonic() + timeout_millis / 1000.0
        failures: list[tuple[str, BaseException]] = []
        for name, provider in (
            ("tracer_provider", self.tracer_provider),
            ("meter_provider", self.meter_provider),
            ("logger_provider", self.logger_provider),
        ):
            if not isinstance(provider, TracerProvider | MeterProvider | LoggerProvider):
                continue
            try:
                if not provider.force_flush(_remaining_millis(deadline)):
                    logger.warning("Timed out flushing %s", name)
                if isinstance(provider, MeterProvider):
                    provider.shutdown(timeout_millis=_remaining_millis(deadline))
                else:
                    provider.shutdown()
            except Exception as e:
                failures.append((name, e))
        if failures:
            raise TelemetryShutdownError(failures)


def _remaining_millis(deadline: float) -> int:
    return max(0, int((deadline - time.monotonic()) * 1000))


def _build_exporter(exporter: ExporterConfig, signal: str):
    if exporter.kind is ExporterKind.CONSOLE:
        return create_console_exporter(signal, exporter.temporality_preference)
    if exporter.kind is ExporterKind.FILE:
        if signal == SIGNAL_METRICS:
            return FileMetricExporter(
                exporter.path, temporality_preference=exporter.temporality_preference
            )
        return _FILE_EXPORTERS[signal](exporter.path)
    kwargs: dict[str, Any] = {
        "endpoint": exporter.endpoint,
        "protocol": exporter.protocol,
        "headers": exporter.headers or None,
        "timeout_ms": exporter.timeout_ms,
        "compression": exporter.compression,
    }
    if signal == SIGNAL_METRICS:
        kwargs["temporality_preference"] = exporter.temporality_preference
    return _OTLP_FACTORIES[signal](**kwargs)


def _batch_kwargs(processor: ProcessorConfig) -> dict[str, int]:
    kwargs = {
        "schedule_delay_millis": processor.schedule_delay_ms,
        "export_timeout_millis": processor.export_timeout_ms,
        "max_queue_size": processor.max_queue_size,
        "max_export_batch_size": processor.max_export_batch_size,
    }
    return {k: v for k, v in kwargs.items() if v is not None}


def _build_sampler(sampler: SamplerConfig) -> Sampler:
    if sampler.kind is SamplerKind.ALWAYS_ON:
        return ALWAYS_ON
    if sampler.kind is SamplerKind.ALWAYS_OFF:
        return ALWAYS_OFF
    if sampler.kind is SamplerKind.TRACE_ID_RATIO_BASED:
        return TraceIdRatioBased(sampler.ratio)
    root = _build_sampler(sampler.root) if sampler.root is not None else ALWAYS_ON
    return ParentBased(root=root)


def _build_tracer_provider(config: SdkConfig, resource: Resource) -> TracerProvider:
    tp_config = config.tracer_provider
    kwargs: dict[str, Any] = {"resource": resource, "shutdown_on_exit": False}
    if tp_config.sampler is not None:
        kwargs["sampler"] = _build_sampler(tp_config.sampler)
    provider = TracerProvider(**kwargs)
    for processor in tp_config.processors:
        exporter = _build_exporter(processor.exporter, SIGNAL_TRACES)
        if processor.kind is ProcessorKind.BATCH:
            provider.add_span_processor(BatchSpanProcessor(exporter, **_batch_kwargs(processor)))
        else:
            provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider


def _build_meter_provider(config: SdkConfig, resource: Resource) -> MeterProvider:
    readers = [
        PeriodicExportingMetricReader(
            _build_exporter(reader.exporter, SIGNAL_METRICS),
            export_interval_millis=reader.interval_ms,
            export_timeout_millis=reader.timeout_ms,
        )
        for reader in config.meter_provider.readers
    ]
    return MeterProvider(resource=resource, metric_readers=readers, shutdown_on_exit=False)


def _build_logger_provider(config: SdkConfig, resource: Resource) -> LoggerProvider:
    provider = LoggerProvider(resource=resource, shutdown_on_exit=False)
    for processor in config.logger_provider.processors:
        exporter = _build_exporter(processor.exporter, SIGNAL_LOGS)
        if processor.kind is ProcessorKind.BATCH:
            provider.add_log_record_processor(
                BatchLogRecordProcessor(exporter, **_batch_kwargs(processor))
            )
        else:
            provider.add_log_record_processor(SimpleLogRecordProcessor(exporter))
    return provider


def build_sdk(config: SdkConfig) -> TelemetrySDK:
    """
    Construct providers and exporters for a validated config without installing them.

    Raises ProviderConstructionError if any exporter or provider cannot be
    created; providers built before the failure are shut down first.
    """
    propagator = default_propagator()
    if config.disabled:
        return TelemetrySDK(
            tracer_provider=trace.NoOpTracerProvider(),
            meter_provider=metrics.NoOpMeterProvider(),
            logger_provider=NoOpLoggerProvider(),
            propagator=propagator,
        )

    built: list[Any] = []
    try:
        resource = Resource.create(config.resource_attributes, config.resource_schema_url)
        built.append(_build_tracer_provider(config, resource))
        built.append(_build_meter_provider(config, resource))
        built.append(_build_logger_provider(config, resource))
    except Exception as e:
        for provider in built:
            try:
                provider.shutdown()
            except Exception:
                logger.debug("Ignoring shutdown failure of partially built provider", exc_info=True)
        raise ProviderConstructionError(f"Failed to construct telemetry providers: {e}") from e

    tracer_provider, meter_provider, logger_provider = built
    return TelemetrySDK(
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        logger_provider=logger_provider,
        propagator=propagator,
        resource=resource,
    )


def bootstrap(config_path: str | Path, environ: Mapping[str, str] | None = None) -> TelemetrySDK:
    """
    Load the SDK config at config_path, build the providers and install them globally.

    Raises ConfigUnreadableError, ConfigInvalidError or ProviderConstructionError;
    nothing is installed when any of them is raised.
    """
    data = config_source.load_config(config_path, environ)
    sdk = build_sdk(parse_sdk_config(data))
    sdk.install()
    logger.debug("Telemetry SDK installed from %s", config_path)
    return sdk


def setup(config_path: str | Path, environ: Mapping[str, str] | None = None) -> ShutdownFunc:
    """Bootstrap the SDK and return its shutdown function."""
    return bootstrap(config_path, environ).shutdown
