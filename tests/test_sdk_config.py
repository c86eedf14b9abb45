"""Tests for SDK config validation."""

from typing import Any

import pytest
import yaml

from sessiongen.errors import ConfigInvalidError
from sessiongen.telemetry.sdk_config import (
    ExporterKind,
    ProcessorKind,
    SamplerKind,
    parse_sdk_config,
)

FULL_CONFIG = """
file_format: "0.3"
resource:
  schema_url: https://opentelemetry.io/schemas/1.26.0
  attributes:
    - name: service.name
      value: sessiongen
    - name: service.instance.count
      value: 2
propagator:
  composite: [tracecontext, baggage]
tracer_provider:
  sampler:
    parent_based:
      root:
        trace_id_ratio_based:
          ratio: 0.25
  processors:
    - batch:
        schedule_delay: 1000
        max_queue_size: 512
        exporter:
          otlp:
            protocol: grpc
            endpoint: http://collector:4317
            headers:
              - name: authorization
                value: Bearer token
            timeout: 5000
            compression: gzip
meter_provider:
  readers:
    - periodic:
        interval: 15000
        exporter:
          otlp:
            endpoint: http://collector:4318
            temporality_preference: delta
logger_provider:
  processors:
    - simple:
        exporter:
          console: {}
"""


def _parse(text: str):
    return parse_sdk_config(yaml.safe_load(text))


def _minimal(**sections: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"file_format": "0.3"}
    data.update(sections)
    return data


def test_full_config_parses() -> None:
    """A config using every supported section is parsed into typed settings."""
    config = _parse(FULL_CONFIG)

    assert config.file_format == "0.3"
    assert config.disabled is False
    assert config.resource_attributes == {"service.name": "sessiongen", "service.instance.count": 2}
    assert config.resource_schema_url == "https://opentelemetry.io/schemas/1.26.0"

    sampler = config.tracer_provider.sampler
    assert sampler is not None and sampler.kind is SamplerKind.PARENT_BASED
    assert sampler.root is not None and sampler.root.ratio == 0.25

    (span_proc,) = config.tracer_provider.processors
    assert span_proc.kind is ProcessorKind.BATCH
    assert span_proc.schedule_delay_ms == 1000
    assert span_proc.max_queue_size == 512
    assert span_proc.export_timeout_ms is None
    assert span_proc.exporter.kind is ExporterKind.OTLP
    assert span_proc.exporter.protocol == "grpc"
    assert span_proc.exporter.headers == {"authorization": "Bearer token"}
    assert span_proc.exporter.timeout_ms == 5000
    assert span_proc.exporter.compression == "gzip"

    (reader,) = config.meter_provider.readers
    assert reader.interval_ms == 15000
    assert reader.timeout_ms == 30000
    assert reader.exporter.protocol == "http/protobuf"
    assert reader.exporter.temporality_preference == "delta"

    (log_proc,) = config.logger_provider.processors
    assert log_proc.kind is ProcessorKind.SIMPLE
    assert log_proc.exporter.kind is ExporterKind.CONSOLE


def test_minimal_config_has_empty_providers() -> None:
    """Only file_format is required; providers then have no processors or readers."""
    config = parse_sdk_config(_minimal())
    assert config.tracer_provider.processors == []
    assert config.meter_provider.readers == []
    assert config.logger_provider.processors == []


def test_numeric_file_format_is_accepted() -> None:
    """Unquoted file_format (YAML float) is normalised to a string."""
    assert _parse("file_format: 0.3").file_format == "0.3"


def test_resource_attributes_as_mapping() -> None:
    """Resource attributes may be a plain mapping."""
    config = parse_sdk_config(_minimal(resource={"attributes": {"service.name": "x"}}))
    assert config.resource_attributes == {"service.name": "x"}


def test_resource_attributes_list_is_merged() -> None:
    """attributes_list fills in keys; explicit attributes win on conflict."""
    config = parse_sdk_config(
        _minimal(
            resource={
                "attributes": [{"name": "service.name", "value": "sessiongen"}],
                "attributes_list": "service.name=ignored, deployment.environment.name=prod",
            }
        )
    )
    assert config.resource_attributes == {
        "service.name": "sessiongen",
        "deployment.environment.name": "prod",
    }


def test_unimplemented_file_format_sections_are_ignored(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Valid sections the builder does not implement only produce a warning."""
    config = parse_sdk_config(
        _minimal(
            attribute_limits={"attribute_value_length_limit": 4096},
            instrumentation={"general": {}},
            resource={"detectors": {}, "attributes": {"service.name": "x"}},
            tracer_provider={"limits": {"attribute_count_limit": 128}},
            meter_provider={"views": [], "exemplar_filter": "trace_based"},
            logger_provider={"limits": {}},
        )
    )
    assert config.resource_attributes == {"service.name": "x"}
    for path in (
        "attribute_limits",
        "instrumentation",
        "resource.detectors",
        "tracer_provider.limits",
        "meter_provider.views",
        "meter_provider.exemplar_filter",
        "logger_provider.limits",
    ):
        assert f"Ignoring unsupported config section {path}" in caplog.text


def test_file_exporter_requires_path() -> None:
    """The file exporter needs a path."""
    data = _minimal(logger_provider={"processors": [{"simple": {"exporter": {"file": {}}}}]})
    with pytest.raises(ConfigInvalidError, match="path is required"):
        parse_sdk_config(data)


@pytest.mark.parametrize(
    "data, location",
    [
        ({}, "file_format"),
        (_minimal(tracing={}), "<root>"),
        (_minimal(tracer_provider={"limit": {}}), "tracer_provider"),
        (_minimal(resource={"attributes_list": "no-equals-sign"}), "resource.attributes_list"),
        (_minimal(disabled="yes"), "disabled"),
        (
            _minimal(
                tracer_provider={
                    "processors": [{"batch": {"exporter": {"otlp": {"protocol": "http/json"}}}}]
                }
            ),
            "tracer_provider.processors[0].batch.exporter.otlp.protocol",
        ),
        (
            _minimal(tracer_provider={"processors": [{"batch": {"exporter": {"zipkin": {}}}}]}),
            "tracer_provider.processors[0].batch.exporter",
        ),
        (
            _minimal(tracer_provider={"processors": [{"batch": {}}]}),
            "tracer_provider.processors[0].batch",
        ),
        (
            _minimal(tracer_provider={"processors": [{"exporting": {}}]}),
            "tracer_provider.processors[0]",
        ),
        (
            _minimal(meter_provider={"readers": [{"pull": {"exporter": {"console": {}}}}]}),
            "meter_provider.readers[0]",
        ),
        (
            _minimal(
                meter_provider={
                    "readers": [{"periodic": {"interval": -5, "exporter": {"console": {}}}}]
                }
            ),
            "meter_provider.readers[0].periodic.interval",
        ),
        (
            _minimal(
                logger_provider={
                    "processors": [
                        {
                            "simple": {
                                "exporter": {"console": {"temporality_preference": "delta"}}
                            }
                        }
                    ]
                }
            ),
            "logger_provider.processors[0].simple.exporter.console.temporality_preference",
        ),
        (_minimal(propagator={"composite": ["tracecontext", "b3"]}), "propagator.composite[1]"),
        (
            _minimal(resource={"attributes": [{"name": "service.name"}]}),
            "resource.attributes[0]",
        ),
        (
            _minimal(tracer_provider={"sampler": {"trace_id_ratio_based": {"ratio": 2}}}),
            "tracer_provider.sampler.trace_id_ratio_based.ratio",
        ),
    ],
)
def test_invalid_configs_report_location(data: dict[str, Any], location: str) -> None:
    """Schema violations raise ConfigInvalidError pointing at the offending node."""
    with pytest.raises(ConfigInvalidError) as exc_info:
        parse_sdk_config(data)
    assert exc_info.value.location == location


def test_exporter_block_must_have_exactly_one_key() -> None:
    """An exporter naming two backends is ambiguous."""
    data = _minimal(
        tracer_provider={"processors": [{"simple": {"exporter": {"console": {}, "otlp": {}}}}]}
    )
    with pytest.raises(ConfigInvalidError, match="exactly one key"):
        parse_sdk_config(data)
