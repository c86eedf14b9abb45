"""
Parse and validate the declarative OpenTelemetry SDK configuration.

The accepted document is a subset of the OpenTelemetry configuration file
format (file_format 0.3): resource, propagator, tracer_provider,
meter_provider and logger_provider sections. Parsing is strict; anything the
builder could not honour raises ConfigInvalidError with the dotted location of
the offending node, so a bad file never yields partially configured providers.
Other sections of the file format (limits, views, instrumentation and the
like) are accepted and ignored with a warning.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ConfigInvalidError
from ..exporters.otlp_exporter import PROTOCOL_HTTP, SUPPORTED_PROTOCOLS

logger = logging.getLogger(__name__)

SIGNAL_TRACES = "traces"
SIGNAL_METRICS = "metrics"
SIGNAL_LOGS = "logs"

# Always installed together, whatever propagator.composite lists
SUPPORTED_PROPAGATORS = ("tracecontext", "baggage")

_TOP_LEVEL_KEYS = frozenset(
    {
        "file_format",
        "disabled",
        "resource",
        "propagator",
        "tracer_provider",
        "meter_provider",
        "logger_provider",
    }
)
_SCALAR_TYPES = (str, bool, int, float)

# Valid file-format sections that are not implemented here
_IGNORED_TOP_LEVEL_KEYS = frozenset(
    {"attribute_limits", "instrumentation", "instrumentation/development", "log_level"}
)
_IGNORED_RESOURCE_KEYS = frozenset({"detectors", "detection/development"})
_IGNORED_PROPAGATOR_KEYS = frozenset({"composite_list"})
_IGNORED_TRACER_PROVIDER_KEYS = frozenset({"limits", "tracer_configurator/development"})
_IGNORED_METER_PROVIDER_KEYS = frozenset(
    {"views", "exemplar_filter", "meter_configurator/development"}
)
_IGNORED_LOGGER_PROVIDER_KEYS = frozenset({"limits", "logger_configurator/development"})


class ExporterKind(Enum):
    """Exporter backends selectable per processor or reader."""

    OTLP = "otlp"
    CONSOLE = "console"
    FILE = "file"


class ProcessorKind(Enum):
    """Span / log record processor flavours."""

    BATCH = "batch"
    SIMPLE = "simple"


class SamplerKind(Enum):
    """Trace samplers."""

    ALWAYS_ON = "always_on"
    ALWAYS_OFF = "always_off"
    TRACE_ID_RATIO_BASED = "trace_id_ratio_based"
    PARENT_BASED = "parent_based"


def _mapping(value: Any, location: str, allow_none: bool = False) -> dict[str, Any]:
    if value is None and allow_none:
        return {}
    if not isinstance(value, dict):
        raise ConfigInvalidError("expected a mapping", location)
    return value


def _reject_unknown(data: dict[str, Any], allowed: frozenset[str] | set[str], location: str):
    unknown = sorted(str(k) for k in data if k not in allowed)
    if unknown:
        raise ConfigInvalidError(f"unknown key(s): {', '.join(unknown)}", location)


def _check_section_keys(
    data: dict[str, Any],
    supported: frozenset[str] | set[str],
    ignored: frozenset[str],
    location: str | None,
) -> None:
    """Reject keys outside the file format; warn about known but unimplemented ones."""
    _reject_unknown(data, supported | ignored, location or "<root>")
    for key in sorted(k for k in data if k in ignored):
        path = f"{location}.{key}" if location else key
        logger.warning("Ignoring unsupported config section %s", path)


def _optional_str(data: dict[str, Any], key: str, location: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigInvalidError("expected a string", f"{location}.{key}")
    return value


def _optional_millis(data: dict[str, Any], key: str, location: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigInvalidError("expected a non-negative integer", f"{location}.{key}")
    return value


def _single_key(data: dict[str, Any], location: str) -> tuple[str, Any]:
    if len(data) != 1:
        raise ConfigInvalidError("expected exactly one key", location)
    key, value = next(iter(data.items()))
    return str(key), value


def _name_value_pairs(value: Any, location: str) -> dict[str, Any]:
    """Accept either [{name, value}, ...] or a plain mapping."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    if not isinstance(value, list):
        raise ConfigInvalidError("expected a list of name/value pairs or a mapping", location)
    result: dict[str, Any] = {}
    for i, item in enumerate(value):
        item_loc = f"{location}[{i}]"
        item = _mapping(item, item_loc)
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ConfigInvalidError("name is required", item_loc)
        if "value" not in item:
            raise ConfigInvalidError("value is required", item_loc)
        result[name.strip()] = item["value"]
    return result


@dataclass
class ExporterConfig:
    """One exporter block (exactly one of otlp / console / file)."""

    kind: ExporterKind
    protocol: str = PROTOCOL_HTTP
    endpoint: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int | None = None
    compression: str | None = None
    temporality_preference: str | None = None
    path: str | None = None

    @classmethod
    def from_yaml(cls, data: Any, location: str, signal: str) -> "ExporterConfig":
        """Parse an exporter block for the given signal."""
        key, body = _single_key(_mapping(data, location), location)
        try:
            kind = ExporterKind(key)
        except ValueError:
            raise ConfigInvalidError(f"unsupported exporter '{key}'", location) from None
        loc = f"{location}.{key}"
        body = _mapping(body, loc, allow_none=True)

        if kind is ExporterKind.CONSOLE:
            _reject_unknown(body, {"temporality_preference"}, loc)
            return cls(kind=kind, temporality_preference=cls._temporality(body, loc, signal))

        if kind is ExporterKind.FILE:
            _reject_unknown(body, {"path", "temporality_preference"}, loc)
            path = _optional_str(body, "path", loc)
            if not path:
                raise ConfigInvalidError("path is required", loc)
            return cls(
                kind=kind,
                path=path,
                temporality_preference=cls._temporality(body, loc, signal),
            )

        _reject_unknown(
            body,
            {"protocol", "endpoint", "headers", "timeout", "compression", "temporality_preference"},
            loc,
        )
        protocol = _optional_str(body, "protocol", loc) or PROTOCOL_HTTP
        if protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigInvalidError(
                f"unsupported protocol '{protocol}' (expected one of: "
                f"{', '.join(SUPPORTED_PROTOCOLS)})",
                f"{loc}.protocol",
            )
        compression = _optional_str(body, "compression", loc)
        if compression not in (None, "gzip", "none"):
            raise ConfigInvalidError(
                f"unsupported compression '{compression}'", f"{loc}.compression"
            )
        headers = _name_value_pairs(body.get("headers"), f"{loc}.headers")
        return cls(
            kind=kind,
            protocol=protocol,
            endpoint=_optional_str(body, "endpoint", loc) or None,
            headers={k: str(v) for k, v in headers.items()},
            timeout_ms=_optional_millis(body, "timeout", loc),
            compression=compression,
            temporality_preference=cls._temporality(body, loc, signal),
        )

    @staticmethod
    def _temporality(body: dict[str, Any], location: str, signal: str) -> str | None:
        value = _optional_str(body, "temporality_preference", location)
        if value is None:
            return None
        if signal != SIGNAL_METRICS:
            raise ConfigInvalidError(
                "temporality_preference only applies to metric exporters",
                f"{location}.temporality_preference",
            )
        if value not in ("cumulative", "delta"):
            raise ConfigInvalidError(
                f"unsupported temporality '{value}'", f"{location}.temporality_preference"
            )
        return value


@dataclass
class ProcessorConfig:
    """A batch or simple span / log record processor."""

    kind: ProcessorKind
    exporter: ExporterConfig
    schedule_delay_ms: int | None = None
    export_timeout_ms: int | None = None
    max_queue_size: int | None = None
    max_export_batch_size: int | None = None

    @classmethod
    def from_yaml(cls, data: Any, location: str, signal: str) -> "ProcessorConfig":
        """Parse one entry of a processors list."""
        key, body = _single_key(_mapping(data, location), location)
        try:
            kind = ProcessorKind(key)
        except ValueError:
            raise ConfigInvalidError(f"unsupported processor '{key}'", location) from None
        loc = f"{location}.{key}"
        body = _mapping(body, loc)
        allowed = {"exporter"}
        if kind is ProcessorKind.BATCH:
            allowed |= {"schedule_delay", "export_timeout", "max_queue_size", "max_export_batch_size"}
        _reject_unknown(body, allowed, loc)
        if "exporter" not in body:
            raise ConfigInvalidError("exporter is required", loc)
        return cls(
            kind=kind,
            exporter=ExporterConfig.from_yaml(body["exporter"], f"{loc}.exporter", signal),
            schedule_delay_ms=_optional_millis(body, "schedule_delay", loc),
            export_timeout_ms=_optional_millis(body, "export_timeout", loc),
            max_queue_size=_optional_millis(body, "max_queue_size", loc),
            max_export_batch_size=_optional_millis(body, "max_export_batch_size", loc),
        )


@dataclass
class ReaderConfig:
    """A periodic metric reader."""

    exporter: ExporterConfig
    interval_ms: int = 60000
    timeout_ms: int = 30000

    @classmethod
    def from_yaml(cls, data: Any, location: str) -> "ReaderConfig":
        """Parse one entry of meter_provider.readers. Only periodic readers are supported."""
        key, body = _single_key(_mapping(data, location), location)
        if key != "periodic":
            raise ConfigInvalidError(f"unsupported reader '{key}'", location)
        loc = f"{location}.periodic"
        body = _mapping(body, loc)
        _reject_unknown(body, {"interval", "timeout", "exporter"}, loc)
        if "exporter" not in body:
            raise ConfigInvalidError("exporter is required", loc)
        interval = _optional_millis(body, "interval", loc)
        timeout = _optional_millis(body, "timeout", loc)
        if interval == 0:
            raise ConfigInvalidError("interval must be greater than zero", f"{loc}.interval")
        return cls(
            exporter=ExporterConfig.from_yaml(body["exporter"], f"{loc}.exporter", SIGNAL_METRICS),
            interval_ms=interval if interval is not None else 60000,
            timeout_ms=timeout if timeout is not None else 30000,
        )


@dataclass
class SamplerConfig:
    """Trace sampler; parent_based wraps a root sampler."""

    kind: SamplerKind
    ratio: float = 1.0
    root: "SamplerConfig | None" = None

    @classmethod
    def from_yaml(cls, data: Any, location: str) -> "SamplerConfig":
        """Parse a sampler block."""
        key, body = _single_key(_mapping(data, location), location)
        try:
            kind = SamplerKind(key)
        except ValueError:
            raise ConfigInvalidError(f"unsupported sampler '{key}'", location) from None
        loc = f"{location}.{key}"
        body = _mapping(body, loc, allow_none=True)
        if kind is SamplerKind.TRACE_ID_RATIO_BASED:
            _reject_unknown(body, {"ratio"}, loc)
            ratio = body.get("ratio", 1.0)
            if isinstance(ratio, bool) or not isinstance(ratio, int | float) or not 0 <= ratio <= 1:
                raise ConfigInvalidError("ratio must be between 0 and 1", f"{loc}.ratio")
            return cls(kind=kind, ratio=float(ratio))
        if kind is SamplerKind.PARENT_BASED:
            _reject_unknown(body, {"root"}, loc)
            root = cls.from_yaml(body["root"], f"{loc}.root") if "root" in body else None
            return cls(kind=kind, root=root)
        _reject_unknown(body, set(), loc)
        return cls(kind=kind)


@dataclass
class TracerProviderConfig:
    """tracer_provider section."""

    processors: list[ProcessorConfig] = field(default_factory=list)
    sampler: SamplerConfig | None = None


@dataclass
class MeterProviderConfig:
    """meter_provider section."""

    readers: list[ReaderConfig] = field(default_factory=list)


@dataclass
class LoggerProviderConfig:
    """logger_provider section."""

    processors: list[ProcessorConfig] = field(default_factory=list)


@dataclass
class SdkConfig:
    """Validated SDK configuration ready for provider construction."""

    file_format: str
    disabled: bool = False
    resource_attributes: dict[str, Any] = field(default_factory=dict)
    resource_schema_url: str | None = None
    tracer_provider: TracerProviderConfig = field(default_factory=TracerProviderConfig)
    meter_provider: MeterProviderConfig = field(default_factory=MeterProviderConfig)
    logger_provider: LoggerProviderConfig = field(default_factory=LoggerProviderConfig)


def _parse_list(data: dict[str, Any], key: str, location: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigInvalidError("expected a list", f"{location}.{key}")
    return value


def _parse_attributes_list(value: Any) -> dict[str, str]:
    """Parse "key1=value1,key2=value2" as in OTEL_RESOURCE_ATTRIBUTES."""
    if value is None:
        return {}
    if not isinstance(value, str):
        raise ConfigInvalidError("expected a string", "resource.attributes_list")
    result: dict[str, str] = {}
    for pair in value.split(","):
        if not pair.strip():
            continue
        name, sep, attr_value = pair.partition("=")
        if not sep or not name.strip():
            raise ConfigInvalidError(
                f"expected key=value, got '{pair.strip()}'", "resource.attributes_list"
            )
        result[name.strip()] = attr_value.strip()
    return result


def _parse_resource(data: Any) -> tuple[dict[str, Any], str | None]:
    body = _mapping(data, "resource", allow_none=True)
    _check_section_keys(
        body, {"attributes", "attributes_list", "schema_url"}, _IGNORED_RESOURCE_KEYS, "resource"
    )
    attrs = _name_value_pairs(body.get("attributes"), "resource.attributes")
    for name, value in attrs.items():
        values = value if isinstance(value, list) else [value]
        if not all(isinstance(v, _SCALAR_TYPES) for v in values):
            raise ConfigInvalidError(
                "attribute values must be scalars or lists of scalars",
                f"resource.attributes.{name}",
            )
    # attributes wins over attributes_list for the same key
    merged: dict[str, Any] = _parse_attributes_list(body.get("attributes_list"))
    merged.update(attrs)
    return merged, _optional_str(body, "schema_url", "resource")


def _check_propagators(data: Any) -> None:
    if data is None:
        return
    body = _mapping(data, "propagator")
    _check_section_keys(body, {"composite"}, _IGNORED_PROPAGATOR_KEYS, "propagator")
    names = _parse_list(body, "composite", "propagator")
    for i, name in enumerate(names):
        if name not in SUPPORTED_PROPAGATORS:
            raise ConfigInvalidError(
                f"unsupported propagator '{name}'", f"propagator.composite[{i}]"
            )
    if set(names) != set(SUPPORTED_PROPAGATORS):
        logger.warning(
            "propagator.composite is fixed; installing %s", ", ".join(SUPPORTED_PROPAGATORS)
        )


def _parse_processors(data: Any, location: str, signal: str) -> list[ProcessorConfig]:
    body = _mapping(data, location, allow_none=True)
    return [
        ProcessorConfig.from_yaml(item, f"{location}.processors[{i}]", signal)
        for i, item in enumerate(_parse_list(body, "processors", location))
    ]


def parse_sdk_config(data: dict[str, Any]) -> SdkConfig:
    """Validate a parsed YAML mapping and return an SdkConfig. Raises ConfigInvalidError."""
    _check_section_keys(data, _TOP_LEVEL_KEYS, _IGNORED_TOP_LEVEL_KEYS, None)

    file_format = data.get("file_format")
    if isinstance(file_format, int | float) and not isinstance(file_format, bool):
        file_format = str(file_format)
    if not isinstance(file_format, str) or not file_format.strip():
        raise ConfigInvalidError("file_format is required", "file_format")

    disabled = data.get("disabled", False)
    if not isinstance(disabled, bool):
        raise ConfigInvalidError("expected a boolean", "disabled")

    resource_attributes, schema_url = _parse_resource(data.get("resource"))
    _check_propagators(data.get("propagator"))

    tp_body = _mapping(data.get("tracer_provider"), "tracer_provider", allow_none=True)
    _check_section_keys(
        tp_body, {"processors", "sampler"}, _IGNORED_TRACER_PROVIDER_KEYS, "tracer_provider"
    )
    sampler = (
        SamplerConfig.from_yaml(tp_body["sampler"], "tracer_provider.sampler")
        if tp_body.get("sampler") is not None
        else None
    )
    tracer_provider = TracerProviderConfig(
        processors=_parse_processors(tp_body, "tracer_provider", SIGNAL_TRACES),
        sampler=sampler,
    )

    mp_body = _mapping(data.get("meter_provider"), "meter_provider", allow_none=True)
    _check_section_keys(mp_body, {"readers"}, _IGNORED_METER_PROVIDER_KEYS, "meter_provider")
    meter_provider = MeterProviderConfig(
        readers=[
            ReaderConfig.from_yaml(item, f"meter_provider.readers[{i}]")
            for i, item in enumerate(_parse_list(mp_body, "readers", "meter_provider"))
        ]
    )

    lp_body = _mapping(data.get("logger_provider"), "logger_provider", allow_none=True)
    _check_section_keys(lp_body, {"processors"}, _IGNORED_LOGGER_PROVIDER_KEYS, "logger_provider")
    logger_provider = LoggerProviderConfig(
        processors=_parse_processors(lp_body, "logger_provider", SIGNAL_LOGS)
    )

    return SdkConfig(
        file_format=file_format.strip(),
        disabled=disabled,
        resource_attributes=resource_attributes,
        resource_schema_url=schema_url,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        logger_provider=logger_provider,
    )
