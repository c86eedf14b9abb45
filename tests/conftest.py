"""Shared fixtures: OpenTelemetry global reset and config file helpers."""

import logging
import signal
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from opentelemetry import propagate, trace
from opentelemetry._logs import _internal as logs_internal
from opentelemetry.metrics import _internal as metrics_internal
from opentelemetry.util._once import Once

from sessiongen.logging_setup import PACKAGE_LOGGER, detach_handlers


def _reset_provider_slots() -> None:
    trace._TRACER_PROVIDER_SET_ONCE = Once()
    trace._TRACER_PROVIDER = None
    metrics_internal._METER_PROVIDER_SET_ONCE = Once()
    metrics_internal._METER_PROVIDER = None
    logs_internal._LOGGER_PROVIDER_SET_ONCE = Once()
    logs_internal._LOGGER_PROVIDER = None


@pytest.fixture
def otel_globals() -> Iterator[None]:
    """Give the test pristine (proxy) global providers and restore them afterwards."""
    saved_propagator = propagate.get_global_textmap()
    _reset_provider_slots()
    yield
    _reset_provider_slots()
    propagate.set_global_textmap(saved_propagator)


@pytest.fixture
def package_logging() -> Iterator[None]:
    """Remove handlers and level changes made on the package logger."""
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    level = pkg_logger.level
    yield
    detach_handlers()
    pkg_logger.setLevel(level)


@pytest.fixture
def restore_signals() -> Iterator[None]:
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write YAML text to a file under tmp_path and return its path."""

    def _write(text: str, name: str = "otel.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


def file_exporters_config(out_dir: Path, interval_ms: int = 600000) -> str:
    """A config exporting every signal to JSON-lines files in out_dir."""
    return f"""
file_format: "0.3"
resource:
  attributes:
    - name: service.name
      value: sessiongen-test
tracer_provider:
  processors:
    - simple:
        exporter:
          file:
            path: {out_dir / "spans.jsonl"}
meter_provider:
  readers:
    - periodic:
        interval: {interval_ms}
        exporter:
          file:
            path: {out_dir / "metrics.jsonl"}
logger_provider:
  processors:
    - simple:
        exporter:
          file:
            path: {out_dir / "logs.jsonl"}
"""


@pytest.fixture
def file_config(tmp_path: Path, write_config: Callable[[str], Path]) -> Path:
    """Path to a written config exporting all signals to files under tmp_path/out."""
    return write_config(file_exporters_config(tmp_path / "out"))
