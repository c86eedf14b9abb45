"""
Structured logging for the session generator.

Records from the ``sessiongen`` logger tree go to two places:
- stdout, one JSON object per line (python-json-logger), with trace_id and
  span_id added when the record is emitted inside a recording span;
- the OpenTelemetry logger provider, through the SDK LoggingHandler, once
  the telemetry SDK has been bootstrapped.

Handlers are attached to the package logger rather than root, so log records
produced by the SDK's own exporters are never fed back into it.
"""

import logging
import sys
from typing import IO, Any

from opentelemetry import trace
from opentelemetry._logs import LoggerProvider, get_logger_provider
from opentelemetry.sdk._logs import LoggingHandler
from pythonjsonlogger.json import JsonFormatter

PACKAGE_LOGGER = "sessiongen"
_CONSOLE_HANDLER_NAME = "sessiongen-console"
_OTEL_HANDLER_NAME = "sessiongen-otel"


class TraceContextJsonFormatter(JsonFormatter):
    """JSON formatter adding level, logger name and the active span's ids."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname.lower()
        log_record["logger"] = record.name
        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            log_record["trace_id"] = format(ctx.trace_id, "032x")
            log_record["span_id"] = format(ctx.span_id, "016x")


def _find_handler(target: logging.Logger, name: str) -> logging.Handler | None:
    for handler in target.handlers:
        if handler.get_name() == name:
            return handler
    return None


def configure_logging(level: int | str = logging.INFO, stream: IO[str] | None = None) -> logging.Logger:
    """Attach the JSON console handler to the package logger (idempotent)."""
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.setLevel(level)
    if _find_handler(pkg_logger, _CONSOLE_HANDLER_NAME) is None:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.set_name(_CONSOLE_HANDLER_NAME)
        handler.setFormatter(TraceContextJsonFormatter("%(message)s", timestamp=True))
        pkg_logger.addHandler(handler)
    return pkg_logger


def attach_otel_handler(logger_provider: LoggerProvider | None = None) -> logging.Handler:
    """
    Bridge package log records into the OpenTelemetry logger provider (idempotent).

    Uses the process-wide provider when none is given, so call it after bootstrap.
    """
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    existing = _find_handler(pkg_logger, _OTEL_HANDLER_NAME)
    if existing is not None:
        return existing
    handler = LoggingHandler(
        level=logging.NOTSET,
        logger_provider=logger_provider or get_logger_provider(),
    )
    handler.set_name(_OTEL_HANDLER_NAME)
    pkg_logger.addHandler(handler)
    return handler


def detach_handlers() -> None:
    """Remove the handlers added by this module, then flush those still writable."""
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    for name in (_OTEL_HANDLER_NAME, _CONSOLE_HANDLER_NAME):
        handler = _find_handler(pkg_logger, name)
        if handler is None:
            continue
        pkg_logger.removeHandler(handler)
        # The console stream may already be closed by whoever owned it
        stream = getattr(handler, "stream", None)
        if stream is None or not stream.closed:
            handler.flush()
