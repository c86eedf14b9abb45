"""
Emit one synthetic session per cycle as a log record, metrics and a span.

A cycle generates a SessionEvent, serializes it and then either:
- success: logs it at INFO with the JSON payload in ``data``, adds 1 to
  session_requests_total and records the cycle duration in seconds;
- serialization failure: logs at ERROR with the cause in ``error`` and adds 1
  to session_errors_total. Nothing else is recorded for that cycle.

Exactly one log record is produced per cycle. Instruments are created once in
the constructor and reused; SDK instruments are safe to share across threads.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from opentelemetry import trace
from opentelemetry.metrics import Counter, Histogram, Meter
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer

from .errors import SerializationError
from .generators.session_generator import (
    SessionEvent,
    SessionSerializer,
    serialize_session_event,
)

INSTRUMENTATION_NAME = "sessiongen"

REQUESTS_COUNTER = "session_requests_total"
ERRORS_COUNTER = "session_errors_total"
DURATION_HISTOGRAM = "session_processing_duration_seconds"

CYCLE_SPAN_NAME = "session.cycle"


class CycleResult(Enum):
    """Outcome of a single emitter cycle."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SessionInstruments:
    """The three long-lived instruments every cycle records into."""

    requests: Counter
    errors: Counter
    duration: Histogram

    @classmethod
    def create(cls, meter: Meter) -> "SessionInstruments":
        """Create the instruments; SDK errors propagate so startup fails loudly."""
        return cls(
            requests=meter.create_counter(
                REQUESTS_COUNTER,
                unit="1",
                description="Session events successfully generated and logged",
            ),
            errors=meter.create_counter(
                ERRORS_COUNTER,
                unit="1",
                description="Session events that failed to serialize",
            ),
            duration=meter.create_histogram(
                DURATION_HISTOGRAM,
                unit="s",
                description="Time spent generating and logging one session event",
            ),
        )


class SessionEmitter:
    """Runs emission cycles against an explicitly supplied meter, tracer and logger."""

    def __init__(
        self,
        meter: Meter,
        generator: Callable[[], SessionEvent],
        serializer: SessionSerializer = serialize_session_event,
        tracer: Tracer | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.instruments = SessionInstruments.create(meter)
        self.generator = generator
        self.serializer = serializer
        self.tracer = tracer or trace.NoOpTracer()
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        # Single-slot gate: a cycle requested while one is in flight is skipped, not queued.
        self._busy = threading.Lock()

    def run_cycle(self) -> CycleResult:
        """Run one cycle unless another is in flight."""
        if not self._busy.acquire(blocking=False):
            self.logger.debug("Cycle skipped; previous cycle still running")
            return CycleResult.SKIPPED
        try:
            return self._cycle()
        finally:
            self._busy.release()

    def _cycle(self) -> CycleResult:
        start = self._clock()
        with self.tracer.start_as_current_span(CYCLE_SPAN_NAME, kind=SpanKind.INTERNAL) as span:
            event = self.generator()
            try:
                payload = self.serializer(event)
            except SerializationError as e:
                self.logger.error("Error serializing session event", extra={"error": str(e)})
                self.instruments.errors.add(1)
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                return CycleResult.FAILED

            span.set_attribute("session.id", event.session_id)
            self.logger.info("New session log event", extra={"data": payload})
            self.instruments.requests.add(1)
            self.instruments.duration.record(max(0.0, self._clock() - start))
            return CycleResult.SUCCESS
