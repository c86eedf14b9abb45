"""
Command-line interface for the session generator.

Bootstraps the OpenTelemetry SDK from a YAML config, then emits one synthetic
session every interval until SIGINT/SIGTERM. On stop, the in-flight cycle is
given the shutdown grace period to finish and buffered telemetry is flushed.
"""

import argparse
import logging
import math
import signal
import sys
import time

from opentelemetry import metrics, trace

from . import __version__
from .config import DEFAULT_CONFIG_PATH
from .defaults import get_default_interval, get_default_shutdown_timeout
from .emitter import INSTRUMENTATION_NAME, SessionEmitter
from .errors import TelemetryConfigError, TelemetryShutdownError
from .generators.session_generator import SessionEventGenerator
from .logging_setup import attach_otel_handler, configure_logging
from .runner import PeriodicRunner
from .telemetry.bootstrap import bootstrap

logger = logging.getLogger("sessiongen.cli")

# How often the main thread wakes to let signal handlers run while waiting on the runner.
_JOIN_POLL_SECONDS = 0.5


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sessiongen",
        description="Emit synthetic session logs and metrics through an OpenTelemetry SDK",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use ./otel.yaml and the default 15s interval
  sessiongen

  # Custom config, one session per second
  OTLP_ENDPOINT=http://collector:4318 sessiongen --otel deploy/otel.yaml --interval 1
        """,
    )
    parser.add_argument(
        "--otel",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to OpenTelemetry config (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between sessions (default: SESSIONGEN_INTERVAL_SECONDS or 15)",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=None,
        help="Seconds allowed for flushing telemetry on exit (default: 5)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: INFO)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _install_signal_handlers(runner: PeriodicRunner) -> None:
    def handle(signum, frame):
        runner.stop()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def main(argv: list[str] | None = None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    interval = args.interval if args.interval is not None else get_default_interval()
    shutdown_timeout = (
        args.shutdown_timeout
        if args.shutdown_timeout is not None
        else get_default_shutdown_timeout()
    )
    if not all(math.isfinite(v) and v > 0 for v in (interval, shutdown_timeout)):
        parser.error("--interval and --shutdown-timeout must be finite and greater than zero")

    configure_logging(args.log_level)

    try:
        sdk = bootstrap(args.otel)
    except TelemetryConfigError as e:
        logger.critical("Failed to setup telemetry SDK", extra={"error": str(e)})
        sys.exit(1)

    attach_otel_handler()

    # Outermost composition boundary: resolve instruments from the installed globals.
    emitter = SessionEmitter(
        meter=metrics.get_meter(INSTRUMENTATION_NAME, __version__),
        tracer=trace.get_tracer(INSTRUMENTATION_NAME, __version__),
        generator=SessionEventGenerator(),
        logger=logging.getLogger("sessiongen.emitter"),
    )
    runner = PeriodicRunner(emitter.run_cycle, interval)
    _install_signal_handlers(runner)

    logger.info(
        "Session generator started",
        extra={"interval_seconds": interval, "config": args.otel},
    )
    runner.start()
    while runner.is_alive() and not runner.stopped:
        runner.join(_JOIN_POLL_SECONDS)

    # One grace period covers the in-flight cycle and the telemetry flush.
    deadline = time.monotonic() + shutdown_timeout
    if not runner.join(shutdown_timeout):
        logger.warning("Abandoning in-flight cycle after %.1fs", shutdown_timeout)
    logger.info(
        "Session generator stopped",
        extra={"cycles": runner.cycles_run, "ticks_dropped": runner.ticks_dropped},
    )

    remaining = max(0.0, deadline - time.monotonic())
    try:
        sdk.shutdown(timeout_millis=int(remaining * 1000))
    except TelemetryShutdownError as e:
        logger.error("Telemetry shutdown failed", extra={"error": str(e)})
        sys.exit(1)
    if runner.error is not None:
        sys.exit(1)


if __name__ == "__main__":
    main()
