"""
Process defaults from environment.

SESSIONGEN_INTERVAL_SECONDS sets the emission period and
SESSIONGEN_SHUTDOWN_TIMEOUT_SECONDS the grace period for flushing telemetry on
exit. CLI flags override both.
"""

import math
import os

DEFAULT_INTERVAL_SECONDS = 15.0
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 5.0


def _positive_float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise SystemExit(f"{name} must be a number of seconds.") from None
    if not math.isfinite(value) or value <= 0:
        raise SystemExit(f"{name} must be a finite number greater than zero.")
    return value


def get_default_interval() -> float:
    """Emission period in seconds: SESSIONGEN_INTERVAL_SECONDS or 15."""
    return _positive_float_from_env("SESSIONGEN_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)


def get_default_shutdown_timeout() -> float:
    """Shutdown grace period in seconds: SESSIONGEN_SHUTDOWN_TIMEOUT_SECONDS or 5."""
    return _positive_float_from_env(
        "SESSIONGEN_SHUTDOWN_TIMEOUT_SECONDS", DEFAULT_SHUTDOWN_TIMEOUT_SECONDS
    )
