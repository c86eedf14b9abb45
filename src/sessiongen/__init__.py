"""
Session Generator - periodic synthetic session telemetry.

This package fabricates synthetic user session records on a fixed interval and
emits them as OpenTelemetry logs, metrics and traces through an SDK configured
from a YAML file.
"""

__version__ = "1.0.0"
