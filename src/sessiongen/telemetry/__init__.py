"""OpenTelemetry SDK configuration and bootstrap."""

from .bootstrap import ShutdownFunc, TelemetrySDK, bootstrap, build_sdk, setup
from .sdk_config import SdkConfig, parse_sdk_config

__all__ = [
    "ShutdownFunc",
    "TelemetrySDK",
    "bootstrap",
    "build_sdk",
    "setup",
    "SdkConfig",
    "parse_sdk_config",
]
