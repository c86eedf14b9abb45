"""Errors raised by telemetry startup, shutdown and per-cycle serialization."""


class TelemetryConfigError(Exception):
    """Base class for fatal telemetry startup failures."""

    pass


class ConfigUnreadableError(TelemetryConfigError):
    """Raised when the configuration file cannot be located or read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read telemetry config {path}: {reason}")


class ConfigInvalidError(TelemetryConfigError):
    """Raised when the configuration text is not valid YAML or violates the schema."""

    def __init__(self, message: str, location: str | None = None):
        self.location = location
        super().__init__(f"{location}: {message}" if location else message)


class ProviderConstructionError(TelemetryConfigError):
    """Raised when a valid configuration cannot be turned into providers or exporters."""

    pass


class TelemetryShutdownError(Exception):
    """Raised when one or more providers fail to flush or shut down."""

    def __init__(self, failures: list[tuple[str, BaseException]]):
        self.failures = failures
        detail = "; ".join(f"{name}: {exc}" for name, exc in failures)
        super().__init__(f"Telemetry shutdown failed ({detail})")


class SerializationError(Exception):
    """Raised when a session record cannot be serialized for logging."""

    pass
