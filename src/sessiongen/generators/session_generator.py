"""
Generate synthetic user session records.

Each record is independent of the previous ones: a fresh session id, a fake
customer email, country, browser user agent and IPv4 address, stamped with the
current UTC time. Generation never touches telemetry.
"""

import json
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from faker import Faker

from ..errors import SerializationError


@dataclass(frozen=True)
class SessionEvent:
    """A synthetic user session activity."""

    session_id: str
    email: str
    country: str
    browser: str
    login_time: str
    ip_address: str

    def to_dict(self) -> dict[str, str]:
        """Field mapping in wire order."""
        return asdict(self)


SessionSerializer = Callable[[SessionEvent], str]


class SessionEventGenerator:
    """Produce SessionEvents from Faker; pass a seed for reproducible output."""

    def __init__(
        self,
        seed: int | None = None,
        locale: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.faker = Faker(locale) if locale else Faker()
        if seed is not None:
            self.faker.seed_instance(seed)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self) -> SessionEvent:
        """Return one new session record."""
        return SessionEvent(
            session_id=self.faker.uuid4(),
            email=self.faker.email(),
            country=self.faker.country(),
            browser=self.faker.user_agent(),
            login_time=self._clock().isoformat(timespec="seconds"),
            ip_address=self.faker.ipv4(),
        )

    __call__ = generate


def serialize_session_event(event: SessionEvent) -> str:
    """Encode a session record as compact JSON. Raises SerializationError."""
    try:
        return json.dumps(event.to_dict(), separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize session event: {e}") from e
