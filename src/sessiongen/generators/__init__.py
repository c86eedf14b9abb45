"""Synthetic work record generators."""

from .session_generator import (
    SessionEvent,
    SessionEventGenerator,
    SessionSerializer,
    serialize_session_event,
)

__all__ = [
    "SessionEvent",
    "SessionEventGenerator",
    "SessionSerializer",
    "serialize_session_event",
]
