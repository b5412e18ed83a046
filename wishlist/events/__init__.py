"""Domain event plumbing: the process-wide bus and its versioned envelope."""

from .bus import EventBus, get_event_bus
from .contracts import (
    ENVELOPE_VERSION,
    FAVORITES_CHANGED,
    EventEnvelope,
    extract_ids,
    make_event_envelope,
    unwrap_event,
)

__all__ = [
    "ENVELOPE_VERSION",
    "EventBus",
    "EventEnvelope",
    "FAVORITES_CHANGED",
    "extract_ids",
    "get_event_bus",
    "make_event_envelope",
    "unwrap_event",
]
