"""Versioned envelope used for every domain event published on the bus.

Envelope shape::

    {
        "v": 1,
        "type": "favorites:changed",
        "at": 1700000000000,          # epoch milliseconds
        "meta": {"source": "FavoritesService", ...},
        "data": {...},
    }

Consumers call :func:`unwrap_event` so that legacy raw payloads and envelopes
can be processed uniformly.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ENVELOPE_VERSION = 1
FAVORITES_CHANGED = "favorites:changed"


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventEnvelope(BaseModel):
    """Immutable wrapper around an event payload."""

    model_config = ConfigDict(frozen=True)

    v: int = Field(ENVELOPE_VERSION, description="Envelope schema version.")
    type: str = Field("", description="Event type string.")
    at: int = Field(default_factory=_now_ms, description="Creation time, epoch ms.")
    meta: dict[str, Any] = Field(default_factory=dict)
    data: Any = None


def make_event_envelope(
    event_type: str,
    data: Any,
    meta: Mapping[str, Any] | None = None,
) -> EventEnvelope:
    """Wrap ``data`` in a version 1 envelope stamped with the current time."""

    return EventEnvelope(
        v=ENVELOPE_VERSION,
        type=str(event_type or "").strip(),
        meta=dict(meta) if isinstance(meta, Mapping) else {},
        data=data,
    )


def unwrap_event(payload: Any, fallback_type: str = "") -> EventEnvelope:
    """Return an envelope for ``payload`` whether or not it was already wrapped.

    Raw payloads come back with ``v=0`` and the ``fallback_type`` so callers can
    tell them apart from genuine envelopes.
    """

    if isinstance(payload, EventEnvelope):
        return payload
    if (
        isinstance(payload, Mapping)
        and payload.get("v") == ENVELOPE_VERSION
        and "data" in payload
    ):
        meta = payload.get("meta")
        return EventEnvelope(
            v=ENVELOPE_VERSION,
            type=str(payload.get("type") or fallback_type or "").strip(),
            at=int(payload.get("at") or _now_ms()),
            meta=dict(meta) if isinstance(meta, Mapping) else {},
            data=payload["data"],
        )
    return EventEnvelope(v=0, type=str(fallback_type or "").strip(), data=payload)


def _id_of(item: Any) -> str:
    if isinstance(item, Mapping) and item.get("id") is not None:
        return str(item["id"]).strip()
    return str(item if item is not None else "").strip()


def extract_ids(payload: Any) -> list[str] | None:
    """Pull identifiers out of the common payload shapes.

    Supports a scalar payload, ``{"id": ...}``, and ``ids``/``items``/
    ``changed_ids``/``changedIds`` sequences, wrapped in an envelope or not.
    """

    data = unwrap_event(payload).data
    if data is None or data == "":
        return None

    if isinstance(data, (str, int, float)) and not isinstance(data, bool):
        single = str(data).strip()
        return [single] if single else None

    if isinstance(data, Mapping):
        if data.get("id") is not None:
            single = str(data["id"]).strip()
            return [single] if single else None

        for field in ("ids", "items", "changed_ids", "changedIds"):
            values = data.get(field)
            if isinstance(values, (list, tuple)):
                return [value for value in map(_id_of, values) if value]

    return None


__all__ = [
    "ENVELOPE_VERSION",
    "FAVORITES_CHANGED",
    "EventEnvelope",
    "extract_ids",
    "make_event_envelope",
    "unwrap_event",
]
