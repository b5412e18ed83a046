"""Pydantic schemas describing favorites outcomes and notifications."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Aliased so the ``list`` field names below do not shadow the annotation.
IdentifierList = list[str]


class OverflowPolicy(str, Enum):
    """Rule applied when a capacity-bounded set is full and a new member arrives."""

    REJECT = "reject"
    DROP_OLDEST = "drop_oldest"

    @classmethod
    def coerce(cls, value: object) -> "OverflowPolicy":
        """Return the matching policy, falling back to :attr:`REJECT`."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.REJECT


class OutcomeReason(str, Enum):
    """Expected, non-exceptional reasons a mutation did not change state."""

    INVALID_ID = "invalid_id"
    EXISTS = "exists"
    NOT_FOUND = "not_found"
    LIMIT_REACHED = "limit_reached"
    ALREADY_EMPTY = "already_empty"
    DESTROYED = "destroyed"


class ToggleAction(str, Enum):
    """Branch taken by a toggle call."""

    ADD = "add"
    REMOVE = "remove"
    LIMIT = "limit"


class NotificationType(str, Enum):
    """Kinds of change notifications delivered to local subscribers."""

    LOAD = "load"
    ADD = "add"
    REMOVE = "remove"
    CLEAR = "clear"
    IMPORT = "import"
    SYNC = "sync"
    LIMIT = "limit"


class OperationOutcome(BaseModel):
    """Result of a single mutation on the favorites set."""

    model_config = ConfigDict(frozen=True)

    ok: bool = Field(..., description="True when the mutation changed state.")
    reason: OutcomeReason | None = Field(
        None, description="Why the mutation was a no-op, ``None`` on success."
    )
    id: str | None = Field(
        None, description="Normalized identifier the mutation targeted."
    )
    action: ToggleAction | None = Field(
        None, description="Branch taken by ``toggle``; unset for other operations."
    )

    @classmethod
    def success(cls, identifier: str | None = None) -> "OperationOutcome":
        return cls(ok=True, reason=None, id=identifier)

    @classmethod
    def failure(
        cls, reason: OutcomeReason, identifier: str | None = None
    ) -> "OperationOutcome":
        return cls(ok=False, reason=reason, id=identifier)

    def with_action(self, action: ToggleAction) -> "OperationOutcome":
        """Return a copy tagged with the toggle ``action``."""

        return self.model_copy(update={"action": action})


class ReplaceResult(BaseModel):
    """Outcome of replacing the whole favorites sequence."""

    model_config = ConfigDict(frozen=True)

    truncated: bool = Field(
        False, description="True when entries beyond the capacity were dropped."
    )
    list: IdentifierList = Field(default_factory=list)


class ImportResult(BaseModel):
    """Outcome of importing many identifiers at once."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    truncated: bool = False
    changed: bool = Field(
        False, description="True when the exported sequence differs from before."
    )
    list: IdentifierList = Field(default_factory=list)


class ChangeNotification(BaseModel):
    """Payload delivered to local subscribers after a change."""

    model_config = ConfigDict(frozen=True)

    type: NotificationType
    id: str | None = None
    reason: OutcomeReason | None = None
    list: IdentifierList = Field(
        default_factory=list,
        description="Full exported sequence at emission time.",
    )
    count: int = Field(0, ge=0)


class FavoritesChangedPayload(BaseModel):
    """Domain payload published on the process-wide event bus."""

    model_config = ConfigDict(frozen=True)

    action: str
    id: str | None = None
    ids: list[str] | None = None

    def to_data(self) -> dict[str, Any]:
        """Return the JSON-friendly payload without unset identifiers."""

        return self.model_dump(mode="json", exclude_none=True)


class StorageChangeEvent(BaseModel):
    """Notification that a persisted key was modified by another context."""

    model_config = ConfigDict(frozen=True)

    key: str | None = Field(
        None,
        description="Modified key; ``None`` is a broad refresh sentinel.",
    )
    new_value: Any = None
    origin: str | None = Field(
        None, description="Identifier of the execution context that wrote the key."
    )


__all__ = [
    "ChangeNotification",
    "FavoritesChangedPayload",
    "ImportResult",
    "NotificationType",
    "OperationOutcome",
    "OutcomeReason",
    "OverflowPolicy",
    "ReplaceResult",
    "StorageChangeEvent",
    "ToggleAction",
]
