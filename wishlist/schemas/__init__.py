"""Pydantic schemas shared by the favorites services."""

from wishlist.schemas.favorites import (  # noqa: F401
    ChangeNotification,
    FavoritesChangedPayload,
    ImportResult,
    NotificationType,
    OperationOutcome,
    OutcomeReason,
    OverflowPolicy,
    ReplaceResult,
    StorageChangeEvent,
    ToggleAction,
)
