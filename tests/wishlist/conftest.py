"""Shared fixtures and storage doubles for the favorites test-suite."""

from __future__ import annotations

from typing import Any

import pytest

from wishlist.events.bus import EventBus
from wishlist.events.contracts import FAVORITES_CHANGED
from wishlist.settings import FavoritesSettings
from wishlist.storage.memory import SharedKeyValueStore


class RecordingStorage:
    """Storage double recording every save and serving a canned load result."""

    def __init__(
        self,
        items: Any = None,
        *,
        storage_key: str = "favs",
        async_save: bool = False,
    ) -> None:
        self.items = items
        self.storage_key = storage_key
        self.async_save = async_save
        self.saves: list[list[str]] = []
        self.load_error: Exception | None = None
        self.save_error: Exception | None = None

    def load(self) -> Any:
        if self.load_error is not None:
            raise self.load_error
        return self.items

    def save(self, items: list[str]) -> Any:
        if self.async_save:
            return self._save_async(items)
        self._record(items)
        return None

    async def _save_async(self, items: list[str]) -> None:
        self._record(items)

    def _record(self, items: list[str]) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.saves.append(list(items))
        self.items = list(items)


class FakeChannel:
    """Notification channel double delivering events on demand."""

    def __init__(self) -> None:
        self.handlers: list[Any] = []

    def subscribe(self, handler: Any) -> Any:
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    async def fire(self, event: Any) -> None:
        for handler in list(self.handlers):
            result = handler(event)
            if result is not None:
                await result


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def bus_events(bus: EventBus) -> list[Any]:
    """Collect every favorites envelope published on ``bus``."""

    received: list[Any] = []
    bus.on(FAVORITES_CHANGED, received.append)
    return received


@pytest.fixture
def settings() -> FavoritesSettings:
    """Immediate writes and no capacity unless a test overrides them."""

    return FavoritesSettings(
        max_items=0,
        overflow="reject",
        save_debounce_ms=0,
        sync=True,
        storage_key="favs",
    )


@pytest.fixture
def shared_store() -> SharedKeyValueStore:
    return SharedKeyValueStore()
