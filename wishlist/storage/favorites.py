"""Storage collaborators persisting the favorites list under a single key."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from wishlist.services.favorites.normalization import normalize_id
from wishlist.settings import DEFAULT_STORAGE_KEY

from .availability import AvailabilityLoader, MissingCallback

logger = logging.getLogger(__name__)


class KeyValueContextProtocol(Protocol):
    """What a favorites storage needs from a key/value context.

    ``get_json`` and ``set_json`` may be synchronous or coroutines.
    """

    def get_json(self, key: str, *, array_only: bool = False) -> Any: ...

    def set_json(self, key: str, value: Any) -> Any: ...


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FavoritesStorage:
    """Persist the ordered favorites list as a JSON array."""

    def __init__(
        self,
        context: KeyValueContextProtocol,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self._context = context
        self.storage_key = storage_key

    @property
    def context(self) -> KeyValueContextProtocol:
        return self._context

    async def load(self) -> list[Any] | None:
        """Return the stored array, or ``None`` when nothing usable is stored."""

        return await _resolve(self._context.get_json(self.storage_key, array_only=True))

    async def save(self, items: Iterable[Any]) -> bool:
        written = bool(await _resolve(self._context.set_json(self.storage_key, list(items))))
        if not written:
            logger.warning(f"Favorites could not be written under key={self.storage_key!r}")
        return written


def _normalize_entry(item: Any) -> Any:
    if isinstance(item, str) or not isinstance(item, Mapping):
        return item
    return {
        "name": normalize_id(item) or "",
        "fullname": item.get("fullname") or "",
        "price": float(item.get("price") or 0),
        "stock": float(item.get("stock") or 0),
    }


class AvailabilityFavoritesStorage(FavoritesStorage):
    """Favorites storage that can enrich loaded entries with availability data."""

    def __init__(
        self,
        context: KeyValueContextProtocol,
        *,
        availability_loader: AvailabilityLoader,
        storage_key: str = DEFAULT_STORAGE_KEY,
        on_missing: MissingCallback | None = None,
    ) -> None:
        super().__init__(context, storage_key=storage_key)
        self._availability_loader = availability_loader
        self._on_missing = on_missing

    async def load_with_enrichment(self, items: list[Any]) -> list[Any]:
        if not items:
            return list(items or [])
        normalized = [_normalize_entry(item) for item in items]
        return await self._availability_loader.load_with_availability(
            normalized, on_missing=self._on_missing
        )


__all__ = [
    "AvailabilityFavoritesStorage",
    "FavoritesStorage",
    "KeyValueContextProtocol",
]
