"""Process-local shared key/value store with per-context change notifications.

:class:`SharedKeyValueStore` plays the role a browser's shared storage plays
for its tabs: every :class:`KeyValueContext` reads and writes the same JSON
values, and a write made through one context notifies the subscribers of every
*other* context, never the writer itself.
"""

from __future__ import annotations

import inspect
import json
import logging
import uuid
from collections.abc import Callable
from typing import Any

from wishlist.schemas.favorites import StorageChangeEvent

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[StorageChangeEvent], Any]


class SharedKeyValueStore:
    """Backing store shared by every :class:`KeyValueContext` it creates."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._contexts: list[KeyValueContext] = []

    def context(self, context_id: str | None = None) -> "KeyValueContext":
        """Open a new execution context (e.g. one tab) on this store."""

        ctx = KeyValueContext(self, context_id=context_id or uuid.uuid4().hex)
        self._contexts.append(ctx)
        return ctx

    def detach(self, ctx: "KeyValueContext") -> None:
        if ctx in self._contexts:
            self._contexts.remove(ctx)

    def raw(self, key: str) -> str | None:
        return self._data.get(key)

    def keys(self) -> list[str]:
        return list(self._data)

    def _write(self, key: str, encoded: str | None) -> None:
        if encoded is None:
            self._data.pop(key, None)
        else:
            self._data[key] = encoded

    async def _dispatch(
        self, event: StorageChangeEvent, *, origin: "KeyValueContext | None"
    ) -> None:
        for ctx in list(self._contexts):
            if ctx is origin:
                continue
            await ctx._deliver(event)

    async def broadcast_refresh(self) -> None:
        """Notify every context with the ``key=None`` broad refresh sentinel."""

        await self._dispatch(StorageChangeEvent(key=None), origin=None)


class KeyValueContext:
    """One execution context's view of a :class:`SharedKeyValueStore`."""

    def __init__(
        self,
        store: SharedKeyValueStore,
        *,
        context_id: str,
        available: bool = True,
    ) -> None:
        self._store = store
        self._context_id = context_id
        self._handlers: list[ChangeHandler] = []
        self.available = available

    @property
    def context_id(self) -> str:
        return self._context_id

    def is_available(self) -> bool:
        return self.available

    def get_json(self, key: str, *, array_only: bool = False) -> Any:
        """Return the decoded value for ``key`` or ``None`` when unusable."""

        if not self.is_available():
            return None
        raw = self._store.raw(key)
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(f"Stored value for key={key!r} is not valid JSON: {exc}")
            return None
        if array_only and not isinstance(parsed, list):
            return None
        return parsed

    async def set_json(self, key: str, value: Any) -> bool:
        """Write ``value`` as JSON and notify the other contexts."""

        if not self.is_available():
            return False
        encoded = json.dumps(value, default=str)
        self._store._write(key, encoded)
        await self._store._dispatch(
            StorageChangeEvent(key=key, new_value=value, origin=self._context_id),
            origin=self,
        )
        return True

    async def remove(self, key: str) -> None:
        if not self.is_available():
            return
        self._store._write(key, None)
        await self._store._dispatch(
            StorageChangeEvent(key=key, new_value=None, origin=self._context_id),
            origin=self,
        )

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register ``handler`` for changes made by other contexts."""

        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def close(self) -> None:
        self._handlers.clear()
        self._store.detach(self)

    async def _deliver(self, event: StorageChangeEvent) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001 - one context must not break another
                logger.warning(
                    f"Change handler in context {self._context_id} failed: {exc}"
                )


__all__ = ["ChangeHandler", "KeyValueContext", "SharedKeyValueStore"]
