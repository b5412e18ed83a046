"""Storage bridge for the favorites set: loading, debounced saves, change detection."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from wishlist.schemas.favorites import StorageChangeEvent

from .scheduling import DelayedTask

logger = logging.getLogger(__name__)

ExternalChangeCallback = Callable[[StorageChangeEvent], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class FavoritesStorageProtocol(Protocol):
    """Capabilities the bridge requires from a storage collaborator.

    ``load`` and ``save`` may be plain functions or coroutines. Storages may
    additionally expose ``load_with_enrichment(items)`` and a ``storage_key``
    attribute naming the persisted key.
    """

    def load(self) -> Any: ...

    def save(self, items: list[str]) -> Any: ...


class ChangeChannelProtocol(Protocol):
    """Platform channel firing when another context modifies a persisted key.

    A handler may return an awaitable that is already scheduled on the running
    loop. Channels can await it to wait for the reaction or ignore it.
    """

    def subscribe(
        self, handler: Callable[[StorageChangeEvent], Any]
    ) -> Unsubscribe: ...


def has_storage_capabilities(storage: object) -> bool:
    """Return ``True`` when ``storage`` exposes callable ``load`` and ``save``."""

    return callable(getattr(storage, "load", None)) and callable(
        getattr(storage, "save", None)
    )


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FavoritesPersistence:
    """Encapsulates every interaction between the favorites set and storage.

    The bridge never owns the favorites set: it is handed exported lists to
    write and returns raw loaded entries. Failures are logged and absorbed at
    this boundary so the in-memory model stays the source of truth until the
    next successful load or save.
    """

    def __init__(
        self,
        storage: FavoritesStorageProtocol,
        *,
        save_debounce_ms: float = 200,
        storage_key: str | None = None,
        sync: bool = True,
        channel: ChangeChannelProtocol | None = None,
        on_external_change: ExternalChangeCallback | None = None,
    ) -> None:
        if not has_storage_capabilities(storage):
            raise TypeError("FavoritesPersistence requires storage with load() and save()")

        self._storage = storage
        self._storage_key = storage_key or getattr(storage, "storage_key", None) or None
        self._sync = bool(sync)
        self._on_external_change = on_external_change
        self._destroyed = False
        self._inflight: set[asyncio.Future[Any]] = set()

        try:
            debounce = float(save_debounce_ms)
        except (TypeError, ValueError):
            debounce = 200.0
        self._save_debounce_ms = max(0.0, debounce)
        self._delayed: DelayedTask[list[str]] = DelayedTask(
            self._write, self._save_debounce_ms / 1000.0
        )

        self._unsubscribe: Unsubscribe | None = None
        if self._sync and channel is not None:
            if self._storage_key is None:
                logger.warning(
                    "Cross-context sync requested without a storage key; "
                    "external changes will be ignored"
                )
            self._unsubscribe = channel.subscribe(self._on_storage_event)

    @property
    def storage(self) -> FavoritesStorageProtocol:
        return self._storage

    @property
    def storage_key(self) -> str | None:
        return self._storage_key

    @property
    def save_debounce_ms(self) -> float:
        return self._save_debounce_ms

    @property
    def save_pending(self) -> bool:
        return self._delayed.pending

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def set_external_change_callback(self, callback: ExternalChangeCallback | None) -> None:
        self._on_external_change = callback

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load_raw(self) -> list[Any]:
        """Load raw entries, preferring the storage's enriched variant.

        Any failure degrades to an empty list.
        """

        try:
            loaded = await _resolve(self._storage.load())
            enrich = getattr(self._storage, "load_with_enrichment", None)
            if callable(enrich) and isinstance(loaded, (list, tuple)) and loaded:
                loaded = await _resolve(enrich(list(loaded)))
        except Exception as exc:  # noqa: BLE001 - load failures are non-fatal
            logger.warning(f"Favorites load failed: {exc}")
            return []

        if not isinstance(loaded, (list, tuple)):
            return []
        return list(loaded)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------
    def schedule_save(self, items: Sequence[str]) -> None:
        """Coalesce writes; only the latest ``items`` within a window are saved."""

        if self._destroyed:
            return
        snapshot = list(items)
        if self._save_debounce_ms <= 0:
            self._write(snapshot)
            return
        self._delayed.schedule(snapshot)

    def save_now(self, items: Sequence[str]) -> None:
        """Cancel any pending debounced write and write ``items`` immediately."""

        if self._destroyed:
            return
        self._delayed.cancel()
        self._write(list(items))

    def discard_pending(self) -> list[str] | None:
        """Drop the pending debounced payload without writing it."""

        return self._delayed.cancel()

    async def flush(self) -> None:
        """Write the pending payload now and wait for in-flight writes."""

        self._delayed.flush()
        await self._drain()

    def _write(self, items: list[str]) -> None:
        if self._destroyed:
            return
        logger.debug(f"Persisting {len(items)} favorites")
        try:
            result = self._storage.save(items)
        except Exception as exc:  # noqa: BLE001 - save failures are logged, not raised
            logger.warning(f"Favorites save failed: {exc}")
            return

        if not inspect.isawaitable(result):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside an event loop the write has to complete before returning.
            asyncio.run(self._await_write(result))
            return
        future = loop.create_task(self._await_write(result))
        self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)

    async def _await_write(self, pending: Awaitable[Any]) -> None:
        try:
            await pending
        except Exception as exc:  # noqa: BLE001 - save failures are logged, not raised
            logger.warning(f"Favorites async save failed: {exc}")

    async def _drain(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    # ------------------------------------------------------------------
    # Out-of-band changes
    # ------------------------------------------------------------------
    def _on_storage_event(self, event: StorageChangeEvent) -> Awaitable[None] | None:
        key = getattr(event, "key", None)
        if key is None:
            logger.debug("Ignoring broad refresh signal without a key")
            return None
        if self._destroyed or self._storage_key is None or key != self._storage_key:
            return None
        if self._on_external_change is None:
            return None

        result = self._on_external_change(event)
        if not inspect.isawaitable(result):
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run_external_change(result))
            return None
        # Scheduled here so channels that only fire callbacks still reconcile.
        task = loop.create_task(self._run_external_change(result))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_external_change(self, pending: Awaitable[Any]) -> None:
        try:
            await pending
        except Exception as exc:  # noqa: BLE001 - channel handlers must not raise
            logger.warning(f"Handling external favorites change failed: {exc}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def destroy(self) -> None:
        """Stop listening, cancel the timer and flush the pending write. Idempotent."""

        if self._destroyed:
            return
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        pending = self._delayed.cancel()
        if pending is not None:
            self._write(pending)
        self._destroyed = True
        await self._drain()


__all__ = [
    "ChangeChannelProtocol",
    "ExternalChangeCallback",
    "FavoritesPersistence",
    "FavoritesStorageProtocol",
    "has_storage_capabilities",
]
