"""Business logic coordinating the favorites set, its storage and its listeners.

Model operations delegated to :class:`FavoritesSet`:
* ``add``/``remove``/``toggle``/``clear`` – single-item mutations returning an
  :class:`OperationOutcome` instead of raising.
* ``import_many``/``replace_all`` – bulk updates that respect the capacity.
* ``export_sequence``/``contains``/``count`` – read-only queries.

Persistence handled by :class:`FavoritesPersistence`:
* ``load_raw`` – failure-tolerant loading, enriched when the storage can.
* ``schedule_save``/``save_now``/``flush`` – debounced and immediate writes.
* out-of-band change detection, forwarded to :meth:`FavoritesService._reconcile`.

The service itself only sequences those calls, notifies local subscribers and
publishes envelopes on the process-wide :class:`EventBus`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from wishlist.cache import get_cache_client
from wishlist.events.bus import EventBus, get_event_bus
from wishlist.events.contracts import FAVORITES_CHANGED, make_event_envelope
from wishlist.schemas.favorites import (
    ChangeNotification,
    FavoritesChangedPayload,
    ImportResult,
    NotificationType,
    OperationOutcome,
    OutcomeReason,
    OverflowPolicy,
    StorageChangeEvent,
    ToggleAction,
)
from wishlist.services.favorites import (
    FavoritesPersistence,
    FavoritesSet,
    IdentifierNormalizer,
    has_storage_capabilities,
)
from wishlist.services.favorites.persistence import (
    ChangeChannelProtocol,
    FavoritesStorageProtocol,
)
from wishlist.settings import FavoritesSettings, get_settings, validate_environment
from wishlist.storage.favorites import FavoritesStorage
from wishlist.storage.redis import RedisKeyValueContext

logger = logging.getLogger(__name__)

EVENT_SOURCE = "FavoritesService"

Subscriber = Callable[[ChangeNotification], Any]


class FavoritesConfigurationError(TypeError):
    """Raised when the service is wired with an unusable storage collaborator."""


class FavoritesService:
    """Orchestrates the favorites model, persistence and change notifications."""

    def __init__(
        self,
        storage: FavoritesStorageProtocol,
        *,
        max_items: int | None = None,
        overflow: OverflowPolicy | str | None = None,
        save_debounce_ms: float | None = None,
        initial: Iterable[Any] | None = None,
        sync: bool | None = None,
        storage_key: str | None = None,
        channel: ChangeChannelProtocol | None = None,
        event_bus: EventBus | None = None,
        normalizer: IdentifierNormalizer | None = None,
        settings: FavoritesSettings | None = None,
    ) -> None:
        if not has_storage_capabilities(storage):
            raise FavoritesConfigurationError(
                "FavoritesService requires storage with load() and save() methods"
            )

        resolved = settings or get_settings()
        self._destroyed = False
        self._subscribers: list[Subscriber] = []
        self._bus = event_bus if event_bus is not None else get_event_bus()

        self._model = FavoritesSet(
            max_items=resolved.max_items if max_items is None else max_items,
            overflow=resolved.overflow if overflow is None else overflow,
            normalizer=normalizer,
        )
        self._persistence = FavoritesPersistence(
            storage,
            save_debounce_ms=(
                resolved.save_debounce_ms if save_debounce_ms is None else save_debounce_ms
            ),
            storage_key=storage_key,
            sync=resolved.sync if sync is None else sync,
            channel=channel,
            on_external_change=self._reconcile,
        )

        if initial:
            # The seed mirrors already-persisted state, so it is not written back.
            self.import_from_array(initial, replace=True, persist=False)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def _emit(
        self,
        kind: NotificationType,
        *,
        identifier: str | None = None,
        reason: OutcomeReason | None = None,
    ) -> None:
        notification = ChangeNotification(
            type=kind,
            id=identifier,
            reason=reason,
            list=self._model.export_sequence(),
            count=self._model.count(),
        )
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as exc:  # noqa: BLE001 - subscribers must not break the service
                logger.warning(f"Favorites subscriber failed on '{kind.value}': {exc}")

    def _publish(
        self,
        action: str,
        *,
        identifier: str | None = None,
        ids: list[str] | None = None,
    ) -> None:
        payload = FavoritesChangedPayload(action=action, id=identifier, ids=ids)
        envelope = make_event_envelope(
            FAVORITES_CHANGED, payload.to_data(), {"source": EVENT_SOURCE}
        )
        self._bus.emit(FAVORITES_CHANGED, envelope)

    def _schedule_save(self) -> None:
        self._persistence.schedule_save(self._model.export_sequence())

    def _destroyed_outcome(self, value: Any = None) -> OperationOutcome:
        return OperationOutcome.failure(OutcomeReason.DESTROYED, self._model.normalize(value))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def max_items(self) -> int:
        return self._model.max_items

    @property
    def overflow(self) -> OverflowPolicy:
        return self._model.overflow

    @property
    def persistence(self) -> FavoritesPersistence:
        return self._persistence

    def is_favorite(self, value: Any) -> bool:
        return self._model.contains(value)

    def has(self, value: Any) -> bool:
        return self.is_favorite(value)

    def get_all(self) -> list[str]:
        return self._model.export_sequence()

    def export_to_array(self) -> list[str]:
        return self._model.export_sequence()

    def get_count(self) -> int:
        return self._model.count()

    def to_set(self) -> set[str]:
        return self._model.to_set()

    def __iter__(self) -> Iterator[str]:
        return iter(self._model)

    def __len__(self) -> int:
        return self._model.count()

    def __contains__(self, value: object) -> bool:
        return self._model.contains(value)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add(self, value: Any) -> OperationOutcome:
        if self._destroyed:
            return self._destroyed_outcome(value)

        outcome = self._model.add(value)
        if not outcome.ok:
            if outcome.reason is OutcomeReason.LIMIT_REACHED:
                self._emit(NotificationType.LIMIT, identifier=outcome.id, reason=outcome.reason)
            return outcome

        self._schedule_save()
        self._emit(NotificationType.ADD, identifier=outcome.id)
        self._publish("add", identifier=outcome.id)
        return outcome

    def remove(self, value: Any) -> OperationOutcome:
        if self._destroyed:
            return self._destroyed_outcome(value)

        outcome = self._model.remove(value)
        if not outcome.ok:
            return outcome

        self._schedule_save()
        self._emit(NotificationType.REMOVE, identifier=outcome.id)
        self._publish("remove", identifier=outcome.id)
        return outcome

    def toggle(self, value: Any) -> OperationOutcome:
        if self._destroyed:
            return self._destroyed_outcome(value)

        outcome = self._model.toggle(value)
        if outcome.action is ToggleAction.LIMIT:
            self._emit(NotificationType.LIMIT, identifier=outcome.id, reason=outcome.reason)
            return outcome
        if not outcome.ok:
            return outcome

        self._schedule_save()
        kind = (
            NotificationType.ADD
            if outcome.action is ToggleAction.ADD
            else NotificationType.REMOVE
        )
        self._emit(kind, identifier=outcome.id)
        self._publish(kind.value, identifier=outcome.id)
        return outcome

    def clear(self) -> OperationOutcome:
        if self._destroyed:
            return self._destroyed_outcome()

        before = self._model.export_sequence()
        outcome = self._model.clear()
        if not outcome.ok:
            return outcome

        self._schedule_save()
        self._emit(NotificationType.CLEAR)
        self._publish("clear", ids=before)
        return outcome

    def import_from_array(
        self,
        values: Iterable[Any] | None,
        *,
        replace: bool = False,
        persist: bool = True,
    ) -> ImportResult:
        if self._destroyed:
            return ImportResult(ok=False, list=self._model.export_sequence())

        result = self._model.import_many(values, replace=replace)
        if not result.changed:
            return result

        if persist:
            self._schedule_save()
        self._emit(NotificationType.IMPORT)
        self._publish("import", ids=result.list)
        return result

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    async def load_from_storage(self) -> list[str]:
        """Replace the in-memory set with the persisted one."""

        if self._destroyed:
            return self._model.export_sequence()

        # A write queued before the load would overwrite the list being loaded.
        self._persistence.discard_pending()
        raw = await self._persistence.load_raw()
        result = self._model.replace_all(raw)
        if result.truncated:
            # Stale over-capacity data gets rewritten in its truncated form.
            self._persistence.schedule_save(result.list)

        self._emit(NotificationType.LOAD)
        self._publish("load", ids=result.list)
        return result.list

    def save_to_storage(self) -> None:
        if self._destroyed:
            return
        self._persistence.save_now(self._model.export_sequence())

    async def flush(self) -> None:
        await self._persistence.flush()

    async def _reconcile(self, event: StorageChangeEvent | None = None) -> None:
        """Converge on a list persisted by another execution context."""

        if self._destroyed:
            return
        try:
            previous = self._model.export_sequence()
            await self.load_from_storage()
            current = self._model.export_sequence()
            if len(previous) != len(current) or any(
                before != after for before, after in zip(previous, current)
            ):
                self._emit(NotificationType.SYNC)
                self._publish("sync", ids=current)
        except Exception as exc:  # noqa: BLE001 - fall back to a forced refresh
            logger.warning(f"Favorites reconciliation failed, forcing refresh: {exc}")
            await self._force_refresh()

    async def _force_refresh(self) -> None:
        """Reload without comparison or debounce and announce the result as ``sync``.

        Over-capacity data is rewritten immediately. If the reload fails too,
        the current in-memory state is announced unchanged.
        """

        try:
            self._persistence.discard_pending()
            result = self._model.replace_all(await self._persistence.load_raw())
            if result.truncated:
                self._persistence.save_now(result.list)
        except Exception as exc:  # noqa: BLE001 - announce the state we still hold
            logger.error(f"Forced favorites refresh failed: {exc}")
        self._emit(NotificationType.SYNC)
        self._publish("sync", ids=self._model.export_sequence())

    # ------------------------------------------------------------------
    # Subscriptions and lifecycle
    # ------------------------------------------------------------------
    def subscribe(
        self, callback: Subscriber, *, immediate: bool = True
    ) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""

        if not callable(callback):
            raise TypeError("subscribe requires a callable")

        if callback not in self._subscribers:
            self._subscribers.append(callback)

        if immediate:
            snapshot = ChangeNotification(
                type=NotificationType.LOAD,
                list=self._model.export_sequence(),
                count=self._model.count(),
            )
            try:
                callback(snapshot)
            except Exception as exc:  # noqa: BLE001 - subscribers must not break the service
                logger.warning(f"Favorites subscriber failed on immediate delivery: {exc}")

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    async def destroy(self) -> None:
        """Make the service inert, flush pending writes and drop subscribers."""

        if self._destroyed:
            return
        self._destroyed = True
        await self._persistence.destroy()
        self._subscribers.clear()


async def create_favorites_service(
    storage: FavoritesStorageProtocol, **options: Any
) -> FavoritesService:
    """Build a :class:`FavoritesService` and load the persisted favorites."""

    service = FavoritesService(storage, **options)
    await service.load_from_storage()
    return service


async def get_favorites_service(
    settings: FavoritesSettings | None = None,
    *,
    event_bus: EventBus | None = None,
) -> tuple[FavoritesService, RedisKeyValueContext]:
    """Wire a service to Redis storage and start listening for remote changes.

    The returned context must be stopped by the caller (``await context.stop()``)
    once the service is destroyed.
    """

    resolved = settings or get_settings()
    validate_environment(resolved)
    cache_client = await get_cache_client()
    context = RedisKeyValueContext(cache_client, channel=resolved.change_channel)
    storage = FavoritesStorage(context, storage_key=resolved.storage_key)
    service = await create_favorites_service(
        storage,
        channel=context,
        event_bus=event_bus,
        settings=resolved,
    )
    if resolved.sync and cache_client.available:
        context.start()
    return service, context


__all__ = [
    "FavoritesConfigurationError",
    "FavoritesService",
    "create_favorites_service",
    "get_favorites_service",
]
