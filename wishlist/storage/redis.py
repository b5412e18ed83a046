"""Redis-backed key/value context shared by processes on different hosts.

Values live under :func:`wishlist.cache.favorites_key`; every successful write
is announced on a pub/sub channel together with the writer's origin token so
that each context can ignore its own announcements, mirroring the in-memory
store's semantics.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from wishlist.cache import CacheClient, favorites_key
from wishlist.schemas.favorites import StorageChangeEvent
from wishlist.settings import DEFAULT_CHANGE_CHANNEL

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[StorageChangeEvent], Any]


class RedisKeyValueContext:
    """Expose the key/value context interface on top of :class:`CacheClient`."""

    def __init__(
        self,
        cache: CacheClient,
        *,
        channel: str = DEFAULT_CHANGE_CHANNEL,
        context_id: str | None = None,
    ) -> None:
        self._cache = cache
        self._channel = channel
        self._context_id = context_id or uuid.uuid4().hex
        self._handlers: list[ChangeHandler] = []
        self._listener: asyncio.Task[None] | None = None

    @property
    def context_id(self) -> str:
        return self._context_id

    @property
    def channel(self) -> str:
        return self._channel

    def is_available(self) -> bool:
        return self._cache.available

    async def get_json(self, key: str, *, array_only: bool = False) -> Any:
        value = await self._cache.get_json(favorites_key(key))
        if array_only and not isinstance(value, list):
            return None
        return value

    async def set_json(self, key: str, value: Any) -> bool:
        written = await self._cache.set_json(favorites_key(key), value)
        if written:
            await self._announce(key, value)
        return written

    async def remove(self, key: str) -> None:
        await self._cache.delete(favorites_key(key))
        await self._announce(key, None)

    async def _announce(self, key: str, value: Any) -> None:
        await self._cache.publish(
            self._channel,
            {"key": key, "new_value": value, "origin": self._context_id},
        )

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    async def handle_message(self, message: Mapping[str, Any] | None) -> None:
        """Decode one pub/sub message and deliver it to local handlers."""

        if not message or message.get("type") != "message":
            return
        try:
            decoded = json.loads(message.get("data") or "")
        except (TypeError, json.JSONDecodeError) as exc:
            logger.debug(f"Ignoring malformed change message on {self._channel}: {exc}")
            return
        if not isinstance(decoded, Mapping):
            return
        if decoded.get("origin") == self._context_id:
            return

        event = StorageChangeEvent(
            key=decoded.get("key"),
            new_value=decoded.get("new_value"),
            origin=decoded.get("origin"),
        )
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001 - handler errors stay local
                logger.warning(f"Change handler failed for key={event.key!r}: {exc}")

    async def listen(self) -> None:
        """Pump the pub/sub subscription until cancelled."""

        redis = self._cache.redis
        if redis is None:
            logger.info("Redis unavailable; cross-context change events disabled.")
            return

        pubsub = redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                await self.handle_message(message)
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()

    def start(self) -> None:
        if self._listener is None or self._listener.done():
            self._listener = asyncio.get_running_loop().create_task(self.listen())

    async def stop(self) -> None:
        if self._listener is None:
            return
        self._listener.cancel()
        try:
            await self._listener
        except asyncio.CancelledError:
            pass
        self._listener = None


__all__ = ["RedisKeyValueContext"]
