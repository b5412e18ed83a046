"""Process-wide publish/subscribe channel with priorities and one-shot handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Any]


@dataclass(slots=True)
class _Listener:
    handler: EventHandler
    once: bool = False
    priority: int = 0


class EventBus:
    """Synchronous event bus.

    Handlers registered with a higher ``priority`` run first; handlers sharing a
    priority run in registration order. A failing handler is logged and does not
    stop the remaining handlers.
    """

    def __init__(self) -> None:
        self._events: dict[str, list[_Listener]] = {}

    def on(
        self,
        event: str,
        handler: EventHandler,
        *,
        once: bool = False,
        priority: int = 0,
    ) -> Callable[[], None]:
        """Register ``handler`` for ``event`` and return an unsubscribe callable."""

        if not event or not callable(handler):
            raise TypeError("EventBus.on requires an event name and a callable handler")

        listeners = self._events.setdefault(event, [])
        listeners.append(_Listener(handler=handler, once=once, priority=priority))
        # sort() is stable, so equal priorities keep registration order.
        listeners.sort(key=lambda listener: listener.priority, reverse=True)
        return lambda: self.off(event, handler)

    def once(
        self, event: str, handler: EventHandler, *, priority: int = 0
    ) -> Callable[[], None]:
        return self.on(event, handler, once=True, priority=priority)

    def emit(self, event: str, data: Any = None) -> None:
        listeners = self._events.get(event)
        if not listeners:
            return

        for listener in list(listeners):
            try:
                listener.handler(data)
            except Exception as exc:  # noqa: BLE001 - handlers must not break the bus
                logger.error(f"Error in handler for event '{event}': {exc}", exc_info=True)
            if listener.once:
                self.off(event, listener.handler)

    def off(self, event: str | None = None, handler: EventHandler | None = None) -> None:
        """Remove one handler, every handler of ``event``, or everything."""

        if event is None:
            self._events.clear()
            return
        if event not in self._events:
            return
        if handler is None:
            self._events[event] = []
            return
        self._events[event] = [
            listener for listener in self._events[event] if listener.handler != handler
        ]

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, []))


_default_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Return the process-wide bus, creating it on first use."""

    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


__all__ = ["EventBus", "EventHandler", "get_event_bus"]
