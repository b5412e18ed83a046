"""Cancellable delayed actions used to debounce persisted writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DelayedTask(Generic[T]):
    """Run ``action(payload)`` once after ``delay_seconds`` of quiet.

    Every :meth:`schedule` call replaces the pending payload and restarts the
    window, so only the most recent payload is ever delivered. The timer lives
    on the running asyncio loop; :meth:`cancel` and :meth:`flush` give callers
    explicit control over what happens to a pending payload.
    """

    def __init__(self, action: Callable[[T], None], delay_seconds: float) -> None:
        self._action = action
        self._delay = max(0.0, float(delay_seconds))
        self._handle: asyncio.TimerHandle | None = None
        self._payload: T | None = None
        self._has_payload = False

    @property
    def delay_seconds(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._has_payload

    def schedule(self, payload: T) -> None:
        self._cancel_timer()
        self._payload = payload
        self._has_payload = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to defer on; deliver synchronously rather than lose the write.
            logger.debug("No running event loop; running delayed action immediately")
            self.flush()
            return
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> T | None:
        """Drop the pending payload and return it, if any."""

        self._cancel_timer()
        payload = self._payload if self._has_payload else None
        self._payload = None
        self._has_payload = False
        return payload

    def flush(self) -> bool:
        """Run the pending action now. Returns ``True`` if something ran."""

        if not self._has_payload:
            self._cancel_timer()
            return False
        payload = self.cancel()
        self._action(payload)  # type: ignore[arg-type]
        return True

    def _fire(self) -> None:
        self._handle = None
        self.flush()

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


__all__ = ["DelayedTask"]
