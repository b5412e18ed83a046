"""Availability enrichment for persisted favorites entries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

logger = logging.getLogger(__name__)

ProductLookup = Callable[[str], Awaitable[Mapping[str, Any] | None]]
MissingCallback = Callable[[str], Any]

_KEY_FIELDS = ("name", "id", "productId", "_missingId")
_STOCK_FIELDS = ("stock", "_stock", "count", "qty")
_TITLE_FIELDS = ("fullname", "title", "name")

DEFAULT_CONCURRENCY = 6


def _key_of(item: Any) -> str:
    if item is None:
        return ""
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, Mapping):
        for field in _KEY_FIELDS:
            if item.get(field) is not None:
                return str(item[field]).strip()
    return ""


def _as_number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _first_present(source: Mapping[str, Any], fields: Sequence[str]) -> Any:
    for field in fields:
        if source.get(field) is not None:
            return source[field]
    return None


def _mark_missing(entry: dict[str, Any]) -> dict[str, Any]:
    entry.update(available=False, missing=True, stock=0)
    return entry


class AvailabilityLoader:
    """Annotate favorites entries with ``available``, ``missing`` and ``stock``.

    Entries are looked up in batches of ``concurrency`` through the async
    ``lookup`` callable. Without a lookup, availability is derived from the
    entry's own ``stock`` value.
    """

    def __init__(
        self,
        lookup: ProductLookup | None = None,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._lookup = lookup
        self._concurrency = max(1, int(concurrency or DEFAULT_CONCURRENCY))

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def load_with_availability(
        self,
        items: Sequence[Any],
        *,
        concurrency: int | None = None,
        on_missing: MissingCallback | None = None,
    ) -> list[Any]:
        if not items:
            return list(items or [])

        if self._lookup is None:
            return [self._from_own_stock(item) for item in items]

        batch_size = max(1, int(concurrency or self._concurrency))
        results: list[Any] = []
        for start in range(0, len(items), batch_size):
            batch = items[start : start + batch_size]
            settled = await asyncio.gather(
                *(self._enrich(item, on_missing) for item in batch),
                return_exceptions=True,
            )
            for outcome in settled:
                if isinstance(outcome, BaseException):
                    results.append({"available": False, "missing": True, "stock": 0})
                else:
                    results.append(outcome)
        return results

    def _from_own_stock(self, item: Any) -> dict[str, Any]:
        entry = dict(item) if isinstance(item, Mapping) else {"name": item}
        stock = _as_number(entry.get("stock"))
        entry.update(available=stock > 0, missing=not _key_of(item), stock=stock)
        return entry

    async def _enrich(self, item: Any, on_missing: MissingCallback | None) -> dict[str, Any]:
        entry = dict(item) if isinstance(item, Mapping) else {"name": item}
        key = _key_of(item)
        if not key:
            return _mark_missing(entry)

        try:
            product = await self._lookup(key)  # type: ignore[misc]
        except Exception as exc:  # noqa: BLE001 - lookup failures mark the entry missing
            logger.warning(f"Availability lookup failed for id={key!r}: {exc}")
            return _mark_missing(entry)

        if not product:
            logger.warning(f"No product found for favorite id={key!r}")
            if on_missing is not None:
                try:
                    on_missing(key)
                except Exception as exc:  # noqa: BLE001 - callback errors are reported only
                    logger.warning(f"on_missing callback failed for id={key!r}: {exc}")
            return _mark_missing(entry)

        product_stock = _as_number(_first_present(product, _STOCK_FIELDS))
        entry["stock"] = _as_number(entry.get("stock")) or product_stock
        entry["available"] = product_stock > 0
        entry["missing"] = False

        title = _first_present(product, _TITLE_FIELDS)
        if not entry.get("fullname") and title:
            entry["fullname"] = title
        if not entry.get("price") and product.get("price") is not None:
            entry["price"] = _as_number(product["price"])
        return entry


__all__ = ["AvailabilityLoader", "MissingCallback", "ProductLookup"]
