"""In-memory bounded ordered set backing the favorites service."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from wishlist.schemas.favorites import (
    ImportResult,
    OperationOutcome,
    OutcomeReason,
    OverflowPolicy,
    ReplaceResult,
    ToggleAction,
)

from .normalization import IdentifierNormalizer, default_normalizer


class FavoritesSet:
    """Pure favorites model: ordered identifiers plus a membership index.

    Insertion order is preserved (oldest first). ``max_items`` of ``0`` means
    unlimited; otherwise the capacity is enforced by every mutation, either by
    rejecting the new member or by evicting the single oldest one depending on
    ``overflow``. Reads never reorder entries, so eviction is by insertion age,
    not by access.

    The model performs no I/O and never raises for expected conditions; each
    mutation returns an :class:`OperationOutcome`.
    """

    def __init__(
        self,
        *,
        max_items: int = 0,
        overflow: OverflowPolicy | str = OverflowPolicy.REJECT,
        normalizer: IdentifierNormalizer | None = None,
    ) -> None:
        try:
            self._max = max(0, int(max_items or 0))
        except (TypeError, ValueError):
            self._max = 0
        self._overflow = OverflowPolicy.coerce(overflow)
        self._normalizer = normalizer or default_normalizer
        self._items: list[str] = []
        self._index: set[str] = set()

    # ------------------------------------------------------------------
    # Single update point for the two views
    # ------------------------------------------------------------------
    def _apply(
        self,
        *,
        append: str | None = None,
        discard: str | None = None,
        replace: list[str] | None = None,
    ) -> None:
        if replace is not None:
            self._items = list(replace)
            self._index = set(replace)
            return
        if discard is not None:
            self._items = [item for item in self._items if item != discard]
            self._index.discard(discard)
        if append is not None:
            self._items.append(append)
            self._index.add(append)

    def _make_room(self) -> bool:
        """Ensure there is space for one more member under the overflow policy."""

        if self._max <= 0 or len(self._items) < self._max:
            return True
        if self._overflow is OverflowPolicy.DROP_OLDEST:
            self._apply(discard=self._items[0])
            return True
        return False

    # ------------------------------------------------------------------
    # Properties and queries
    # ------------------------------------------------------------------
    @property
    def max_items(self) -> int:
        return self._max

    @property
    def overflow(self) -> OverflowPolicy:
        return self._overflow

    @property
    def normalizer(self) -> IdentifierNormalizer:
        return self._normalizer

    def normalize(self, value: Any) -> str | None:
        return self._normalizer.normalize(value)

    def normalize_list(self, values: Iterable[Any] | None) -> list[str]:
        return self._normalizer.normalize_many(values)

    def contains(self, value: Any) -> bool:
        key = self.normalize(value)
        return key is not None and key in self._index

    def count(self) -> int:
        return len(self._items)

    def export_sequence(self) -> list[str]:
        """Return a snapshot copy of the ordered identifiers."""

        return list(self._items)

    def to_set(self) -> set[str]:
        return set(self._index)

    def __contains__(self, value: object) -> bool:
        return self.contains(value)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def replace_all(self, values: Iterable[Any] | None) -> ReplaceResult:
        """Replace the contents, keeping the most recent entries when over capacity."""

        normalized = self.normalize_list(values)
        truncated = False
        if self._max > 0 and len(normalized) > self._max:
            normalized = normalized[-self._max :]
            truncated = True

        self._apply(replace=normalized)
        return ReplaceResult(truncated=truncated, list=self.export_sequence())

    def add(self, value: Any) -> OperationOutcome:
        key = self.normalize(value)
        if key is None:
            return OperationOutcome.failure(OutcomeReason.INVALID_ID)
        if key in self._index:
            return OperationOutcome.failure(OutcomeReason.EXISTS, key)
        if not self._make_room():
            return OperationOutcome.failure(OutcomeReason.LIMIT_REACHED, key)

        self._apply(append=key)
        return OperationOutcome.success(key)

    def remove(self, value: Any) -> OperationOutcome:
        key = self.normalize(value)
        if key is None or key not in self._index:
            return OperationOutcome.failure(OutcomeReason.NOT_FOUND, key)

        self._apply(discard=key)
        return OperationOutcome.success(key)

    def toggle(self, value: Any) -> OperationOutcome:
        if self.contains(value):
            return self.remove(value).with_action(ToggleAction.REMOVE)

        outcome = self.add(value)
        if outcome.reason is OutcomeReason.LIMIT_REACHED:
            return outcome.with_action(ToggleAction.LIMIT)
        return outcome.with_action(ToggleAction.ADD)

    def clear(self) -> OperationOutcome:
        if not self._items:
            return OperationOutcome.failure(OutcomeReason.ALREADY_EMPTY)

        self._apply(replace=[])
        return OperationOutcome.success()

    def import_many(
        self, values: Iterable[Any] | None, *, replace: bool = False
    ) -> ImportResult:
        """Import identifiers in bulk.

        With ``replace`` the call behaves like :meth:`replace_all`. Otherwise new
        identifiers are appended one by one under the overflow policy; under
        ``reject`` the ones that do not fit are skipped rather than failing the
        whole batch.
        """

        before = self.export_sequence()

        if replace:
            result = self.replace_all(values)
            return ImportResult(
                ok=True,
                truncated=result.truncated,
                changed=result.list != before,
                list=result.list,
            )

        for key in self.normalize_list(values):
            if key in self._index:
                continue
            if not self._make_room():
                continue
            self._apply(append=key)

        after = self.export_sequence()
        return ImportResult(ok=True, truncated=False, changed=after != before, list=after)


__all__ = ["FavoritesSet"]
