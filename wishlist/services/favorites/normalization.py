"""Identifier extraction for heterogeneous favorite inputs.

Callers hand the favorites set raw strings, numbers, mappings decoded from
storage, or richer objects (pydantic models, dataclasses). Each rule below
tries to pull a key out of one such shape; :class:`IdentifierNormalizer`
applies them in order and keeps the first non-empty trimmed result.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

ExtractionRule = Callable[[Any], Any]

DEFAULT_ID_FIELDS: tuple[str, ...] = ("name", "id", "productId", "product_id", "_missingId")


def field_rule(field: str) -> ExtractionRule:
    """Build a rule reading ``field`` from a mapping key or an attribute."""

    def _extract(value: Any) -> Any:
        if isinstance(value, Mapping):
            return value.get(field)
        if isinstance(value, (str, bytes, int, float)):
            return None
        return getattr(value, field, None)

    _extract.__name__ = f"field_rule[{field}]"
    return _extract


def scalar_rule(value: Any) -> Any:
    """Accept strings and numbers as identifiers in their own right."""

    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, (str, int)):
        return value
    return None


DEFAULT_RULES: tuple[ExtractionRule, ...] = (
    *(field_rule(field) for field in DEFAULT_ID_FIELDS),
    scalar_rule,
)


def _as_key(candidate: Any) -> str | None:
    if candidate is None or isinstance(candidate, bool):
        return None
    if isinstance(candidate, float):
        candidate = scalar_rule(candidate)
    if not isinstance(candidate, (str, int)):
        return None
    text = str(candidate).strip()
    return text or None


class IdentifierNormalizer:
    """Apply an ordered list of extraction rules until one yields a key."""

    def __init__(self, rules: Sequence[ExtractionRule] | None = None) -> None:
        self._rules: tuple[ExtractionRule, ...] = tuple(rules or DEFAULT_RULES)

    @property
    def rules(self) -> tuple[ExtractionRule, ...]:
        return self._rules

    def __call__(self, value: Any) -> str | None:
        return self.normalize(value)

    def normalize(self, value: Any) -> str | None:
        """Return the trimmed identifier for ``value`` or ``None`` when absent."""

        if value is None:
            return None
        for rule in self._rules:
            try:
                candidate = rule(value)
            except Exception:  # noqa: BLE001 - unresolvable input means "absent"
                continue
            key = _as_key(candidate)
            if key is not None:
                return key
        return None

    def normalize_many(self, values: Iterable[Any] | None) -> list[str]:
        """Normalize and de-duplicate ``values``, first occurrence wins."""

        if values is None or isinstance(values, (str, bytes, Mapping)):
            return []
        try:
            iterator = iter(values)
        except TypeError:
            return []

        seen: set[str] = set()
        normalized: list[str] = []
        for value in iterator:
            key = self.normalize(value)
            if key is not None and key not in seen:
                seen.add(key)
                normalized.append(key)
        return normalized


default_normalizer = IdentifierNormalizer()


def normalize_id(value: Any) -> str | None:
    """Module-level shortcut using the default rule set."""

    return default_normalizer.normalize(value)


__all__ = [
    "DEFAULT_ID_FIELDS",
    "DEFAULT_RULES",
    "ExtractionRule",
    "IdentifierNormalizer",
    "default_normalizer",
    "field_rule",
    "normalize_id",
    "scalar_rule",
]
