"""Unit tests for the bounded favorites set model."""

from __future__ import annotations

import random

import pytest

from wishlist.schemas.favorites import OutcomeReason, OverflowPolicy, ToggleAction
from wishlist.services.favorites import FavoritesSet


def _assert_lockstep(model: FavoritesSet) -> None:
    exported = model.export_sequence()
    assert model.count() == len(model.to_set()) == len(exported)
    assert len(set(exported)) == len(exported)


def test_add_appends_in_insertion_order() -> None:
    model = FavoritesSet()

    assert model.add("a").ok
    assert model.add(" b ").ok
    assert model.add(3).ok

    assert model.export_sequence() == ["a", "b", "3"]
    _assert_lockstep(model)


def test_add_twice_reports_exists_and_leaves_sequence_untouched() -> None:
    model = FavoritesSet()
    model.add("x")

    outcome = model.add("x")

    assert outcome.ok is False
    assert outcome.reason is OutcomeReason.EXISTS
    assert outcome.id == "x"
    assert model.export_sequence() == ["x"]


@pytest.mark.parametrize("value", [None, "", "   ", {}, {"name": "  "}, True, object()])
def test_add_rejects_values_without_identifier(value: object) -> None:
    model = FavoritesSet()

    outcome = model.add(value)

    assert outcome.ok is False
    assert outcome.reason is OutcomeReason.INVALID_ID
    assert outcome.id is None
    assert model.count() == 0


def test_remove_twice_reports_not_found() -> None:
    model = FavoritesSet()
    for item in ("a", "b", "c"):
        model.add(item)

    first = model.remove("b")
    second = model.remove("b")

    assert first.ok and first.id == "b"
    assert second.ok is False and second.reason is OutcomeReason.NOT_FOUND
    assert model.export_sequence() == ["a", "c"]
    _assert_lockstep(model)


def test_reject_policy_keeps_existing_members_when_full() -> None:
    model = FavoritesSet(max_items=2, overflow=OverflowPolicy.REJECT)

    assert model.add("A").ok
    assert model.add("B").ok
    outcome = model.add("C")

    assert outcome.ok is False
    assert outcome.reason is OutcomeReason.LIMIT_REACHED
    assert outcome.id == "C"
    assert model.export_sequence() == ["A", "B"]


def test_drop_oldest_policy_evicts_single_oldest_member() -> None:
    model = FavoritesSet(max_items=2, overflow="drop_oldest")

    assert model.add("A").ok
    assert model.add("B").ok
    assert model.add("C").ok

    assert model.export_sequence() == ["B", "C"]
    _assert_lockstep(model)


def test_reads_do_not_change_eviction_order() -> None:
    model = FavoritesSet(max_items=2, overflow=OverflowPolicy.DROP_OLDEST)
    model.add("A")
    model.add("B")

    assert model.contains("A")
    list(model)
    model.add("C")

    assert model.export_sequence() == ["B", "C"]


def test_unknown_overflow_policy_falls_back_to_reject() -> None:
    model = FavoritesSet(max_items=1, overflow="evict_everything")

    assert model.overflow is OverflowPolicy.REJECT


def test_toggle_adds_then_removes() -> None:
    model = FavoritesSet()

    first = model.toggle("X")
    second = model.toggle("X")

    assert (first.ok, first.action) == (True, ToggleAction.ADD)
    assert (second.ok, second.action) == (True, ToggleAction.REMOVE)
    assert model.count() == 0


def test_toggle_reports_limit_action_when_full() -> None:
    model = FavoritesSet(max_items=1)
    model.add("A")

    outcome = model.toggle("B")

    assert outcome.ok is False
    assert outcome.action is ToggleAction.LIMIT
    assert outcome.reason is OutcomeReason.LIMIT_REACHED


def test_clear_reports_already_empty_second_time() -> None:
    model = FavoritesSet()
    model.add("A")

    assert model.clear().ok
    outcome = model.clear()

    assert outcome.ok is False
    assert outcome.reason is OutcomeReason.ALREADY_EMPTY
    _assert_lockstep(model)


def test_replace_all_dedupes_and_keeps_most_recent_suffix() -> None:
    model = FavoritesSet(max_items=3)

    result = model.replace_all(["a", "b", "a", " ", "c", "d", "e"])

    assert result.truncated is True
    assert result.list == ["c", "d", "e"]
    assert model.export_sequence() == ["c", "d", "e"]


def test_replace_all_ignores_non_sequence_input() -> None:
    model = FavoritesSet()
    model.add("a")

    result = model.replace_all({"unexpected": "mapping"})

    assert result.truncated is False
    assert result.list == []


def test_import_many_without_replace_skips_rejected_items() -> None:
    model = FavoritesSet(max_items=3)
    model.add("a")

    result = model.import_many(["a", "b", "c", "d", "e"])

    assert result.ok is True
    assert result.changed is True
    assert result.truncated is False
    assert result.list == ["a", "b", "c"]


def test_import_many_without_replace_drops_oldest_per_item() -> None:
    model = FavoritesSet(max_items=2, overflow=OverflowPolicy.DROP_OLDEST)
    model.add("a")

    result = model.import_many(["b", "c"])

    assert result.list == ["b", "c"]


def test_import_many_reports_unchanged_when_nothing_new() -> None:
    model = FavoritesSet()
    model.add("a")

    result = model.import_many(["a", " a "])

    assert result.changed is False
    assert result.list == ["a"]


def test_export_round_trip_through_replace_import_is_identity() -> None:
    model = FavoritesSet(max_items=5)
    for item in ("q", "w", "e", "r"):
        model.add(item)
    before = model.export_sequence()

    result = model.import_many(model.export_sequence(), replace=True)

    assert result.changed is False
    assert model.export_sequence() == before


def test_exported_sequence_is_a_copy() -> None:
    model = FavoritesSet()
    model.add("a")

    exported = model.export_sequence()
    exported.append("b")

    assert model.export_sequence() == ["a"]
    assert not model.contains("b")


@pytest.mark.parametrize("policy", list(OverflowPolicy))
def test_random_operations_preserve_invariants(policy: OverflowPolicy) -> None:
    rng = random.Random(1234)
    model = FavoritesSet(max_items=4, overflow=policy)
    pool = [f"item-{index}" for index in range(8)]

    for _ in range(300):
        operation = rng.choice(["add", "remove", "toggle", "clear", "import", "replace"])
        if operation == "add":
            model.add(rng.choice(pool))
        elif operation == "remove":
            model.remove(rng.choice(pool))
        elif operation == "toggle":
            model.toggle(rng.choice(pool))
        elif operation == "clear":
            model.clear()
        elif operation == "import":
            model.import_many(rng.sample(pool, 3))
        else:
            model.replace_all(rng.sample(pool, 6))

        _assert_lockstep(model)
        assert model.count() <= 4
