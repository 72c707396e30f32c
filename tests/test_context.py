import copy
import pickle
import uuid
from datetime import date
from decimal import Decimal

import pytest

from orderflow.engine.context import ContextSnapshot, build_context
from orderflow.engine.frozen import FrozenDict, freeze, thaw
from orderflow.errors import ReadOnlyContextError


def _accumulated():
    return {
        "full_name": "Jane Doe",
        "address": {"city": "Bristol", "lines": ["1 High Street"]},
        "line_items": [{"sku": "MUG-001", "quantity": 2}],
        "tags": {"gift"},
    }


def test_snapshot_does_not_see_later_changes_to_the_order_data():
    accumulated = _accumulated()
    current = {"delivery_method": "express", "notes": ["leave at door"]}
    snapshot = build_context("o-1", "checkout", "delivery", current, accumulated)

    accumulated["full_name"] = "Someone Else"
    accumulated["address"]["city"] = "Leeds"
    accumulated["address"]["lines"].append("Flat 2")
    accumulated["line_items"][0]["quantity"] = 99
    accumulated["tags"].add("vip")
    current["delivery_method"] = "pickup"
    current["notes"].clear()

    assert snapshot.accumulated["full_name"] == "Jane Doe"
    assert snapshot.accumulated["address"]["city"] == "Bristol"
    assert snapshot.accumulated["address"]["lines"] == ("1 High Street",)
    assert snapshot.accumulated["line_items"][0]["quantity"] == 2
    assert snapshot.accumulated["tags"] == frozenset({"gift"})
    assert snapshot.current["delivery_method"] == "express"
    assert snapshot.current["notes"] == ("leave at door",)


def test_nested_containers_are_frozen_copies():
    accumulated = _accumulated()
    snapshot = build_context("o-1", "checkout", "delivery", {}, accumulated)

    assert isinstance(snapshot.accumulated, FrozenDict)
    assert isinstance(snapshot.accumulated["address"], FrozenDict)
    assert isinstance(snapshot.accumulated["address"]["lines"], tuple)
    assert isinstance(snapshot.accumulated["line_items"][0], FrozenDict)
    assert snapshot.accumulated["address"] is not accumulated["address"]


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s: s.current.__setitem__("x", 1),
        lambda s: s.accumulated.__setitem__("full_name", "Mallory"),
        lambda s: s.accumulated["address"].__setitem__("city", "Leeds"),
        lambda s: s.accumulated.__delitem__("full_name"),
        lambda s: s.accumulated.update({"full_name": "Mallory"}),
        lambda s: s.accumulated.pop("full_name"),
        lambda s: s.accumulated.popitem(),
        lambda s: s.accumulated.clear(),
        lambda s: s.accumulated.setdefault("total", 0),
        lambda s: s.accumulated["line_items"][0].update(quantity=5),
    ],
)
def test_every_mutation_attempt_fails_immediately(mutate):
    accumulated = _accumulated()
    snapshot = build_context("o-1", "checkout", "delivery", {"delivery_method": "express"}, accumulated)

    with pytest.raises(ReadOnlyContextError):
        mutate(snapshot)

    assert accumulated == _accumulated()
    assert snapshot.accumulated == freeze(_accumulated())


def test_in_place_or_on_frozen_mapping_fails():
    snapshot = build_context("o-1", "checkout", "delivery", {}, _accumulated())
    frozen = snapshot.accumulated
    with pytest.raises(ReadOnlyContextError):
        frozen |= {"total": 0}


def test_snapshot_attributes_cannot_be_reassigned():
    snapshot = build_context("o-1", "checkout", "delivery", {}, _accumulated())

    with pytest.raises(ReadOnlyContextError):
        snapshot.accumulated = {"full_name": "Mallory"}
    with pytest.raises(ReadOnlyContextError):
        snapshot.step_id = "review"
    with pytest.raises(ReadOnlyContextError):
        del snapshot.current


def test_read_only_error_is_a_type_error():
    snapshot = build_context("o-1", "checkout", "delivery", {}, {"a": 1})
    with pytest.raises(TypeError):
        snapshot.accumulated["a"] = 2


def test_sequences_have_no_mutating_methods():
    snapshot = build_context("o-1", "checkout", "delivery", {}, _accumulated())
    with pytest.raises(AttributeError):
        snapshot.accumulated["address"]["lines"].append("Flat 2")


def test_get_prefers_current_step_values():
    snapshot = build_context("o-1", "checkout", "delivery", {"city": "Leeds", "empty": None}, {"city": "Bristol", "zip": "BS1"})

    assert snapshot.get("city") == "Leeds"
    assert snapshot.get("zip") == "BS1"
    assert snapshot.get("empty") is None
    assert snapshot.get("missing", "fallback") == "fallback"


def test_merged_returns_a_caller_owned_dict():
    snapshot = build_context("o-1", "checkout", "delivery", {"city": "Leeds"}, _accumulated())

    merged = snapshot.merged()
    merged["address"]["city"] = "York"
    merged["line_items"].append({"sku": "TEE-BLK-M", "quantity": 1})

    assert merged["city"] == "Leeds"
    assert isinstance(merged["address"], dict)
    assert snapshot.accumulated["address"]["city"] == "Bristol"
    assert len(snapshot.accumulated["line_items"]) == 1


def test_build_context_rejects_non_mapping_input():
    with pytest.raises(TypeError):
        build_context("o-1", "checkout", "delivery", ["not", "a", "mapping"], {})


def test_constructing_a_snapshot_directly_also_copies():
    accumulated = {"address": {"city": "Bristol"}}
    snapshot = ContextSnapshot(order_id="o-1", flow="checkout", step_id="delivery", accumulated=accumulated)
    accumulated["address"]["city"] = "Leeds"
    assert snapshot.accumulated["address"]["city"] == "Bristol"


def test_snapshots_compare_by_content():
    a = build_context("o-1", "checkout", "delivery", {"x": [1]}, {"y": {"z": 1}})
    b = build_context("o-1", "checkout", "delivery", {"x": [1]}, {"y": {"z": 1}})
    assert a == b
    assert a != build_context("o-1", "checkout", "review", {"x": [1]}, {"y": {"z": 1}})


def test_frozen_dict_compares_equal_to_plain_dict_and_thaws():
    frozen = freeze({"a": {"b": 1}, "c": "d"})
    assert frozen == {"a": {"b": 1}, "c": "d"}

    thawed = thaw(frozen)
    thawed["a"]["b"] = 2
    assert frozen["a"]["b"] == 1


def test_frozen_dict_copies_and_pickles():
    frozen = freeze({"a": {"b": [1, 2]}})
    assert copy.deepcopy(frozen) is frozen
    assert copy.copy(frozen) is frozen

    restored = pickle.loads(pickle.dumps(frozen))
    assert restored == frozen
    assert isinstance(restored, FrozenDict)


def test_frozen_dict_union_returns_new_mapping():
    frozen = freeze({"a": 1})
    combined = frozen | {"b": 2}
    assert combined == {"a": 1, "b": 2}
    assert frozen == {"a": 1}


class Basket:
    def __init__(self):
        self.items = []


@pytest.mark.parametrize("value", [bytearray(b"note"), Basket(), object()])
def test_values_that_cannot_be_frozen_are_rejected(value):
    with pytest.raises(TypeError):
        freeze(value)
    with pytest.raises(TypeError):
        build_context("o-1", "checkout", "review", {"note": value}, {})
    with pytest.raises(TypeError):
        build_context("o-1", "checkout", "review", {}, {"extras": [value]})


def test_immutable_scalars_are_kept_as_they_are():
    price = Decimal("12.00")
    day = date(2026, 1, 5)
    ref = uuid.uuid4()

    snapshot = build_context("o-1", "checkout", "review", {}, {"price": price, "day": day, "ref": ref, "tags": {"gift"}})

    assert snapshot.accumulated["price"] is price
    assert snapshot.accumulated["day"] is day
    assert snapshot.accumulated["ref"] is ref
    assert snapshot.accumulated["tags"] == frozenset({"gift"})
