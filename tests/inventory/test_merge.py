"""Tests for merging scan observations into inventory."""

from __future__ import annotations

import itertools
import threading

from snapshelf.db.inventory import InventoryRepository
from snapshelf.db.repository import Store
from snapshelf.inventory.merge import InventoryReconciler, _KeyedLocks, merged_values
from snapshelf.models.inventory import BoundingBox, ItemObservation


def _observation(name: str, quantity: int, **extra) -> ItemObservation:
    extra.setdefault("category", "produce")
    return ItemObservation(name=name, quantity=quantity, **extra)


def test_plural_and_singular_names_resolve_to_one_record(store):
    repository = InventoryRepository(store)
    reconciler = InventoryReconciler(repository)

    first = reconciler.merge(_observation("Apple", 3))
    second = reconciler.merge(_observation("apples", 2))

    assert first.created is True
    assert second.created is False
    assert second.record.id == first.record.id
    assert second.record.quantity == 5
    assert second.record.display_name == "Apples"
    assert second.record.canonical_key == "apple"
    assert len(repository.list_inventory()) == 1


def test_metadata_is_overwritten_by_latest_observation(store):
    reconciler = InventoryReconciler(InventoryRepository(store))
    reconciler.merge(
        _observation("milk", 1, expires_in_days=7, bounding_box=BoundingBox(x=0, y=0, width=0.5, height=0.5))
    )

    outcome = reconciler.merge(_observation("Milk", 1, category="dairy", expires_in_days=2))

    assert outcome.record.quantity == 2
    assert outcome.record.category == "dairy"
    assert outcome.record.expires_in_days == 2
    assert outcome.record.bounding_box is None


def test_legacy_record_is_adopted_and_stamped(store):
    repository = InventoryRepository(store)
    legacy = repository.insert(
        None, {"display_name": "Tomatoes ", "quantity": 2, "category": "produce"}
    )

    outcome = InventoryReconciler(repository).merge(_observation("tomato", 1))

    assert outcome.created is False
    assert outcome.record.id == legacy.id
    assert outcome.record.quantity == 3
    assert outcome.record.canonical_key == "tomato"
    assert len(repository.list_inventory()) == 1


def test_exact_key_wins_over_legacy_variant(store):
    repository = InventoryRepository(store)
    repository.insert(None, {"display_name": "berries", "quantity": 4, "category": "produce"})
    keyed = repository.insert("berry", {"display_name": "Berry", "quantity": 1, "category": "produce"})

    outcome = InventoryReconciler(repository).merge(_observation("Berries", 1))

    assert outcome.record.id == keyed.id
    assert outcome.record.quantity == 2


def test_ambiguous_legacy_rows_merge_into_the_first_by_name(store):
    repository = InventoryRepository(store)
    plural = repository.insert(None, {"display_name": "tomatoes", "quantity": 2, "category": "produce"})
    singular = repository.insert(None, {"display_name": "tomato", "quantity": 5, "category": "produce"})

    outcome = InventoryReconciler(repository).merge(_observation("tomatoes", 1))

    assert outcome.created is False
    assert outcome.record.id == singular.id
    assert outcome.record.quantity == 6
    assert outcome.record.canonical_key == "tomato"

    untouched = repository.get_item(plural.id)
    assert untouched.quantity == 2
    assert untouched.canonical_key is None
    assert len(repository.list_inventory()) == 2


def test_total_quantity_is_order_independent(tmp_path):
    observations = [
        _observation("Carrot", 2),
        _observation("carrots", 5),
        _observation("CARROTS", 1),
    ]
    totals = set()
    for index, ordering in enumerate(itertools.permutations(observations)):
        with Store(tmp_path / f"order-{index}.db") as store:
            repository = InventoryRepository(store)
            InventoryReconciler(repository).merge_batch(ordering)
            records = repository.list_inventory()
            assert len(records) == 1
            totals.add(records[0].quantity)

    assert totals == {8}


def test_empty_canonical_key_is_dropped(store):
    repository = InventoryRepository(store)

    assert InventoryReconciler(repository).merge(_observation("???", 3)) is None
    assert repository.list_inventory() == []


def test_merge_batch_skips_dropped_observations(store):
    reconciler = InventoryReconciler(InventoryRepository(store))

    outcomes = reconciler.merge_batch([_observation("Kale", 1), _observation("...", 1)], image_ref="data:x")

    assert [outcome.record.display_name for outcome in outcomes] == ["Kale"]
    assert outcomes[0].record.image_ref == "data:x"


def test_concurrent_merges_do_not_lose_updates(store):
    repository = InventoryRepository(store)
    reconciler = InventoryReconciler(repository)
    names = ["Egg", "eggs", "EGGS", "egg"]

    def worker(name: str) -> None:
        for _ in range(5):
            reconciler.merge(_observation(name, 1, category="dairy"))

    threads = [threading.Thread(target=worker, args=(name,)) for name in names]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    records = repository.list_inventory()
    assert len(records) == 1
    assert records[0].quantity == 20


def test_stale_write_is_retried_with_fresh_state(store):
    repository = InventoryRepository(store)
    existing = repository.insert("pear", {"display_name": "Pear", "quantity": 3, "category": "produce"})
    seen = []

    def merge(current):
        seen.append(current.quantity)
        if len(seen) == 1:
            # Another writer commits between our read and our write.
            repository.set_quantity(existing.id, 10)
        return merged_values(current, _observation("pear", 1))

    record, created = repository.merge_by_key_or_variants("pear", {"pear", "pears"}, merge)

    assert created is False
    assert seen == [3, 10]
    assert record.quantity == 11


def test_merged_values_never_goes_negative():
    values = merged_values(None, _observation("Lime", 0))

    assert values["quantity"] == 0
    assert values["display_name"] == "Lime"


def test_key_locks_are_shared_while_held_and_released_afterwards(store):
    locks = _KeyedLocks()
    held = locks.get("milk")

    assert locks.get("milk") is held
    assert locks.get("eggs") is not held

    del held
    assert len(locks) == 0

    reconciler = InventoryReconciler(InventoryRepository(store))
    reconciler.merge_batch(_observation(f"item {index}", 1) for index in range(20))
    assert len(reconciler._locks) == 0
