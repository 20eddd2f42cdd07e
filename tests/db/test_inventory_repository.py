"""Tests for inventory persistence."""

from __future__ import annotations

from datetime import datetime

import pytest

from snapshelf.db.inventory import InventoryRepository
from snapshelf.db.repository import Store


def _seed(repository: InventoryRepository, name: str, key, quantity: int, detected_at: datetime):
    return repository.insert(
        key,
        {
            "display_name": name,
            "quantity": quantity,
            "category": "produce",
            "detected_at": detected_at,
            "bounding_box": [0.1, 0.1, 0.2, 0.2],
        },
    )


def test_list_inventory_newest_first(store):
    repository = InventoryRepository(store)
    _seed(repository, "Old", "old", 1, datetime(2024, 1, 1))
    _seed(repository, "New", "new", 1, datetime(2024, 6, 1))

    records = repository.list_inventory()

    assert [record.display_name for record in records] == ["New", "Old"]
    assert records[0].bounding_box is not None
    assert records[0].model_dump(by_alias=True)["bbox"] == [0.1, 0.1, 0.2, 0.2]


def test_set_quantity_and_delete(store):
    repository = InventoryRepository(store)
    record = _seed(repository, "Kiwi", "kiwi", 4, datetime(2024, 1, 1))

    assert repository.set_quantity(record.id, 0).quantity == 0
    assert repository.set_quantity(record.id, -5).quantity == 0

    repository.delete_item(record.id)
    assert repository.get_item(record.id) is None

    with pytest.raises(ValueError):
        repository.delete_item(record.id)
    with pytest.raises(ValueError):
        repository.set_quantity(record.id, 1)


def test_reset_inventory_returns_count(store):
    repository = InventoryRepository(store)
    _seed(repository, "A", "a", 1, datetime(2024, 1, 1))
    _seed(repository, "B", "b", 1, datetime(2024, 1, 1))

    assert repository.reset_inventory() == 2
    assert repository.list_inventory() == []


def test_find_by_key_or_variants_orders_exact_key_first(store):
    repository = InventoryRepository(store)
    legacy = _seed(repository, "Apples", None, 1, datetime(2024, 1, 1))
    keyed = _seed(repository, "Apple", "apple", 1, datetime(2024, 1, 1))

    matches = repository.find_by_key_or_variants("apple", {"apple", "apples", "applees"})

    assert [record.id for record in matches] == [keyed.id, legacy.id]


def test_store_requires_open(tmp_path):
    store = Store(tmp_path / "closed.db")

    with pytest.raises(RuntimeError):
        InventoryRepository(store).list_inventory()

    store.open()
    assert store.is_open
    assert InventoryRepository(store).list_inventory() == []
    store.close()
    assert not store.is_open


def test_data_survives_reopen(tmp_path):
    path = tmp_path / "persist.db"
    with Store(path) as store:
        _seed(InventoryRepository(store), "Lemon", "lemon", 2, datetime(2024, 1, 1))

    with Store(path) as store:
        records = InventoryRepository(store).list_inventory()

    assert [(record.display_name, record.quantity) for record in records] == [("Lemon", 2)]
