"""Grocery list versus inventory comparison."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from snapshelf.inventory.canonical import normalize_lookup_name
from snapshelf.models.grocery import ComparisonEntry, GroceryComparison, GroceryEntry
from snapshelf.models.inventory import InventoryRecord


def _quantity(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def build_quantity_index(inventory: Iterable[InventoryRecord]) -> dict[str, int]:
    """Sum quantities per lowercase-trimmed display name."""

    index: dict[str, int] = defaultdict(int)
    for record in inventory:
        name = normalize_lookup_name(record.display_name)
        if not name:
            continue
        index[name] += _quantity(record.quantity)
    return dict(index)


def compare_grocery_list(
    inventory: Iterable[InventoryRecord],
    grocery_list: Iterable[GroceryEntry],
) -> GroceryComparison:
    """Bucket each grocery entry by how much of it is already in the fridge.

    Matching uses the display name only (lowercased and trimmed); it does not
    apply the canonical singular key, so "Egg" in the fridge does not cover
    "Eggs" on the list.
    """

    available_by_name = build_quantity_index(inventory)
    result = GroceryComparison()
    for entry in grocery_list:
        name = normalize_lookup_name(entry.name)
        if not name:
            continue
        needed = _quantity(entry.quantity_needed)
        available = available_by_name.get(name, 0)
        row = ComparisonEntry(name=entry.name, quantity_needed=needed, quantity_available=available)

        if available >= needed and needed > 0:
            result.fully_satisfied.append(row)
        elif 0 < available < needed:
            result.partially_satisfied.append(row)
        else:
            result.missing.append(row)
    return result


__all__ = ["build_quantity_index", "compare_grocery_list"]
