"""Grocery list persistence helpers."""
# mypy: ignore-errors

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select

from snapshelf.models.grocery import GroceryEntry

from .models import GroceryItemORM
from .repository import Store


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_model(row: GroceryItemORM) -> GroceryEntry:
    return GroceryEntry.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "quantity_needed": row.quantity_needed,
            "category": row.category,
            "created_at": row.created_at,
        }
    )


class GroceryRepository:
    """User-maintained grocery list stored through a ``Store`` handle."""

    def __init__(self, store: Store, *, default_category: str = "other") -> None:
        self._store = store
        self._default_category = default_category

    def list_items(self) -> List[GroceryEntry]:
        """Return all grocery entries, newest first."""

        with self._store.session_scope() as session:
            rows = (
                session.execute(
                    select(GroceryItemORM).order_by(
                        GroceryItemORM.created_at.desc(), GroceryItemORM.id.desc()
                    )
                )
                .scalars()
                .all()
            )
            return [_to_model(row) for row in rows]

    def add_item(
        self,
        *,
        name: str,
        quantity_needed: float,
        category: Optional[str] = None,
    ) -> GroceryEntry:
        """Append an entry; fractional quantities are rounded half up, to at least 1."""

        trimmed = (name or "").strip()
        if not trimmed:
            raise ValueError("Name is required")
        if (
            quantity_needed is None
            or isinstance(quantity_needed, bool)
            or not math.isfinite(float(quantity_needed))
            or float(quantity_needed) <= 0
        ):
            raise ValueError("qtyNeeded must be a positive number")

        with self._store.session_scope() as session:
            row = GroceryItemORM(
                name=trimmed,
                quantity_needed=max(1, math.floor(float(quantity_needed) + 0.5)),
                category=(category or "").strip() or self._default_category,
                created_at=_utcnow(),
            )
            session.add(row)
            session.flush()
            return _to_model(row)

    def add_missing(self, items: Iterable[tuple[str, int]]) -> List[GroceryEntry]:
        """Add ``(name, quantity)`` pairs, skipping names already on the list.

        Names are compared case-insensitively; duplicates within ``items`` are
        collapsed to the first occurrence.
        """

        created: List[GroceryEntry] = []
        with self._store.session_scope() as session:
            existing = {
                (name or "").strip().lower()
                for name in session.execute(select(GroceryItemORM.name)).scalars().all()
            }
            for raw_name, quantity in items:
                name = (raw_name or "").strip()
                normalized = name.lower()
                if not name or normalized in existing:
                    continue
                row = GroceryItemORM(
                    name=name,
                    quantity_needed=max(1, int(quantity or 1)),
                    category=self._default_category,
                    created_at=_utcnow(),
                )
                session.add(row)
                session.flush()
                existing.add(normalized)
                created.append(_to_model(row))
        return created

    def delete_item(self, item_id: int) -> None:
        with self._store.session_scope() as session:
            row = session.get(GroceryItemORM, item_id)
            if row is None:
                raise ValueError(f"Grocery item {item_id} not found")
            session.delete(row)

    def get_item(self, item_id: int) -> Optional[GroceryEntry]:
        with self._store.session_scope() as session:
            row = session.get(GroceryItemORM, item_id)
            if row is None:
                return None
            return _to_model(row)


__all__ = ["GroceryRepository"]
