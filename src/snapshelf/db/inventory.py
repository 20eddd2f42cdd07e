"""Inventory data access helpers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Collection, List, Optional, Tuple

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from snapshelf.models.inventory import InventoryRecord

from .models import InventoryItemORM
from .repository import Store

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5

# Receives the current record (or None) and returns the column values to write.
MergeFunction = Callable[[Optional[InventoryRecord]], dict[str, Any]]

_WRITABLE_COLUMNS = (
    "display_name",
    "quantity",
    "expires_in_days",
    "category",
    "image_ref",
    "bounding_box",
    "detected_at",
)


def _to_model(row: InventoryItemORM) -> InventoryRecord:
    return InventoryRecord.model_validate(
        {
            "id": row.id,
            "display_name": row.display_name,
            "canonical_key": row.canonical_key,
            "quantity": row.quantity,
            "expires_in_days": row.expires_in_days,
            "category": row.category,
            "image_ref": row.image_ref,
            "bounding_box": row.bounding_box,
            "detected_at": row.detected_at,
        }
    )


class InventoryRepository:
    """Read and write inventory records through a ``Store`` handle."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def list_inventory(self) -> List[InventoryRecord]:
        """Return every record, most recently detected first."""

        with self._store.session_scope() as session:
            rows = (
                session.execute(
                    select(InventoryItemORM).order_by(
                        InventoryItemORM.detected_at.desc(), InventoryItemORM.id.desc()
                    )
                )
                .scalars()
                .all()
            )
            return [_to_model(row) for row in rows]

    def get_item(self, item_id: int) -> Optional[InventoryRecord]:
        with self._store.session_scope() as session:
            row = session.get(InventoryItemORM, item_id)
            if row is None:
                return None
            return _to_model(row)

    def insert(self, canonical_key: Optional[str], values: dict[str, Any]) -> InventoryRecord:
        """Insert a record verbatim (used for seeding and legacy imports)."""

        with self._store.session_scope() as session:
            row = InventoryItemORM(canonical_key=canonical_key, **_writable(values))
            session.add(row)
            session.flush()
            return _to_model(row)

    def set_quantity(self, item_id: int, quantity: int) -> InventoryRecord:
        """Explicitly overwrite a record's quantity (the only non-additive write)."""

        with self._store.session_scope() as session:
            row = session.get(InventoryItemORM, item_id)
            if row is None:
                raise ValueError(f"Inventory item {item_id} not found")
            row.quantity = max(0, int(quantity))
            session.flush()
            return _to_model(row)

    def delete_item(self, item_id: int) -> None:
        with self._store.session_scope() as session:
            row = session.get(InventoryItemORM, item_id)
            if row is None:
                raise ValueError(f"Inventory item {item_id} not found")
            session.delete(row)

    def reset_inventory(self) -> int:
        """Remove every inventory record and return how many were deleted."""

        with self._store.session_scope() as session:
            result = session.execute(delete(InventoryItemORM))
            return int(result.rowcount or 0)

    def find_by_key_or_variants(
        self, canonical_key: str, variants: Collection[str]
    ) -> List[InventoryRecord]:
        """Return every record matching the key or a legacy variant, best match first."""

        with self._store.session_scope() as session:
            rows = self._matching_rows(session, canonical_key, variants)
            return [_to_model(row) for row in rows]

    def merge_by_key_or_variants(
        self,
        canonical_key: str,
        variants: Collection[str],
        merge: MergeFunction,
    ) -> Tuple[InventoryRecord, bool]:
        """Read the matching record and write ``merge(existing)`` in one transaction.

        Returns the written record and whether it was newly created. Concurrent
        writers are detected through the row version (updates) or the unique
        canonical key (inserts) and the whole read-modify-write is retried.
        """

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            try:
                with self._store.session_scope() as session:
                    rows = self._matching_rows(session, canonical_key, variants)
                    row = rows[0] if rows else None
                    if len(rows) > 1:
                        logger.info(
                            "Key %r matched %s records; merging into id=%s",
                            canonical_key,
                            len(rows),
                            row.id,
                        )
                    values = _writable(merge(_to_model(row) if row is not None else None))
                    created = row is None
                    if row is None:
                        row = InventoryItemORM(canonical_key=canonical_key, **values)
                        session.add(row)
                    else:
                        row.canonical_key = canonical_key
                        for column, value in values.items():
                            setattr(row, column, value)
                    session.flush()
                    return _to_model(row), created
            except (StaleDataError, IntegrityError) as exc:
                if attempt == MAX_WRITE_ATTEMPTS:
                    raise
                logger.warning(
                    "Concurrent write on key %r (attempt %s/%s): %s",
                    canonical_key,
                    attempt,
                    MAX_WRITE_ATTEMPTS,
                    exc.__class__.__name__,
                )
        raise RuntimeError("unreachable")  # pragma: no cover

    @staticmethod
    def _matching_rows(
        session: Session, canonical_key: str, variants: Collection[str]
    ) -> List[InventoryItemORM]:
        lowered_name = func.lower(func.trim(InventoryItemORM.display_name))
        conditions = [InventoryItemORM.canonical_key == canonical_key]
        if variants:
            conditions.append(lowered_name.in_(sorted(variants)))
        # Exact key first, then other keyed rows by key, then legacy rows.
        rank = case(
            (InventoryItemORM.canonical_key == canonical_key, 0),
            (InventoryItemORM.canonical_key.is_(None), 2),
            else_=1,
        )
        statement = (
            select(InventoryItemORM)
            .where(or_(*conditions))
            .order_by(
                rank,
                InventoryItemORM.canonical_key.asc(),
                lowered_name.asc(),
                InventoryItemORM.id.asc(),
            )
        )
        return list(session.execute(statement).scalars().all())


def _writable(values: dict[str, Any]) -> dict[str, Any]:
    payload = {key: values[key] for key in _WRITABLE_COLUMNS if key in values}
    box = payload.get("bounding_box")
    if box is not None and not isinstance(box, list):
        payload["bounding_box"] = list(box.model_dump()) if hasattr(box, "model_dump") else list(box)
    return payload


__all__ = ["InventoryRepository", "MergeFunction", "MAX_WRITE_ATTEMPTS"]
