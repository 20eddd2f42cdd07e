"""Identity resolution and the quantity merge policy for scanned items."""

from __future__ import annotations

import dataclasses
import logging
import threading
import weakref
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from snapshelf import metrics
from snapshelf.db.inventory import InventoryRepository
from snapshelf.inventory.canonical import canonicalize, display_name, generate_variants
from snapshelf.models.inventory import InventoryRecord, ItemObservation

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclasses.dataclass(frozen=True)
class MergeOutcome:
    """Result of reconciling one observation."""

    record: InventoryRecord
    created: bool
    observed_quantity: int


def merged_values(
    existing: Optional[InventoryRecord],
    observation: ItemObservation,
    *,
    image_ref: Optional[str] = None,
    detected_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """Column values for a merge: quantity accumulates, everything else is replaced."""

    existing_quantity = existing.quantity if existing is not None else 0
    return {
        "display_name": display_name(observation.name),
        "quantity": max(0, existing_quantity + observation.quantity),
        "expires_in_days": observation.expires_in_days,
        "category": observation.category,
        "image_ref": image_ref,
        "bounding_box": observation.bounding_box,
        "detected_at": detected_at or _utcnow(),
    }


class _KeyedLocks:
    """One re-entrant lock per canonical key, alive only while someone holds it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, Any] = weakref.WeakValueDictionary()

    def get(self, key: str) -> Any:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class InventoryReconciler:
    """Merge scan observations into inventory so repeated scans accumulate.

    Each observation is a single read-modify-write guarded by a per-key lock in
    this process and by row versioning in the store across processes.
    """

    def __init__(self, repository: InventoryRepository) -> None:
        self._repository = repository
        self._locks = _KeyedLocks()

    def merge(
        self,
        observation: ItemObservation,
        *,
        image_ref: Optional[str] = None,
        detected_at: Optional[datetime] = None,
    ) -> Optional[MergeOutcome]:
        """Merge one observation; returns ``None`` when its name has no canonical key."""

        key = canonicalize(observation.name)
        if not key:
            logger.debug("Skipping observation with empty canonical key: %r", observation.name)
            metrics.MERGED_ITEMS.labels(result="dropped").inc()
            return None

        variants = generate_variants(key)
        with self._locks.get(key):
            record, created = self._repository.merge_by_key_or_variants(
                key,
                variants,
                lambda existing: merged_values(
                    existing,
                    observation,
                    image_ref=image_ref,
                    detected_at=detected_at,
                ),
            )

        metrics.MERGED_ITEMS.labels(result="created" if created else "updated").inc()
        logger.debug(
            "%s inventory key=%r quantity=%s (+%s)",
            "Created" if created else "Updated",
            key,
            record.quantity,
            observation.quantity,
        )
        return MergeOutcome(record=record, created=created, observed_quantity=observation.quantity)

    def merge_batch(
        self,
        observations: Iterable[ItemObservation],
        *,
        image_ref: Optional[str] = None,
    ) -> List[MergeOutcome]:
        """Merge a scan's observations one after another, in arrival order."""

        detected_at = _utcnow()
        outcomes: List[MergeOutcome] = []
        for observation in observations:
            outcome = self.merge(observation, image_ref=image_ref, detected_at=detected_at)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes


__all__ = ["InventoryReconciler", "MergeOutcome", "merged_values"]
