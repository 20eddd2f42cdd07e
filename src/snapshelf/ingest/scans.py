"""Turn a fridge photo into inventory updates."""

from __future__ import annotations

import base64
import dataclasses
import logging
from typing import List, Optional, Protocol, Sequence
from uuid import uuid4

from snapshelf import metrics
from snapshelf.config import Settings, get_settings
from snapshelf.errors import RecognitionError
from snapshelf.inventory.merge import InventoryReconciler, MergeOutcome
from snapshelf.models.inventory import ItemObservation

logger = logging.getLogger(__name__)


class ItemDetector(Protocol):
    def detect_items(
        self,
        image: bytes,
        mime_type: str,
        *,
        categories: Sequence[str],
        default_category: str,
    ) -> List[ItemObservation]: ...


@dataclasses.dataclass(frozen=True)
class ScanResult:
    """Observations from one photo and what merging them did to inventory."""

    scan_id: str
    items: List[ItemObservation]
    merged: List[MergeOutcome]

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def created_count(self) -> int:
        return sum(1 for outcome in self.merged if outcome.created)


def build_image_ref(image: bytes, mime_type: Optional[str]) -> str:
    """Encode an uploaded photo as a ``data:`` URI."""

    encoded = base64.b64encode(image).decode("ascii")
    return f"data:{mime_type or 'image/jpeg'};base64,{encoded}"


class ScanService:
    """Recognize items in a photo and merge them into inventory.

    Recognition is all-or-nothing: when the service fails nothing is merged and
    the error propagates to the caller.
    """

    def __init__(
        self,
        detector: ItemDetector,
        reconciler: InventoryReconciler,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._detector = detector
        self._reconciler = reconciler
        self._settings = settings or get_settings()

    def process_scan(self, image: bytes, mime_type: Optional[str] = None) -> ScanResult:
        scan_id = uuid4().hex
        log_extra = {"scan_id": scan_id}
        settings = self._settings
        logger.info("Scan started bytes=%s mime_type=%s", len(image), mime_type, extra=log_extra)

        try:
            observations = self._detector.detect_items(
                image,
                mime_type or "image/jpeg",
                categories=settings.categories,
                default_category=settings.default_category,
            )
        except RecognitionError as exc:
            metrics.SCAN_JOBS.labels(status="failed").inc()
            logger.warning(
                "Scan failed (%s): %s", exc.__class__.__name__, exc, extra=log_extra
            )
            raise

        image_ref = build_image_ref(image, mime_type) if settings.store_scan_images else None
        merged = self._reconciler.merge_batch(observations, image_ref=image_ref)
        metrics.SCAN_JOBS.labels(status="succeeded" if observations else "empty").inc()
        logger.info(
            "Scan finished observations=%s merged=%s created=%s",
            len(observations),
            len(merged),
            sum(1 for outcome in merged if outcome.created),
            extra=log_extra,
        )
        return ScanResult(scan_id=scan_id, items=list(observations), merged=merged)


__all__ = ["ItemDetector", "ScanResult", "ScanService", "build_image_ref"]
