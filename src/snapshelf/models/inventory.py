"""Inventory and scan observation models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator


class BoundingBox(BaseModel):
    """Normalized ``[x, y, width, height]`` rectangle; serialized as a four-element list."""

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    width: float = Field(gt=0.0, le=1.0)
    height: float = Field(gt=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _from_sequence(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            if len(value) != 4:
                raise ValueError("bounding box requires exactly four values")
            x, y, width, height = value
            return {"x": x, "y": y, "width": width, "height": height}
        return value

    @model_serializer
    def _to_list(self) -> list[float]:
        return [self.x, self.y, self.width, self.height]


class ItemObservation(BaseModel):
    """One vetted item extracted from a single recognition response."""

    name: str = Field(min_length=1)
    quantity: int = Field(default=0, ge=0, alias="qty")
    expires_in_days: int = Field(default=0, ge=0, alias="expiresInDays")
    category: str
    bounding_box: Optional[BoundingBox] = Field(default=None, alias="bbox")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class InventoryRecord(BaseModel):
    """Item currently tracked in the fridge inventory."""

    id: int
    display_name: str = Field(alias="name")
    canonical_key: Optional[str] = Field(default=None, alias="canonicalName")
    quantity: int = Field(default=0, ge=0, alias="qty")
    expires_in_days: int = Field(default=0, ge=0, alias="expiresInDays")
    category: str
    image_ref: Optional[str] = Field(default=None, alias="imageData")
    bounding_box: Optional[BoundingBox] = Field(default=None, alias="bbox")
    detected_at: datetime = Field(alias="detectedAt")

    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True)


__all__ = ["BoundingBox", "ItemObservation", "InventoryRecord"]
