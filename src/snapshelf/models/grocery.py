"""Grocery list and comparison models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GroceryEntry(BaseModel):
    """Single entry on the household grocery list."""

    id: int
    name: str
    quantity_needed: int = Field(gt=0, alias="qtyNeeded")
    category: str = Field(default="other")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ComparisonEntry(BaseModel):
    """Needed versus available quantity for one grocery entry."""

    name: str
    quantity_needed: int = Field(alias="qtyNeeded")
    quantity_available: int = Field(alias="qtyInFridge")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class GroceryComparison(BaseModel):
    """Grocery entries bucketed by how well the fridge covers them."""

    fully_satisfied: list[ComparisonEntry] = Field(default_factory=list, alias="fullySatisfied")
    partially_satisfied: list[ComparisonEntry] = Field(
        default_factory=list, alias="partiallySatisfied"
    )
    missing: list[ComparisonEntry] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["GroceryEntry", "ComparisonEntry", "GroceryComparison"]
