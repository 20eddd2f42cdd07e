"""Pydantic models defining shared data contracts."""

from snapshelf.models.grocery import ComparisonEntry, GroceryComparison, GroceryEntry
from snapshelf.models.inventory import BoundingBox, InventoryRecord, ItemObservation
from snapshelf.models.recipe import (
    MissingIngredient,
    Recipe,
    RecipeIngredient,
    RecipeMatch,
    RecipeRecommendations,
)

__all__ = [
    "BoundingBox",
    "InventoryRecord",
    "ItemObservation",
    "ComparisonEntry",
    "GroceryComparison",
    "GroceryEntry",
    "MissingIngredient",
    "Recipe",
    "RecipeIngredient",
    "RecipeMatch",
    "RecipeRecommendations",
]
