"""Recipe catalog and recommendation models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RecipeIngredient(BaseModel):
    """Ingredient line within a recipe."""

    name: str
    quantity: Optional[int] = Field(default=None, ge=0, alias="qty")
    unit: Optional[str] = Field(default=None, alias="qtyUnit")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Recipe(BaseModel):
    """Recipe stored in the catalog, unique by title."""

    id: Optional[int] = None
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    instructions: str = ""
    category: str = "other"
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    ingredients: list[RecipeIngredient] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class MissingIngredient(BaseModel):
    """Ingredient absent from the fridge."""

    name: str
    quantity_needed: int = Field(alias="qtyNeeded")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class RecipeMatch(BaseModel):
    """A recipe paired with its available and missing ingredients."""

    recipe: Recipe
    missing_ingredients: list[MissingIngredient] = Field(
        default_factory=list, alias="missingIngredients"
    )
    available_ingredients: list[str] = Field(default_factory=list, alias="availableIngredients")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class RecipeRecommendations(BaseModel):
    """Recipes bucketed by how many ingredients are missing."""

    fully_makeable: list[RecipeMatch] = Field(default_factory=list, alias="fullyMakeable")
    almost_makeable: list[RecipeMatch] = Field(default_factory=list, alias="almostMakeable")

    model_config = ConfigDict(populate_by_name=True)


__all__ = [
    "RecipeIngredient",
    "Recipe",
    "MissingIngredient",
    "RecipeMatch",
    "RecipeRecommendations",
]
