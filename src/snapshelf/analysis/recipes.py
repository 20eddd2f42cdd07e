"""Recipe feasibility against the current inventory."""

from __future__ import annotations

from typing import Iterable

from snapshelf.inventory.canonical import normalize_lookup_name
from snapshelf.models.inventory import InventoryRecord
from snapshelf.models.recipe import (
    MissingIngredient,
    Recipe,
    RecipeMatch,
    RecipeRecommendations,
)

DEFAULT_MAX_MISSING = 2


def build_presence_index(inventory: Iterable[InventoryRecord]) -> set[str]:
    """Lowercase-trimmed names present in inventory, regardless of quantity."""

    return {
        name
        for name in (normalize_lookup_name(record.display_name) for record in inventory)
        if name
    }


def match_recipe(recipe: Recipe, present: set[str]) -> RecipeMatch:
    missing: list[MissingIngredient] = []
    available: list[str] = []
    for ingredient in recipe.ingredients:
        name = normalize_lookup_name(ingredient.name)
        if not name:
            continue
        if name in present:
            available.append(ingredient.name)
        else:
            missing.append(
                MissingIngredient(name=ingredient.name, quantity_needed=ingredient.quantity or 1)
            )
    return RecipeMatch(recipe=recipe, missing_ingredients=missing, available_ingredients=available)


def recommend_recipes(
    inventory: Iterable[InventoryRecord],
    recipes: Iterable[Recipe],
    *,
    max_missing: int = DEFAULT_MAX_MISSING,
) -> RecipeRecommendations:
    """Split recipes into fully makeable and almost makeable.

    A recipe missing nothing is fully makeable; one missing between 1 and
    ``max_missing`` ingredients is almost makeable; anything else is left out.
    """

    present = build_presence_index(inventory)
    result = RecipeRecommendations()
    for recipe in recipes:
        match = match_recipe(recipe, present)
        missing_count = len(match.missing_ingredients)
        if missing_count == 0:
            result.fully_makeable.append(match)
        elif missing_count <= max_missing:
            result.almost_makeable.append(match)
    return result


__all__ = ["build_presence_index", "match_recipe", "recommend_recipes", "DEFAULT_MAX_MISSING"]
