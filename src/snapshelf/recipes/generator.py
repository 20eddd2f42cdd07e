"""Generate recipes from the current inventory with a text model."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Protocol

from pydantic import ValidationError

from snapshelf.db.recipes import RecipeRepository
from snapshelf.errors import MalformedResponseError
from snapshelf.models.inventory import InventoryRecord
from snapshelf.models.recipe import Recipe
from snapshelf.recognition.parser import extract_json_value

logger = logging.getLogger(__name__)

RECIPE_PROMPT = """You are a home cook planning meals from what is already in the fridge.

Fridge contents: {ingredients}

Suggest {count} recipes that mostly use these ingredients. A recipe may need a
few extra ingredients that are not listed.

Return ONLY valid JSON and NOTHING else, using this EXACT format:
{{
  "recipes": [
    {{
      "title": "string",
      "description": "string",
      "instructions": "string",
      "category": "string",
      "ingredients": [{{"name": "string", "qty": number, "qtyUnit": "string"}}]
    }}
  ]
}}
Use lowercase ingredient names that match the fridge contents where possible."""


class TextGenerator(Protocol):
    def generate_text(self, prompt: str) -> str: ...


def build_recipe_prompt(inventory: Iterable[InventoryRecord], *, count: int) -> str:
    names: list[str] = []
    for record in inventory:
        name = record.display_name.strip().lower()
        if name and name not in names:
            names.append(name)
    listing = ", ".join(names) if names else "(empty)"
    return RECIPE_PROMPT.format(ingredients=listing, count=max(1, count))


def _recipe_entries(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        payload = payload.get("recipes")
    if not isinstance(payload, list):
        raise MalformedResponseError("Generated recipes payload has no recipes array")
    return payload


def _normalize_ingredients(raw: Any) -> list[dict[str, Any]]:
    ingredients: list[dict[str, Any]] = []
    for entry in raw if isinstance(raw, list) else []:
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        quantity = entry.get("qty", entry.get("quantity"))
        if (
            isinstance(quantity, bool)
            or not isinstance(quantity, (int, float))
            or (isinstance(quantity, float) and not math.isfinite(quantity))
            or quantity < 0
        ):
            quantity = None
        unit = entry.get("qtyUnit", entry.get("unit"))
        ingredients.append(
            {
                "name": name.strip(),
                "quantity": int(quantity) if quantity is not None else None,
                "unit": unit if isinstance(unit, str) and unit.strip() else None,
            }
        )
    return ingredients


def parse_generated_recipes(text: str) -> List[Recipe]:
    """Parse model output into recipes, skipping entries that fail validation."""

    recipes: List[Recipe] = []
    for entry in _recipe_entries(extract_json_value(text)):
        if not isinstance(entry, dict):
            continue
        title = entry.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        try:
            recipe = Recipe.model_validate(
                {
                    "title": title.strip(),
                    "description": str(entry.get("description") or ""),
                    "instructions": str(entry.get("instructions") or ""),
                    "category": str(entry.get("category") or "other").strip().lower() or "other",
                    "image_url": entry.get("imageUrl") if isinstance(entry.get("imageUrl"), str) else None,
                    "ingredients": _normalize_ingredients(entry.get("ingredients")),
                }
            )
        except ValidationError as exc:
            logger.info("Skipping generated recipe %r: %s", title, exc.errors())
            continue
        recipes.append(recipe)
    return recipes


class RecipeGenerator:
    """Ask a text model for recipes and upsert them into the catalog by title."""

    def __init__(self, client: TextGenerator, repository: RecipeRepository, *, count: int = 5) -> None:
        self._client = client
        self._repository = repository
        self._count = count

    def generate(self, inventory: Iterable[InventoryRecord]) -> List[Recipe]:
        prompt = build_recipe_prompt(inventory, count=self._count)
        text = self._client.generate_text(prompt)
        recipes = parse_generated_recipes(text)
        stored = self._repository.upsert_many(recipes)
        logger.info("Generated %s recipe(s); stored %s", len(recipes), len(stored))
        return stored


__all__ = ["RecipeGenerator", "build_recipe_prompt", "parse_generated_recipes", "RECIPE_PROMPT"]
