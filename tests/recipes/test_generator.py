"""Tests for recipe generation."""

from __future__ import annotations

import json

import pytest

from snapshelf.db.recipes import RecipeRepository
from snapshelf.errors import MalformedResponseError
from snapshelf.recipes.generator import RecipeGenerator, build_recipe_prompt, parse_generated_recipes

GENERATED = {
    "recipes": [
        {
            "title": "Veggie Omelette",
            "description": "Quick breakfast",
            "instructions": "Whisk and cook.",
            "category": "Breakfast",
            "ingredients": [
                {"name": "egg", "qty": 3},
                {"name": "spinach", "qty": "lots", "qtyUnit": "handful"},
                "salt",
                {"qty": 1},
            ],
        },
        {"title": "", "ingredients": []},
        {"description": "no title"},
        "not a recipe",
    ]
}


def test_parse_generated_recipes_skips_invalid_entries():
    recipes = parse_generated_recipes("```json\n" + json.dumps(GENERATED) + "\n```")

    assert [recipe.title for recipe in recipes] == ["Veggie Omelette"]
    omelette = recipes[0]
    assert omelette.category == "breakfast"
    assert [(item.name, item.quantity, item.unit) for item in omelette.ingredients] == [
        ("egg", 3, None),
        ("spinach", None, "handful"),
        ("salt", None, None),
    ]


def test_parse_generated_recipes_accepts_bare_array():
    recipes = parse_generated_recipes('[{"title": "Toast", "ingredients": ["bread"]}]')

    assert [recipe.title for recipe in recipes] == ["Toast"]


def test_parse_generated_recipes_requires_recipe_array():
    with pytest.raises(MalformedResponseError):
        parse_generated_recipes('{"meals": []}')


def test_prompt_lists_distinct_inventory_names(make_record):
    prompt = build_recipe_prompt(
        [make_record("Milk", 1), make_record("milk", 2, id=2), make_record("Eggs", 6, id=3)],
        count=3,
    )

    assert "Fridge contents: milk, eggs" in prompt
    assert "Suggest 3 recipes" in prompt


class StubTextGenerator:
    def __init__(self, text: str):
        self.text = text
        self.prompts = []

    def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


def test_generate_upserts_by_title(store, make_record):
    repository = RecipeRepository(store)
    generator = RecipeGenerator(StubTextGenerator(json.dumps(GENERATED)), repository, count=2)

    generator.generate([make_record("egg", 3)])
    stored = generator.generate([make_record("egg", 3)])

    assert [recipe.title for recipe in stored] == ["Veggie Omelette"]
    assert len(repository.list_recipes()) == 1


@pytest.mark.parametrize("raw_quantity", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_ingredient_quantities_become_unknown(raw_quantity):
    text = (
        '{"recipes": [{"title": "Omelette", "ingredients": '
        f'[{{"name": "egg", "qty": {raw_quantity}}}, {{"name": "milk", "qty": 2}}]}}]}}'
    )

    recipes = parse_generated_recipes(text)

    assert [(item.name, item.quantity) for item in recipes[0].ingredients] == [
        ("egg", None),
        ("milk", 2),
    ]
