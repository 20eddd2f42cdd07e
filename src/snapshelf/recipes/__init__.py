"""LLM-backed recipe generation."""

from snapshelf.recipes.generator import RecipeGenerator, build_recipe_prompt, parse_generated_recipes

__all__ = ["RecipeGenerator", "build_recipe_prompt", "parse_generated_recipes"]
