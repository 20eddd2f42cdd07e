"""Read-only classifications over inventory, grocery list and recipes."""

from .compare import compare_grocery_list
from .recipes import recommend_recipes

__all__ = ["compare_grocery_list", "recommend_recipes"]
