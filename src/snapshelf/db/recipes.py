"""Recipe catalog persistence helpers."""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from snapshelf.models.recipe import Recipe

from .models import RecipeORM
from .repository import Store


def _to_model(row: RecipeORM) -> Recipe:
    return Recipe.model_validate(
        {
            "id": row.id,
            "title": row.title,
            "description": row.description or "",
            "instructions": row.instructions or "",
            "category": row.category or "other",
            "image_url": row.image_url,
            "ingredients": row.ingredients or [],
        }
    )


def _row_values(recipe: Recipe) -> dict[str, object]:
    return {
        "title": recipe.title.strip(),
        "description": recipe.description,
        "instructions": recipe.instructions,
        "category": recipe.category,
        "image_url": recipe.image_url,
        "ingredients": [
            ingredient.model_dump(exclude_none=True) for ingredient in recipe.ingredients
        ],
    }


class RecipeRepository:
    """Recipe catalog stored through a ``Store`` handle."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def list_recipes(self) -> List[Recipe]:
        with self._store.session_scope() as session:
            rows = session.execute(select(RecipeORM).order_by(RecipeORM.title)).scalars().all()
            return [_to_model(row) for row in rows]

    def get_recipe(self, recipe_id: int) -> Optional[Recipe]:
        with self._store.session_scope() as session:
            row = session.get(RecipeORM, recipe_id)
            return _to_model(row) if row is not None else None

    def get_by_title(self, title: str) -> Optional[Recipe]:
        with self._store.session_scope() as session:
            row = session.execute(
                select(RecipeORM).where(RecipeORM.title == title.strip())
            ).scalar_one_or_none()
            return _to_model(row) if row is not None else None

    def upsert(self, recipe: Recipe) -> Recipe:
        """Insert ``recipe`` or replace the existing one with the same title.

        Runs as a single ``INSERT ... ON CONFLICT(title) DO UPDATE`` statement so
        concurrent writers never produce duplicate titles.
        """

        values = _row_values(recipe)
        statement = sqlite_insert(RecipeORM).values(**values)
        statement = statement.on_conflict_do_update(
            index_elements=[RecipeORM.title],
            set_={
                "description": statement.excluded.description,
                "instructions": statement.excluded.instructions,
                "category": statement.excluded.category,
                "image_url": statement.excluded.image_url,
                "ingredients": statement.excluded.ingredients,
                "updated_at": func.now(),
            },
        )
        with self._store.session_scope() as session:
            session.execute(statement)
            row = session.execute(
                select(RecipeORM).where(RecipeORM.title == values["title"])
            ).scalar_one()
            return _to_model(row)

    def upsert_many(self, recipes: Iterable[Recipe]) -> List[Recipe]:
        return [self.upsert(recipe) for recipe in recipes]


__all__ = ["RecipeRepository"]
