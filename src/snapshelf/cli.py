"""Command-line interface for SnapShelf."""

from __future__ import annotations

import json
import mimetypes
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer

from snapshelf.analysis import compare_grocery_list, recommend_recipes
from snapshelf.config import get_settings
from snapshelf.db.grocery import GroceryRepository
from snapshelf.db.inventory import InventoryRepository
from snapshelf.db.recipes import RecipeRepository
from snapshelf.db.repository import Store, open_store
from snapshelf.errors import RecognitionError
from snapshelf.ingest.scans import ScanService
from snapshelf.inventory.merge import InventoryReconciler
from snapshelf.logging_utils import configure_logging
from snapshelf.recipes.generator import RecipeGenerator
from snapshelf.recognition.client import build_gemini_client

app = typer.Typer(help="SnapShelf fridge inventory commands.")


@contextmanager
def _store(database: Optional[Path]) -> Iterator[Store]:
    settings = get_settings()
    configure_logging(
        settings.log_level,
        settings.log_format,
        [settings.api_token or "", settings.gemini_api_key or ""],
    )
    store = open_store(database or settings.database_path)
    try:
        yield store
    finally:
        store.close()


def _echo_json(payload: Any, pretty: bool) -> None:
    typer.echo(json.dumps(payload, indent=2 if pretty else None, sort_keys=pretty, default=str))


def _recognition_client():
    client = build_gemini_client(get_settings())
    if client is None:
        typer.secho("GEMINI_API_KEY is not configured.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    return client


_DATABASE_OPTION = typer.Option(None, "--database", help="Override the SQLite database path.")
_PRETTY_OPTION = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON.")


@app.command()
def scan(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Fridge photo to analyze."),
    mime_type: Optional[str] = typer.Option(None, "--mime-type", help="Override the image type."),
    database: Optional[Path] = _DATABASE_OPTION,
    pretty: bool = _PRETTY_OPTION,
) -> None:
    """
    Recognize the items in a fridge photo and merge them into inventory.
    """

    content = image.read_bytes()
    resolved_type = mime_type or mimetypes.guess_type(image.name)[0] or "image/jpeg"
    client = _recognition_client()
    with _store(database) as store:
        service = ScanService(client, InventoryReconciler(InventoryRepository(store)))
        try:
            result = service.process_scan(content, resolved_type)
        except RecognitionError as exc:
            typer.secho(f"Scan failed: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc

    _echo_json(
        {
            "scanId": result.scan_id,
            "totalItems": result.total_items,
            "merged": [
                {
                    "name": outcome.record.display_name,
                    "action": "created" if outcome.created else "updated",
                    "qty": outcome.record.quantity,
                }
                for outcome in result.merged
            ],
        },
        pretty,
    )


@app.command()
def inventory(
    database: Optional[Path] = _DATABASE_OPTION,
    pretty: bool = _PRETTY_OPTION,
) -> None:
    """List inventory records, most recently detected first."""

    with _store(database) as store:
        records = InventoryRepository(store).list_inventory()
    _echo_json([record.model_dump(mode="json", by_alias=True) for record in records], pretty)


@app.command()
def compare(
    database: Optional[Path] = _DATABASE_OPTION,
    pretty: bool = _PRETTY_OPTION,
) -> None:
    """Compare the grocery list against the fridge."""

    settings = get_settings()
    with _store(database) as store:
        result = compare_grocery_list(
            InventoryRepository(store).list_inventory(),
            GroceryRepository(store, default_category=settings.grocery_default_category).list_items(),
        )
    _echo_json(result.model_dump(mode="json", by_alias=True), pretty)


@app.command()
def recommend(
    max_missing: Optional[int] = typer.Option(
        None, "--max-missing", min=0, help="Override the almost-makeable threshold."
    ),
    database: Optional[Path] = _DATABASE_OPTION,
    pretty: bool = _PRETTY_OPTION,
) -> None:
    """Show recipes that can be made now or with a few extra ingredients."""

    settings = get_settings()
    with _store(database) as store:
        result = recommend_recipes(
            InventoryRepository(store).list_inventory(),
            RecipeRepository(store).list_recipes(),
            max_missing=settings.recipe_max_missing if max_missing is None else max_missing,
        )
    _echo_json(result.model_dump(mode="json", by_alias=True), pretty)


@app.command("reset-inventory")
def reset_inventory(
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting every inventory record."),
    database: Optional[Path] = _DATABASE_OPTION,
) -> None:
    """Delete every inventory record."""

    if not yes:
        typer.secho("Refusing to reset inventory without --yes.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    with _store(database) as store:
        deleted = InventoryRepository(store).reset_inventory()
    typer.echo(f"Removed {deleted} inventory record(s).")


@app.command("generate-recipes")
def generate_recipes(
    count: Optional[int] = typer.Option(None, "--count", min=1, help="Recipes to request."),
    database: Optional[Path] = _DATABASE_OPTION,
    pretty: bool = _PRETTY_OPTION,
) -> None:
    """Generate recipes from the current inventory and store them by title."""

    settings = get_settings()
    client = _recognition_client()
    with _store(database) as store:
        generator = RecipeGenerator(
            client,
            RecipeRepository(store),
            count=count or settings.recipe_generation_count,
        )
        try:
            recipes = generator.generate(InventoryRepository(store).list_inventory())
        except RecognitionError as exc:
            typer.secho(f"Recipe generation failed: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
    _echo_json([recipe.model_dump(mode="json", by_alias=True) for recipe in recipes], pretty)


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the ``snapshelf`` script."""
    app(prog_name="snapshelf", args=argv)


if __name__ == "__main__":
    main()
