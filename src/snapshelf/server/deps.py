"""Dependency definitions for the SnapShelf API server."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from snapshelf.config import Settings, get_settings
from snapshelf.db.grocery import GroceryRepository
from snapshelf.db.inventory import InventoryRepository
from snapshelf.db.recipes import RecipeRepository
from snapshelf.db.repository import Store
from snapshelf.errors import RecognitionUnavailableError
from snapshelf.ingest.scans import ItemDetector, ScanService
from snapshelf.inventory.merge import InventoryReconciler
from snapshelf.recipes.generator import RecipeGenerator, TextGenerator
from snapshelf.recognition.client import GeminiClient, build_gemini_client


def get_store(request: Request) -> Store:
    """Return the application's store, opening it on first use."""

    store: Store = request.app.state.store
    return store.open()


def get_inventory_repository(store: Store = Depends(get_store)) -> InventoryRepository:
    return InventoryRepository(store)


def get_grocery_repository(
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> GroceryRepository:
    return GroceryRepository(store, default_category=settings.grocery_default_category)


def get_recipe_repository(store: Store = Depends(get_store)) -> RecipeRepository:
    return RecipeRepository(store)


def get_reconciler(request: Request, store: Store = Depends(get_store)) -> InventoryReconciler:
    # Shared across requests so the per-key locks cover concurrent scans.
    return request.app.state.reconciler


def get_recognition_client(settings: Settings = Depends(get_settings)) -> GeminiClient:
    client = build_gemini_client(settings)
    if client is None:
        raise RecognitionUnavailableError("Recognition service is not configured")
    return client


def get_item_detector(client: GeminiClient = Depends(get_recognition_client)) -> ItemDetector:
    return client


def get_text_generator(client: GeminiClient = Depends(get_recognition_client)) -> TextGenerator:
    return client


def get_scan_service(
    detector: ItemDetector = Depends(get_item_detector),
    reconciler: InventoryReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_settings),
) -> ScanService:
    return ScanService(detector, reconciler, settings=settings)


def get_recipe_generator(
    generator: TextGenerator = Depends(get_text_generator),
    repository: RecipeRepository = Depends(get_recipe_repository),
    settings: Settings = Depends(get_settings),
) -> RecipeGenerator:
    return RecipeGenerator(generator, repository, count=settings.recipe_generation_count)


def require_api_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Ensure requests carry the configured API token when required."""

    token = settings.api_token
    if not token:
        return

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.split("Bearer ")[-1].strip() == token:
        return

    if request.headers.get("X-API-Key") == token:
        return

    if request.query_params.get("api_token") == token:
        return

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


__all__ = [
    "get_store",
    "get_inventory_repository",
    "get_grocery_repository",
    "get_recipe_repository",
    "get_reconciler",
    "get_recognition_client",
    "get_item_detector",
    "get_text_generator",
    "get_scan_service",
    "get_recipe_generator",
    "require_api_token",
]
