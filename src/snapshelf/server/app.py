"""ASGI application for SnapShelf."""
# mypy: ignore-errors

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from snapshelf import __version__, metrics
from snapshelf.analysis import compare_grocery_list, recommend_recipes
from snapshelf.analysis.recipes import build_presence_index, match_recipe
from snapshelf.config import Settings, get_settings
from snapshelf.db.grocery import GroceryRepository
from snapshelf.db.inventory import InventoryRepository
from snapshelf.db.recipes import RecipeRepository
from snapshelf.db.repository import Store
from snapshelf.errors import (
    EmptyResponseError,
    MalformedResponseError,
    RecognitionError,
    RecognitionUnavailableError,
    UpstreamError,
    UpstreamTimeoutError,
)
from snapshelf.ingest.scans import ScanService
from snapshelf.inventory.merge import InventoryReconciler
from snapshelf.logging_utils import configure_logging as configure_app_logging
from snapshelf.models.grocery import GroceryComparison, GroceryEntry
from snapshelf.models.inventory import InventoryRecord
from snapshelf.models.recipe import MissingIngredient, Recipe, RecipeRecommendations
from snapshelf.recipes.generator import RecipeGenerator
from snapshelf.server import deps

logger = logging.getLogger(__name__)

_RECOGNITION_STATUS = (
    (RecognitionUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (UpstreamTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (MalformedResponseError, status.HTTP_502_BAD_GATEWAY),
    (EmptyResponseError, status.HTTP_502_BAD_GATEWAY),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
)


def recognition_status_code(exc: RecognitionError) -> int:
    for error_type, status_code in _RECOGNITION_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_502_BAD_GATEWAY


def _configure_logging(settings: Settings) -> None:
    secrets = [settings.api_token or "", settings.gemini_api_key or ""]
    configure_app_logging(settings.log_level, settings.log_format, secrets)


def create_app(store: Store | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    The store is opened lazily on first use and closed on shutdown.
    """

    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title="SnapShelf", version=__version__)
    application.state.store = store or Store(settings.database_path)
    application.state.reconciler = InventoryReconciler(InventoryRepository(application.state.store))

    @application.on_event("shutdown")
    async def close_store() -> None:
        application.state.store.close()

    logger.debug("Application created with log level %s", settings.log_level)

    if settings.log_requests:
        access_logger = logging.getLogger("snapshelf.access")

        @application.middleware("http")
        async def log_request_response(request: Request, call_next):
            """Log request/response details without leaking sensitive data."""

            request_id = request.headers.get("X-Request-ID") or uuid4().hex
            request.state.request_id = request_id
            start = perf_counter()
            path = request.url.path
            method = request.method
            try:
                response: Response = await call_next(request)
            except Exception:
                duration_ms = (perf_counter() - start) * 1000
                access_logger.exception(
                    "HTTP %s %s status=500 duration_ms=%.2f",
                    method,
                    path,
                    duration_ms,
                    extra={"request_id": request_id},
                )
                metrics.REQUEST_COUNT.labels(method=method, path=path, status="500").inc()
                metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(
                    duration_ms / 1000.0
                )
                raise

            duration_ms = (perf_counter() - start) * 1000
            response.headers.setdefault("X-Request-ID", request_id)
            access_logger.info(
                "HTTP %s %s status=%s duration_ms=%.2f",
                method,
                path,
                response.status_code,
                duration_ms,
                extra={"request_id": request_id},
            )
            metrics.REQUEST_COUNT.labels(
                method=method,
                path=path,
                status=str(response.status_code),
            ).inc()
            metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(duration_ms / 1000.0)
            return response

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log_kwargs: dict[str, Any] = {}
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            log_kwargs["extra"] = {"request_id": request_id}
        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(),
            **log_kwargs,
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_errors(exc.errors())},
        )

    @application.exception_handler(RecognitionError)
    async def recognition_exception_handler(request: Request, exc: RecognitionError):
        status_code = recognition_status_code(exc)
        logger.warning(
            "Recognition failure on %s %s status=%s: %s",
            request.method,
            request.url.path,
            status_code,
            exc,
        )
        content: dict[str, Any] = {"detail": str(exc), "retryable": exc.retryable}
        reason = getattr(exc, "reason", None)
        if reason:
            content["reason"] = reason
        return JSONResponse(status_code=status_code, content=content)

    @application.get("/", summary="Service status")
    def root() -> dict[str, str]:
        return {"status": "SnapShelf API is running", "version": __version__}

    @application.get(
        "/fridge-items",
        response_model=list[InventoryRecord],
        summary="List inventory, most recently detected first",
    )
    def fridge_items_list(
        repository: InventoryRepository = Depends(deps.get_inventory_repository),
    ) -> list[InventoryRecord]:
        return repository.list_inventory()

    @application.delete("/fridge-items", summary="Reset the whole inventory")
    def fridge_items_reset(
        auth: None = Depends(deps.require_api_token),
        repository: InventoryRepository = Depends(deps.get_inventory_repository),
    ) -> dict[str, Any]:
        deleted = repository.reset_inventory()
        logger.info("Inventory reset; removed %s record(s)", deleted)
        return {"status": "ok", "deleted": deleted}

    @application.delete(
        "/fridge-items/{item_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Delete one inventory record",
    )
    def fridge_item_delete(
        item_id: int,
        auth: None = Depends(deps.require_api_token),
        repository: InventoryRepository = Depends(deps.get_inventory_repository),
    ) -> None:
        try:
            repository.delete_item(item_id)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @application.put(
        "/fridge-items/{item_id}/quantity",
        response_model=InventoryRecord,
        summary="Set an inventory record's quantity",
    )
    def fridge_item_set_quantity(
        item_id: int,
        payload: QuantityUpdateRequest,
        auth: None = Depends(deps.require_api_token),
        repository: InventoryRepository = Depends(deps.get_inventory_repository),
    ) -> InventoryRecord:
        try:
            return repository.set_quantity(item_id, payload.quantity)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @application.post(
        "/analyze-fridge",
        response_model=AnalyzeFridgeResponse,
        summary="Recognize items in a fridge photo and merge them into inventory",
    )
    async def analyze_fridge(
        image: UploadFile = File(...),
        auth: None = Depends(deps.require_api_token),
        service: ScanService = Depends(deps.get_scan_service),
        repository: InventoryRepository = Depends(deps.get_inventory_repository),
        settings: Settings = Depends(get_settings),
    ) -> AnalyzeFridgeResponse:
        content = await image.read()
        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Image file is required"
            )
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Image exceeds {settings.max_upload_bytes // (1024 * 1024)} MiB limit.",
            )

        result = await run_in_threadpool(service.process_scan, content, image.content_type)
        items = await run_in_threadpool(repository.list_inventory)
        return AnalyzeFridgeResponse(
            status="ok",
            scan_id=result.scan_id,
            items=items,
            total_items=len(items),
            merged=[
                MergedItem(
                    id=outcome.record.id,
                    name=outcome.record.display_name,
                    action="created" if outcome.created else "updated",
                    quantity=outcome.record.quantity,
                    observed_quantity=outcome.observed_quantity,
                )
                for outcome in result.merged
            ],
        )

    @application.post(
        "/grocery/add-item",
        response_model=list[GroceryEntry],
        summary="Add an entry to the grocery list",
    )
    def grocery_add_item(
        payload: GroceryAddRequest,
        auth: None = Depends(deps.require_api_token),
        repository: GroceryRepository = Depends(deps.get_grocery_repository),
    ) -> list[GroceryEntry]:
        try:
            repository.add_item(
                name=payload.name or "",
                quantity_needed=payload.quantity_needed,
                category=payload.category,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return repository.list_items()

    @application.get(
        "/grocery/list",
        response_model=list[GroceryEntry],
        summary="List grocery entries, newest first",
    )
    def grocery_list(
        repository: GroceryRepository = Depends(deps.get_grocery_repository),
    ) -> list[GroceryEntry]:
        return repository.list_items()

    @application.delete(
        "/grocery/item/{item_id}",
        response_model=GroceryListResponse,
        summary="Delete a grocery entry",
    )
    def grocery_delete_item(
        item_id: int,
        auth: None = Depends(deps.require_api_token),
        repository: GroceryRepository = Depends(deps.get_grocery_repository),
    ) -> GroceryListResponse:
        try:
            repository.delete_item(item_id)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return GroceryListResponse(status="ok", entries=repository.list_items())

    @application.get(
        "/grocery/compare",
        response_model=GroceryComparison,
        summary="Compare the grocery list against the fridge",
    )
    def grocery_compare(
        inventory: InventoryRepository = Depends(deps.get_inventory_repository),
        grocery: GroceryRepository = Depends(deps.get_grocery_repository),
    ) -> GroceryComparison:
        return compare_grocery_list(inventory.list_inventory(), grocery.list_items())

    @application.get(
        "/recipes/all",
        response_model=list[Recipe],
        summary="List the recipe catalog",
    )
    def recipes_all(
        repository: RecipeRepository = Depends(deps.get_recipe_repository),
    ) -> list[Recipe]:
        return repository.list_recipes()

    @application.post(
        "/recipes",
        response_model=Recipe,
        summary="Create or replace a recipe by title",
    )
    def recipes_upsert(
        recipe: Recipe,
        auth: None = Depends(deps.require_api_token),
        repository: RecipeRepository = Depends(deps.get_recipe_repository),
    ) -> Recipe:
        return repository.upsert(recipe)

    @application.get(
        "/recipes/recommend",
        response_model=RecipeRecommendations,
        summary="Recipes that can be made now or with a few extra ingredients",
    )
    def recipes_recommend(
        inventory: InventoryRepository = Depends(deps.get_inventory_repository),
        recipes: RecipeRepository = Depends(deps.get_recipe_repository),
        settings: Settings = Depends(get_settings),
    ) -> RecipeRecommendations:
        return recommend_recipes(
            inventory.list_inventory(),
            recipes.list_recipes(),
            max_missing=settings.recipe_max_missing,
        )

    @application.post(
        "/recipes/add-missing-to-grocery",
        response_model=AddMissingResponse,
        summary="Add a recipe's missing ingredients to the grocery list",
    )
    def recipes_add_missing(
        payload: AddMissingRequest,
        auth: None = Depends(deps.require_api_token),
        inventory: InventoryRepository = Depends(deps.get_inventory_repository),
        recipes: RecipeRepository = Depends(deps.get_recipe_repository),
        grocery: GroceryRepository = Depends(deps.get_grocery_repository),
    ) -> AddMissingResponse:
        missing = list(payload.missing_ingredients)
        if not missing and payload.recipe_id is not None:
            recipe = recipes.get_recipe(payload.recipe_id)
            if recipe is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Recipe {payload.recipe_id} not found",
                )
            present = build_presence_index(inventory.list_inventory())
            missing = match_recipe(recipe, present).missing_ingredients
        if not missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No missing ingredients to add",
            )

        added = grocery.add_missing((entry.name, entry.quantity_needed) for entry in missing)
        logger.info(
            "Added %s of %s missing ingredient(s) to grocery list recipe_id=%s",
            len(added),
            len(missing),
            payload.recipe_id,
        )
        return AddMissingResponse(status="ok", added=added, entries=grocery.list_items())

    @application.post(
        "/recipes/generate",
        response_model=list[Recipe],
        summary="Generate recipes from the current inventory",
    )
    def recipes_generate(
        auth: None = Depends(deps.require_api_token),
        generator: RecipeGenerator = Depends(deps.get_recipe_generator),
        inventory: InventoryRepository = Depends(deps.get_inventory_repository),
    ) -> list[Recipe]:
        return generator.generate(inventory.list_inventory())

    @application.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    return application


def jsonable_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop validation error fields that cannot be serialized to JSON."""

    normalized: list[dict[str, Any]] = []
    for error in errors:
        entry = {key: value for key, value in error.items() if key not in {"ctx", "input"}}
        if "ctx" in error:
            entry["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        normalized.append(entry)
    return normalized


class QuantityUpdateRequest(BaseModel):
    quantity: int = Field(ge=0, alias="qty")

    model_config = ConfigDict(populate_by_name=True)


class GroceryAddRequest(BaseModel):
    name: Optional[str] = None
    quantity_needed: Optional[float] = Field(default=None, alias="qtyNeeded")
    category: Optional[str] = Field(default=None, max_length=64)

    model_config = ConfigDict(populate_by_name=True)


class GroceryListResponse(BaseModel):
    status: str
    entries: list[GroceryEntry] = Field(alias="list")

    model_config = ConfigDict(populate_by_name=True)


class AddMissingRequest(BaseModel):
    recipe_id: Optional[int] = Field(default=None, alias="recipeId")
    missing_ingredients: list[MissingIngredient] = Field(
        default_factory=list, alias="missingIngredients"
    )

    model_config = ConfigDict(populate_by_name=True)


class AddMissingResponse(BaseModel):
    status: str
    added: list[GroceryEntry]
    entries: list[GroceryEntry] = Field(alias="list")

    model_config = ConfigDict(populate_by_name=True)


class MergedItem(BaseModel):
    id: int
    name: str
    action: str
    quantity: int = Field(alias="qty")
    observed_quantity: int = Field(alias="observedQty")

    model_config = ConfigDict(populate_by_name=True)


class AnalyzeFridgeResponse(BaseModel):
    status: str
    scan_id: str = Field(alias="scanId")
    items: list[InventoryRecord]
    total_items: int = Field(alias="totalItems")
    merged: list[MergedItem] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


app = create_app()

__all__ = ["app", "create_app", "recognition_status_code"]
