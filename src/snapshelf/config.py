"""Application configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ENV_FILE_CANDIDATES = (Path(".env"), Path(".env.local"))

DEFAULT_CATEGORIES = (
    "produce",
    "dairy",
    "meat",
    "drinks",
    "leftovers",
    "condiments",
    "frozen",
    "bakery",
    "snacks",
    "beverages",
    "seafood",
    "poultry",
    "grains",
    "spices",
    "other",
)


class Settings(BaseModel):
    """Global application settings loaded from environment variables or .env files."""

    database_path: Path = Field(
        default=Path("./data/snapshelf.db"),
        description="SQLite database location.",
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token required for mutating endpoints.",
    )
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        default="plain",
        description="Logging format (plain/json).",
    )
    log_requests: bool = Field(
        default=True,
        description="Emit request access logs when true.",
    )
    gemini_api_key: Optional[str] = Field(
        default=None,
        description="API key for the Gemini recognition/generation service.",
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model identifier.",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL.",
    )
    recognition_timeout: float = Field(
        default=90.0,
        description="Seconds before a recognition request is abandoned.",
    )
    recognition_temperature: float = Field(
        default=0.2,
        description="Sampling temperature for recognition calls.",
    )
    recognition_max_tokens: int = Field(
        default=2048,
        description="Maximum output tokens requested from the recognition service.",
    )
    categories: tuple[str, ...] = Field(
        default=DEFAULT_CATEGORIES,
        description="Supported item categories; anything else falls back to default_category.",
    )
    default_category: str = Field(
        default="other",
        description="Category assigned to observations with an unsupported category.",
    )
    grocery_default_category: str = Field(
        default="other",
        description="Category assigned to grocery entries created without one.",
    )
    max_upload_bytes: int = Field(
        default=8 * 1024 * 1024,
        description="Maximum accepted fridge photo size.",
    )
    store_scan_images: bool = Field(
        default=False,
        description="Persist the uploaded photo as a data URI on merged inventory records.",
    )
    recipe_max_missing: int = Field(
        default=2,
        description="Recipes missing more ingredients than this are not recommended.",
    )
    recipe_generation_count: int = Field(
        default=5,
        description="Number of recipes requested per generation run.",
    )

    model_config = ConfigDict(frozen=True)


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_categories(value: str) -> tuple[str, ...]:
    seen: list[str] = []
    for raw in value.split(","):
        category = raw.strip().lower()
        if category and category not in seen:
            seen.append(category)
    return tuple(seen)


def _parse_env_file(path: Path) -> dict[str, str]:
    payload: dict[str, str] = {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                payload[key.strip()] = raw_value.strip()
    except FileNotFoundError:
        return {}
    return payload


def _load_env_file_values() -> dict[str, str]:
    values: dict[str, str] = {}
    for candidate in ENV_FILE_CANDIDATES:
        values.update(_parse_env_file(candidate))
    return values


def _load_from_env() -> dict[str, object]:
    """Load optional overrides from env vars (with .env fallbacks)."""

    file_values = _load_env_file_values()

    def _env(key: str) -> Optional[str]:
        return os.environ.get(key) or file_values.get(key)

    payload: dict[str, object] = {}
    if (db_path := _env("SNAPSHELF_DATABASE_PATH")):
        payload["database_path"] = Path(db_path)
    if (api_token := _env("SNAPSHELF_API_TOKEN")):
        payload["api_token"] = api_token
    if (log_level := _env("SNAPSHELF_LOG_LEVEL")):
        payload["log_level"] = log_level
    if (log_format := _env("SNAPSHELF_LOG_FORMAT")):
        payload["log_format"] = log_format
    if (log_requests := _env("SNAPSHELF_LOG_REQUESTS")):
        payload["log_requests"] = _coerce_bool(log_requests)
    if (api_key := _env("SNAPSHELF_GEMINI_API_KEY") or _env("GEMINI_API_KEY")):
        payload["gemini_api_key"] = api_key
    if (model := _env("SNAPSHELF_GEMINI_MODEL") or _env("GEMINI_MODEL")):
        payload["gemini_model"] = model
    if (base_url := _env("SNAPSHELF_GEMINI_BASE_URL")):
        payload["gemini_base_url"] = base_url
    if (timeout := _env("SNAPSHELF_RECOGNITION_TIMEOUT")):
        try:
            payload["recognition_timeout"] = float(timeout)
        except ValueError:
            pass
    if (temperature := _env("SNAPSHELF_RECOGNITION_TEMPERATURE")):
        try:
            payload["recognition_temperature"] = float(temperature)
        except ValueError:
            pass
    if (max_tokens := _env("SNAPSHELF_RECOGNITION_MAX_TOKENS")):
        try:
            payload["recognition_max_tokens"] = int(max_tokens)
        except ValueError:
            pass
    if (categories := _env("SNAPSHELF_CATEGORIES")):
        parsed = _parse_categories(categories)
        if parsed:
            payload["categories"] = parsed
    if (default_category := _env("SNAPSHELF_DEFAULT_CATEGORY")):
        payload["default_category"] = default_category.strip().lower()
    if (grocery_category := _env("SNAPSHELF_GROCERY_DEFAULT_CATEGORY")):
        payload["grocery_default_category"] = grocery_category.strip().lower()
    if (max_upload := _env("SNAPSHELF_MAX_UPLOAD_BYTES")):
        try:
            payload["max_upload_bytes"] = int(max_upload)
        except ValueError:
            pass
    if (store_images := _env("SNAPSHELF_STORE_SCAN_IMAGES")):
        payload["store_scan_images"] = _coerce_bool(store_images)
    if (max_missing := _env("SNAPSHELF_RECIPE_MAX_MISSING")):
        try:
            payload["recipe_max_missing"] = int(max_missing)
        except ValueError:
            pass
    if (generation_count := _env("SNAPSHELF_RECIPE_GENERATION_COUNT")):
        try:
            payload["recipe_generation_count"] = int(generation_count)
        except ValueError:
            pass
    return payload


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings(**_load_from_env())
