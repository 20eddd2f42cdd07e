"""Shared pytest fixtures for the SnapShelf test suite."""

from __future__ import annotations

from datetime import datetime
from typing import Generator, List, Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from snapshelf.config import get_settings
from snapshelf.db.repository import Store
from snapshelf.models.inventory import InventoryRecord, ItemObservation
from snapshelf.server import deps
from snapshelf.server.app import create_app

_ISOLATED_ENV = (
    "SNAPSHELF_API_TOKEN",
    "SNAPSHELF_GEMINI_API_KEY",
    "GEMINI_API_KEY",
    "SNAPSHELF_STORE_SCAN_IMAGES",
    "SNAPSHELF_CATEGORIES",
    "SNAPSHELF_DEFAULT_CATEGORY",
    "SNAPSHELF_RECIPE_MAX_MISSING",
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Ensure each test uses an isolated SQLite database and no ambient secrets."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SNAPSHELF_DATABASE_PATH", str(tmp_path / "test_snapshelf.db"))
    for key in _ISOLATED_ENV:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def store(tmp_path) -> Generator[Store, None, None]:
    handle = Store(tmp_path / "repository.db").open()
    yield handle
    handle.close()


class FakeDetector:
    """Stand-in for the recognition client that replays canned observations."""

    def __init__(self, observations: Sequence[ItemObservation] = (), error: Exception | None = None):
        self.observations = list(observations)
        self.error = error
        self.calls: List[tuple[int, str]] = []

    def detect_items(self, image, mime_type, *, categories, default_category):
        self.calls.append((len(image), mime_type))
        if self.error is not None:
            raise self.error
        return list(self.observations)


class FakeTextGenerator:
    def __init__(self, text: str = ""):
        self.text = text
        self.prompts: List[str] = []

    def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


@pytest.fixture()
def app() -> Generator[FastAPI, None, None]:
    """Create a new FastAPI app instance for each test and reset overrides."""

    application = create_app()
    yield application
    application.dependency_overrides.clear()
    application.state.store.close()


@pytest.fixture()
def client(app) -> TestClient:
    """Return a test client bound to the FastAPI app."""

    return TestClient(app)


@pytest.fixture()
def fake_detector(app) -> FakeDetector:
    detector = FakeDetector()
    app.dependency_overrides[deps.get_item_detector] = lambda: detector
    return detector


@pytest.fixture()
def text_generator(app) -> FakeTextGenerator:
    generator = FakeTextGenerator()
    app.dependency_overrides[deps.get_text_generator] = lambda: generator
    return generator


def _make_record(name: str, quantity: int = 1, **overrides) -> InventoryRecord:
    payload = {
        "id": overrides.pop("id", 1),
        "display_name": name,
        "quantity": quantity,
        "category": "other",
        "detected_at": datetime(2024, 1, 1, 12, 0, 0),
    }
    payload.update(overrides)
    return InventoryRecord.model_validate(payload)


@pytest.fixture()
def make_record():
    """Build detached ``InventoryRecord`` values for pure classification tests."""

    return _make_record
