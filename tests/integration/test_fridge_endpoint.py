"""Integration tests for the fridge scan and inventory endpoints."""

from __future__ import annotations

import importlib

import pytest
from fastapi import status

from snapshelf.errors import (
    EmptyResponseError,
    MalformedResponseError,
    UpstreamError,
    UpstreamTimeoutError,
)
from snapshelf.models.inventory import ItemObservation


def _upload(client, content: bytes = b"fake-image", content_type: str = "image/jpeg"):
    return client.post(
        "/analyze-fridge",
        files={"image": ("fridge.jpg", content, content_type)},
    )


def test_root_reports_status(client):
    response = client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "SnapShelf API is running"


def test_repeated_scans_accumulate(client, fake_detector):
    fake_detector.observations = [
        ItemObservation(name="Apple", quantity=3, category="produce", bbox=[0.1, 0.1, 0.2, 0.2]),
    ]
    response = _upload(client)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "ok"
    assert body["totalItems"] == 1
    assert body["merged"][0]["action"] == "created"

    fake_detector.observations = [ItemObservation(name="apples", quantity=2, category="produce")]
    body = _upload(client).json()

    assert body["merged"] == [
        {
            "id": body["items"][0]["id"],
            "name": "Apples",
            "action": "updated",
            "qty": 5,
            "observedQty": 2,
        }
    ]
    item = body["items"][0]
    assert item["name"] == "Apples"
    assert item["canonicalName"] == "apple"
    assert item["qty"] == 5
    assert item["bbox"] is None
    assert fake_detector.calls[-1] == (len(b"fake-image"), "image/jpeg")

    listing = client.get("/fridge-items").json()
    assert [entry["qty"] for entry in listing] == [5]


def test_scan_and_inventory_reads_run_off_the_event_loop(client, fake_detector, monkeypatch):
    app_module = importlib.import_module("snapshelf.server.app")

    dispatched: list[str] = []
    original = app_module.run_in_threadpool

    async def recording_threadpool(func, *args, **kwargs):
        dispatched.append(func.__name__)
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(app_module, "run_in_threadpool", recording_threadpool)
    fake_detector.observations = [ItemObservation(name="Milk", quantity=1, category="dairy")]

    response = _upload(client)

    assert response.status_code == status.HTTP_200_OK
    assert dispatched == ["process_scan", "list_inventory"]


def test_empty_upload_is_rejected(client, fake_detector):
    response = _upload(client, content=b"")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert fake_detector.calls == []


def test_oversized_upload_is_rejected(client, fake_detector, monkeypatch):
    from snapshelf.config import get_settings

    monkeypatch.setenv("SNAPSHELF_MAX_UPLOAD_BYTES", "4")
    get_settings.cache_clear()

    response = _upload(client, content=b"12345")

    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


def test_missing_api_key_returns_service_unavailable(client):
    response = _upload(client)

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


@pytest.mark.parametrize(
    "error, expected_status",
    [
        (MalformedResponseError("bad json"), status.HTTP_502_BAD_GATEWAY),
        (EmptyResponseError("blocked", reason="SAFETY"), status.HTTP_502_BAD_GATEWAY),
        (UpstreamError("boom", status_code=500), status.HTTP_502_BAD_GATEWAY),
        (UpstreamTimeoutError("slow"), status.HTTP_504_GATEWAY_TIMEOUT),
    ],
)
def test_recognition_errors_map_to_gateway_statuses(client, fake_detector, error, expected_status):
    fake_detector.error = error

    response = _upload(client)

    assert response.status_code == expected_status
    assert response.json()["retryable"] is isinstance(error, UpstreamTimeoutError)
    assert client.get("/fridge-items").json() == []


def test_empty_response_reason_is_surfaced(client, fake_detector):
    fake_detector.error = EmptyResponseError("blocked", reason="SAFETY")

    assert _upload(client).json()["reason"] == "SAFETY"


def test_quantity_update_delete_and_reset(client, fake_detector):
    fake_detector.observations = [
        ItemObservation(name="Milk", quantity=2, category="dairy"),
        ItemObservation(name="Eggs", quantity=6, category="dairy"),
    ]
    items = _upload(client).json()["items"]
    ids = {item["name"]: item["id"] for item in items}

    response = client.put(f"/fridge-items/{ids['Milk']}/quantity", json={"qty": 0})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["qty"] == 0

    response = client.put(f"/fridge-items/{ids['Milk']}/quantity", json={"qty": -1})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.delete(f"/fridge-items/{ids['Eggs']}")
    assert response.status_code == status.HTTP_204_NO_CONTENT
    response = client.delete(f"/fridge-items/{ids['Eggs']}")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    response = client.put("/fridge-items/9999/quantity", json={"qty": 1})
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.delete("/fridge-items")
    assert response.json() == {"status": "ok", "deleted": 1}
    assert client.get("/fridge-items").json() == []
