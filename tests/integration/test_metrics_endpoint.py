"""Integration tests for metrics endpoint."""

from __future__ import annotations


def test_metrics_endpoint_available(client):
    client.get("/fridge-items")

    response = client.get("/metrics")
    assert response.status_code == 200
    body = response.content.decode()
    assert "snapshelf_http_requests_total" in body
    assert "snapshelf_inventory_items_merged_total" in body
