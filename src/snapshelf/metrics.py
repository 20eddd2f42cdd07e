"""Prometheus metrics definitions for SnapShelf."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "snapshelf_http_requests_total",
    "Total number of HTTP requests processed by the SnapShelf API",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "snapshelf_http_request_duration_seconds",
    "Latency of HTTP requests processed by the SnapShelf API",
    ["method", "path"],
)

SCAN_JOBS = Counter(
    "snapshelf_scan_jobs_total",
    "Number of fridge scans executed by status",
    ["status"],
)

MERGED_ITEMS = Counter(
    "snapshelf_inventory_items_merged_total",
    "Number of observations reconciled into inventory",
    ["result"],
)

RECOGNITION_LATENCY = Histogram(
    "snapshelf_recognition_duration_seconds",
    "Latency of calls to the recognition service",
    ["operation"],
)

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SCAN_JOBS",
    "MERGED_ITEMS",
    "RECOGNITION_LATENCY",
]
