"""Scan ingestion helpers."""

from snapshelf.ingest.scans import ScanResult, ScanService, build_image_ref

__all__ = ["ScanResult", "ScanService", "build_image_ref"]
