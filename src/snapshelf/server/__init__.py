"""ASGI application factory and dependencies for the SnapShelf server."""

from snapshelf.server.app import app, create_app

__all__ = ["app", "create_app"]
