"""Persistence layer backed by SQLite via SQLAlchemy."""
