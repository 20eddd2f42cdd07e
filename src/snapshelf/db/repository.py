"""Database engine and session management."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from snapshelf.config import get_settings
from snapshelf.db.models import Base

logger = logging.getLogger(__name__)


class Store:
    """Handle on the SQLite store; lifecycle is ``open() -> serve -> close()``.

    Repositories receive a ``Store`` at construction instead of reaching for
    process-wide engine state.
    """

    def __init__(self, database_path: Path | None = None) -> None:
        self._database_path = database_path
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Store is not open")
        return self._engine

    def open(self) -> "Store":
        """Create the engine and schema. Calling ``open`` twice is a no-op."""

        with self._lock:
            if self._engine is None:
                self._open_locked()
        return self

    def _open_locked(self) -> None:
        db_path = self._database_path or get_settings().database_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            f"sqlite:///{db_path}",
            future=True,
            echo=False,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        try:
            Base.metadata.create_all(engine)
        except OperationalError as exc:
            if "already exists" in str(exc).lower():
                logger.debug("Database schema already initialized: %s", exc)
            else:
                raise
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
        )
        logger.debug("Opened store at %s", db_path)

    def close(self) -> None:
        """Dispose of pooled connections."""

        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
                logger.debug("Closed store")
            self._engine = None
            self._session_factory = None

    def session(self) -> Session:
        """Return a new SQLAlchemy session."""

        if self._session_factory is None:
            raise RuntimeError("Store is not open")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager yielding a session with automatic commit/rollback."""

        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_store(database_path: Path | None = None) -> Store:
    """Open a store at ``database_path`` (defaults to the configured location)."""

    return Store(database_path).open()


__all__ = ["Store", "open_store"]
