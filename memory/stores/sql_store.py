"""SQLite SQLAlchemy store wrapper."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from memory.schemas import Base

logger = logging.getLogger("rapport.sql_store")


class SQLStore:
    """Provides SQLAlchemy session management for SQLite persistence."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connect()

    def _connect(self) -> None:
        self.engine = create_engine(f"sqlite+pysqlite:///{self.db_path}", future=True)
        self._session_factory = sessionmaker(bind=self.engine, future=True)

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        Base.metadata.create_all(self.engine)

    def recreate(self) -> None:
        """Discard an unreadable database file and start from an empty schema."""
        logger.warning("Recreating unreadable database at %s", self.db_path)
        self.engine.dispose()
        self.db_path.unlink(missing_ok=True)
        self._connect()
        self.create_all()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error."""
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()
