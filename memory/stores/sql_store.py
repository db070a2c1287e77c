"""SQLite SQLAlchemy store wrapper."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from memory.errors import StoreError
from memory.schemas import Base


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    """SQLite leaves foreign keys unenforced unless each connection opts in."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SQLStore:
    """Provides SQLAlchemy session management for SQLite persistence."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite+pysqlite:///{self.db_path}", future=True)
        event.listen(self.engine, "connect", _enable_foreign_keys)
        self._session_factory = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not create schema at {self.db_path}: {exc}") from exc

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error.

        SQLAlchemy failures surface as StoreError; other exceptions pass through.
        """
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except SQLAlchemyError as exc:
            sess.rollback()
            raise StoreError(str(exc)) from exc
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    def dispose(self) -> None:
        self.engine.dispose()
