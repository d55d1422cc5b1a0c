"""Database utilities for the CineScout service."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, MetaData, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """Declarative base shared by the ORM models."""

    metadata = MetaData()


class Database:
    """Thin wrapper managing the SQLAlchemy engine and sessions.

    Sessions are synchronous so that a store can read, modify and write its
    state inside a single call.
    """

    def __init__(self, database_url: str):
        self._engine: Engine = create_engine(database_url)
        self.session_factory: sessionmaker[Session] = sessionmaker(
            self._engine, expire_on_commit=False
        )

    def create_all(self) -> None:
        """Create database tables if they do not yet exist."""

        from . import db_models  # noqa: F401  registers mapped tables

        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        """Dispose of the underlying database engine."""

        self._engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        with self.session_factory() as session:
            yield session
