"""Durable key-value slots used by local stores."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import delete

from .database import Database
from .db_models import StorageSlot


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class SQLSlotStorage:
    """Key-value slots persisted in the ``storage_slots`` table.

    Every call commits before returning.
    """

    def __init__(self, database: Database):
        self._database = database

    def get(self, key: str) -> str | None:
        with self._database.session() as session:
            record = session.get(StorageSlot, key)
            return record.value if record is not None else None

    def set(self, key: str, value: str) -> None:
        with self._database.session() as session:
            record = session.get(StorageSlot, key)
            if record is None:
                session.add(StorageSlot(key=key, value=value))
            else:
                record.value = value
            session.commit()

    def delete(self, key: str) -> None:
        with self._database.session() as session:
            session.execute(delete(StorageSlot).where(StorageSlot.key == key))
            session.commit()
