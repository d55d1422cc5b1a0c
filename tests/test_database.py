from __future__ import annotations

from sqlalchemy import create_engine, inspect

from app.database import Database
from app.storage import SQLSlotStorage


def test_create_all_creates_storage_slots_table(tmp_path) -> None:
    database_path = tmp_path / "cinescout.db"

    database = Database(f"sqlite:///{database_path}")
    database.create_all()
    database.dispose()

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        columns = {column["name"] for column in inspector.get_columns("storage_slots")}
    finally:
        inspector_engine.dispose()

    assert {"key", "value", "updated_at"} <= columns


def test_slot_storage_set_get_delete(tmp_path) -> None:
    database = Database(f"sqlite:///{tmp_path / 'slots.db'}")
    database.create_all()
    storage = SQLSlotStorage(database)
    try:
        assert storage.get("movie-watchlist") is None

        storage.set("movie-watchlist", "[]")
        storage.set("movie-watchlist", '[{"id": 1}]')
        assert storage.get("movie-watchlist") == '[{"id": 1}]'

        storage.delete("movie-watchlist")
        storage.delete("missing")
        assert storage.get("movie-watchlist") is None
    finally:
        database.dispose()


def test_slot_storage_survives_reopen(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'reopen.db'}"
    first = Database(url)
    first.create_all()
    SQLSlotStorage(first).set("k", "v")
    first.dispose()

    second = Database(url)
    second.create_all()
    try:
        assert SQLSlotStorage(second).get("k") == "v"
    finally:
        second.dispose()
