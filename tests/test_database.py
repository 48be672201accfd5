from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import create_engine, inspect

from app.database import Database
from app.errors import SnapshotNotFound
from app.services.blob_store import SqlBlobStore


def test_create_all_creates_blob_table(tmp_path) -> None:
    """Table creation should provision the blob storage table."""

    database_path = tmp_path / "fresh.db"
    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        columns = {column["name"] for column in inspector.get_columns("blobs")}
    finally:
        inspector_engine.dispose()

    assert {"key", "payload", "size", "updated_at"} <= columns


def test_sql_blob_store_overwrites_and_reports_missing(tmp_path) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'blobs.db'}")
        await database.create_all()
        store = SqlBlobStore(database.session_factory)
        try:
            with pytest.raises(SnapshotNotFound):
                await store.get("latest.snapshot")

            await store.put("latest.snapshot", b"first")
            await store.put("latest.snapshot", b"second")

            assert await store.get("latest.snapshot") == b"second"
        finally:
            await database.dispose()

    asyncio.run(runner())
