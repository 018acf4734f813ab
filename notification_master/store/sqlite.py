"""
SQLite preference store.

One `preferences` row per key, written through aiosqlite. WAL mode lets the
CLI `status` command read while a polling session holds the database open.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

import aiosqlite

from notification_master.core.errors import StorageError
from notification_master.store.base import StorageProvider

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS preferences (
    name TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at REAL NOT NULL DEFAULT (unixepoch('now'))
)
"""

_UPSERT = """
INSERT INTO preferences (name, value, updated_at) VALUES (?, ?, unixepoch('now'))
ON CONFLICT(name) DO UPDATE SET value = excluded.value, updated_at = unixepoch('now')
"""


class SQLiteStorage(StorageProvider):
    """
    Usage:
        storage = SQLiteStorage("~/.notification_master/settings.db")
        await storage.initialize()
        await storage.put_many({"polling_url": b'"https://x/feed"', "polling_enabled": b"true"})
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        if self._db is not None:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(str(self._db_path))
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute(_SCHEMA)
            await db.commit()
        except (OSError, aiosqlite.Error) as e:
            raise StorageError(
                f"Cannot open preference store at {self._db_path}: {e}",
                {"path": str(self._db_path)},
            ) from e
        self._db = db
        logger.debug(f"Preference store opened at {self._db_path}")

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        assert self._db is not None
        return self._db

    async def get(self, key: str) -> bytes | None:
        db = await self._connection()
        try:
            async with db.execute(
                "SELECT value FROM preferences WHERE name = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Cannot read preference {key!r}: {e}") from e
        return bytes(row[0]) if row else None

    async def put_many(self, values: Mapping[str, bytes]) -> None:
        if not values:
            return
        db = await self._connection()
        try:
            await db.executemany(_UPSERT, list(values.items()))
            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            raise StorageError(f"Cannot write preferences {sorted(values)}: {e}") from e

    async def delete(self, key: str) -> bool:
        db = await self._connection()
        try:
            cursor = await db.execute("DELETE FROM preferences WHERE name = ?", (key,))
            await db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Cannot delete preference {key!r}: {e}") from e
        return cursor.rowcount > 0

    async def snapshot(self) -> dict[str, bytes]:
        db = await self._connection()
        try:
            async with db.execute(
                "SELECT name, value FROM preferences ORDER BY name"
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Cannot list preferences: {e}") from e
        return {name: bytes(value) for name, value in rows}

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
