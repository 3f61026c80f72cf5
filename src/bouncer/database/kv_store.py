"""
Durable dictionary over one SQLite table.

Values are JSON-encoded, so anything ``json.dumps`` accepts can be stored.
Every method runs on its own unless it is handed ``conn``, the connection
yielded by :meth:`ConnectionManager.transaction`; the caller then owns the
commit, which lets writes to several stores land together.
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import aiosqlite

from bouncer.database.db_connection import ConnectionManager
from bouncer.database.db_schema import KV_TABLES
from bouncer.util.logger import get_logger

logger = get_logger("kv_store")


class KeyValueStore:
    """``get`` / ``put`` / ``delete`` over a single table."""

    def __init__(self, connection: ConnectionManager, table: str) -> None:
        if table not in KV_TABLES:
            raise ValueError(f"Unknown key/value table: {table}")
        self._connection = connection
        self.table = table

    def transaction(self):
        """Write scope on the connection shared by every store."""
        return self._connection.transaction()

    async def get(self, key: str, conn: Optional[aiosqlite.Connection] = None) -> Optional[Any]:
        """Return the decoded value for ``key`` or ``None``."""
        if conn is None:
            async with self._connection.read() as conn:
                return await self._select(conn, key)
        return await self._select(conn, key)

    async def put(self, key: str, value: Any, conn: Optional[aiosqlite.Connection] = None) -> None:
        """Insert or replace ``key``."""
        if conn is None:
            async with self._connection.transaction() as conn:
                await self._upsert(conn, key, value)
        else:
            await self._upsert(conn, key, value)
        logger.debug("[KV STORE] %s <- %s", self.table, key)

    async def delete(self, key: str, conn: Optional[aiosqlite.Connection] = None) -> bool:
        """Remove ``key``; return True if it existed."""
        if conn is None:
            async with self._connection.transaction() as conn:
                removed = await self._delete(conn, key)
        else:
            removed = await self._delete(conn, key)
        if removed:
            logger.debug("[KV STORE] %s -x %s", self.table, key)
        return removed

    async def contains(self, key: str) -> bool:
        async with self._connection.read() as conn:
            cursor = await conn.execute(f"SELECT 1 FROM {self.table} WHERE key = ? LIMIT 1", (key,))
            return await cursor.fetchone() is not None

    async def _select(self, conn: aiosqlite.Connection, key: str) -> Optional[Any]:
        cursor = await conn.execute(f"SELECT value FROM {self.table} WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return None if row is None else json.loads(row[0])

    async def _upsert(self, conn: aiosqlite.Connection, key: str, value: Any) -> None:
        await conn.execute(
            f"""
            INSERT INTO {self.table} (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), int(time.time())),
        )

    async def _delete(self, conn: aiosqlite.Connection, key: str) -> bool:
        cursor = await conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
        return cursor.rowcount > 0
