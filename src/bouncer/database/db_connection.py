"""
The one SQLite connection behind every key/value store.

All stores share this connection, so a single ``transaction()`` can span
several tables: the verification ledger uses that to delete a pending record
and whitelist its user in one commit.

    manager = ConnectionManager()
    await manager.open(path)          # creates missing tables

    async with manager.transaction() as conn:
        await ledger_store.delete("user:1", conn=conn)
        await whitelist_store.put("1", {...}, conn=conn)

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from bouncer.database.db_schema import SchemaManager
from bouncer.util.logger import get_logger

logger = get_logger("database_connection")

# WAL lets the web server read the ledger file while the bot writes to it
_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA busy_timeout = 5000",
)


class ConnectionManager:
    """Owns the aiosqlite connection and serialises writers on it."""

    def __init__(self) -> None:
        self._conn: Optional[aiosqlite.Connection] = None
        self._writer = asyncio.Lock()

    async def open(self, path: Path) -> None:
        """Open ``path`` (creating its directory), apply pragmas and create the schema."""
        if self._conn is not None:
            raise RuntimeError("ConnectionManager is already open")

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        for pragma in _PRAGMAS:
            await conn.execute(pragma)
        await SchemaManager.initialize_schema(conn)

        self._conn = conn
        logger.info("[DB CONNECTION] Opened %s", path)

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await conn.close()
            logger.info("[DB CONNECTION] Closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("ConnectionManager is not open; call open(path) first")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Exclusive write scope.

        Everything executed on the yielded connection commits together on a
        clean exit and is rolled back when the block raises. Writers queue on
        a lock, so a read-modify-write inside the block sees no interleaving
        writes. The block must not open a second transaction.
        """
        conn = self.connection
        async with self._writer:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection
