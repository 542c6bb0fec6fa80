"""SQLite implementation of the Database protocol.

Thin wrapper around an autocommit aiosqlite.Connection. Atomic blocks are
explicit ``BEGIN IMMEDIATE`` ... ``COMMIT`` transactions so the write lock is
held from the first read of the block.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from entity_rewind.errors import IntegrityViolation

if TYPE_CHECKING:
    import aiosqlite

    from entity_rewind.db.backend import Cursor, Row

logger = logging.getLogger(__name__)


class SQLiteCursor:
    """Wraps aiosqlite.Cursor to satisfy the Cursor protocol."""

    def __init__(self, cursor: aiosqlite.Cursor) -> None:
        """Initialize with an aiosqlite cursor."""
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        rc = self._cursor.rowcount
        return rc if rc is not None else -1

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        return await self._cursor.fetchone()

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        return list(await self._cursor.fetchall())


class SQLiteBackend:
    """SQLite implementation of the Database protocol.

    Transactions on one connection are serialized with an asyncio lock; a
    task that already owns the open transaction joins it instead of
    deadlocking on the lock.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        """Initialize with an aiosqlite connection opened in autocommit mode."""
        self._conn = conn
        self._tx_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task[Any] | None = None

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        try:
            cursor = await self._conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            raise IntegrityViolation(str(exc), {"sql": sql}) from exc
        return SQLiteCursor(cursor)

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        try:
            await self._conn.executemany(sql, params_seq)
        except sqlite3.IntegrityError as exc:
            raise IntegrityViolation(str(exc), {"sql": sql}) from exc

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (DDL, migrations)."""
        await self._conn.executescript(sql)

    @property
    def in_transaction(self) -> bool:
        """True while an atomic block is open on this connection."""
        return self._tx_owner is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed block in one IMMEDIATE transaction."""
        task = asyncio.current_task()
        if self._tx_owner is not None and self._tx_owner is task:
            yield
            return

        async with self._tx_lock:
            await self._conn.execute("BEGIN IMMEDIATE")
            self._tx_owner = task
            try:
                yield
                await self._conn.execute("COMMIT")
            except BaseException:
                logger.debug("Rolling back transaction")
                await self._conn.execute("ROLLBACK")
                raise
            finally:
                self._tx_owner = None

    async def commit(self) -> None:
        """Commit any pending implicit transaction."""
        await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        await self._conn.close()

    # -- Introspection --

    async def table_columns(self, table: str) -> list[str]:
        """Return the column names of a table ([] if it does not exist)."""
        cursor = await self._conn.execute(f'PRAGMA table_info("{table}")')
        return [row[1] for row in await cursor.fetchall()]

    # -- Schema --

    async def apply_schema(self, *, user_id_column: str = "user_id") -> None:
        """Apply the version-table DDL and migrations."""
        from entity_rewind.db.schema import apply_schema

        await apply_schema(self, user_id_column=user_id_column)
