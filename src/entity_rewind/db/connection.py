"""Database connection management."""

import logging
from pathlib import Path

import aiosqlite

from entity_rewind.config import get_db_path
from entity_rewind.db.backend import Database
from entity_rewind.db.sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)


async def create_connection(
    db_path: Path | str | None = None, *, user_id_column: str = "user_id"
) -> Database:
    """Create and initialize a database connection.

    For in-memory databases, pass ":memory:". Defaults to REWIND_DB_PATH.
    """
    db_path = str(db_path or get_db_path())

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # Autocommit: transactions are opened explicitly by SQLiteBackend.transaction()
    conn = await aiosqlite.connect(db_path, isolation_level=None)
    conn.row_factory = aiosqlite.Row

    # Enable WAL mode for better concurrent read performance
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")

    db = SQLiteBackend(conn)
    await db.apply_schema(user_id_column=user_id_column)
    logger.debug("Database ready at %s", db_path)

    return db
