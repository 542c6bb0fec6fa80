"""DDL and migrations for the version history database."""

from entity_rewind.db.backend import Database

SCHEMA_VERSION = 1


def _schema_sql(user_id_column: str) -> str:
    return f"""
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS rewind_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    version INTEGER NOT NULL CHECK (version > 0),
    old_values TEXT,
    new_values TEXT,
    is_snapshot INTEGER NOT NULL DEFAULT 0,
    "{user_id_column}" TEXT,
    created_at TEXT NOT NULL,
    UNIQUE(entity_type, entity_id, version)
);

CREATE INDEX IF NOT EXISTS idx_versions_entity ON rewind_versions(entity_type, entity_id);
CREATE INDEX IF NOT EXISTS idx_versions_snapshot
    ON rewind_versions(entity_type, entity_id, is_snapshot);
"""


async def apply_schema(db: Database, *, user_id_column: str = "user_id") -> None:
    """Apply the database schema.

    ``user_id_column`` must already be a validated identifier.
    """
    await db.executescript(_schema_sql(user_id_column))

    # Check schema version
    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    if row is None:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    # Migration: the user column may have been renamed in configuration
    await _migrate_add_user_column(db, user_id_column)

    await db.commit()


async def _migrate_add_user_column(db: Database, user_id_column: str) -> None:
    """Add the configured user column to rewind_versions if it doesn't exist."""
    columns = set(await db.table_columns("rewind_versions"))
    if user_id_column not in columns:
        await db.execute(f'ALTER TABLE rewind_versions ADD COLUMN "{user_id_column}" TEXT')
