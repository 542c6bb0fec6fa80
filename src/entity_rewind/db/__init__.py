"""Database connection and schema management."""

from entity_rewind.db.backend import Cursor, Database, Row
from entity_rewind.db.sqlite_backend import SQLiteBackend

__all__ = ["Cursor", "Database", "Row", "SQLiteBackend"]
