"""Query helpers for the rewind_versions table.

None of these commit: writes belong to the caller's transaction.
"""

import json
from datetime import UTC, datetime

from entity_rewind.db.backend import Database, Row
from entity_rewind.errors import IntegrityViolation, VersionConflict
from entity_rewind.models.version import VersionRecord

_SELECT_VERSIONS = "SELECT * FROM rewind_versions WHERE entity_type = ? AND entity_id = ?"


def row_to_version(row: Row, user_id_column: str = "user_id") -> VersionRecord:
    """Convert a database row to a VersionRecord."""
    col_names = row.keys()
    author = row[user_id_column] if user_id_column in col_names else None
    return VersionRecord(
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        version=row["version"],
        old_values=_load_values(row["old_values"]),
        new_values=_load_values(row["new_values"]),
        is_snapshot=bool(row["is_snapshot"]),
        author_id=str(author) if author is not None else None,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


async def insert_version(
    db: Database, record: VersionRecord, *, user_id_column: str = "user_id"
) -> None:
    """Insert a version record.

    Raises VersionConflict if the version number is already taken.
    """
    try:
        await db.execute(
            "INSERT INTO rewind_versions (entity_type, entity_id, version, old_values,"  # noqa: S608
            f' new_values, is_snapshot, "{user_id_column}", created_at)'
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.entity_type,
                record.entity_id,
                record.version,
                json.dumps(record.old_values),
                json.dumps(record.new_values),
                int(record.is_snapshot),
                record.author_id,
                record.created_at.isoformat() if record.created_at else _now_iso(),
            ),
        )
    except IntegrityViolation as exc:
        raise VersionConflict(
            f"Version {record.version} of {record.entity_type}:{record.entity_id}"
            " was written concurrently",
            {
                "entity_type": record.entity_type,
                "entity_id": record.entity_id,
                "version": record.version,
            },
        ) from exc


async def max_version(db: Database, entity_type: str, entity_id: str) -> int:
    """Highest recorded version for an entity, or 0 if it has no history."""
    cursor = await db.execute(
        "SELECT MAX(version) FROM rewind_versions WHERE entity_type = ? AND entity_id = ?",
        (entity_type, entity_id),
    )
    row = await cursor.fetchone()
    if row is None or row[0] is None:
        return 0
    return int(row[0])


async def get_versions(
    db: Database, entity_type: str, entity_id: str, *, user_id_column: str = "user_id"
) -> list[VersionRecord]:
    """All version records of an entity, ordered by version."""
    cursor = await db.execute(_SELECT_VERSIONS + " ORDER BY version", (entity_type, entity_id))
    rows = await cursor.fetchall()
    return [row_to_version(row, user_id_column) for row in rows]


async def get_version(
    db: Database,
    entity_type: str,
    entity_id: str,
    version: int,
    *,
    user_id_column: str = "user_id",
) -> VersionRecord | None:
    """A single version record, or None."""
    cursor = await db.execute(
        _SELECT_VERSIONS + " AND version = ?", (entity_type, entity_id, version)
    )
    row = await cursor.fetchone()
    return row_to_version(row, user_id_column) if row else None


def _load_values(raw: str | None) -> dict[str, object]:
    """Parse a stored JSON attribute map. NULL is an empty map."""
    if not raw:
        return {}
    return json.loads(raw)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
