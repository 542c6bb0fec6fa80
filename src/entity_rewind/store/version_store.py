"""Version history operations."""

from entity_rewind.db.backend import Database
from entity_rewind.db.queries import get_version, get_versions, max_version
from entity_rewind.models.version import VersionRecord


class VersionStore:
    """Read access to the per-entity audit log."""

    def __init__(self, db: Database, *, user_id_column: str = "user_id"):
        """Initialize with a database connection."""
        self.db = db
        self.user_id_column = user_id_column

    async def get_versions(self, entity_type: str, entity_id: str) -> list[VersionRecord]:
        """Get all versions of an entity, ordered by version number."""
        return await get_versions(
            self.db, entity_type, entity_id, user_id_column=self.user_id_column
        )

    async def get_version(
        self, entity_type: str, entity_id: str, version: int
    ) -> VersionRecord | None:
        """Get one version of an entity."""
        return await get_version(
            self.db, entity_type, entity_id, version, user_id_column=self.user_id_column
        )

    async def get_latest_version(self, entity_type: str, entity_id: str) -> VersionRecord | None:
        """Get the latest version of an entity."""
        latest = await max_version(self.db, entity_type, entity_id)
        if latest == 0:
            return None
        return await self.get_version(entity_type, entity_id, latest)

    async def max_version(self, entity_type: str, entity_id: str) -> int:
        """Highest recorded version number, 0 when there is no history."""
        return await max_version(self.db, entity_type, entity_id)
