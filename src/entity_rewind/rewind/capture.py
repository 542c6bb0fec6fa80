"""Turn committed entity writes into Version Records."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from entity_rewind.config import RewindSettings
from entity_rewind.db.backend import Database
from entity_rewind.db.queries import insert_version
from entity_rewind.models.entity import ChangeKind, EntityChange, TrackedEntity
from entity_rewind.models.version import VersionRecord
from entity_rewind.rewind.applier import DiffApplier
from entity_rewind.store.entity_store import EntityStore
from entity_rewind.store.version_store import VersionStore

logger = logging.getLogger(__name__)

UserResolver = Callable[[], object | None]


class DiffCapture:
    """Post-write hook that appends one Version Record per tracked change."""

    def __init__(
        self,
        db: Database,
        store: EntityStore,
        versions: VersionStore,
        settings: RewindSettings,
        user_resolver: UserResolver | None = None,
        applier: DiffApplier | None = None,
    ) -> None:
        """Initialize with storage, settings and an optional acting-user lookup."""
        self._db = db
        self._store = store
        self._versions = versions
        self._settings = settings
        self._user_resolver = user_resolver
        self._applier = applier or DiffApplier(settings.gap_policy)
        self._suppressed: set[tuple[str, str]] = set()

    async def __call__(self, entity: TrackedEntity, change: EntityChange) -> None:
        """EntityStore listener entry point."""
        await self.record_version(entity, change)

    @asynccontextmanager
    async def suppressed(self, entity: TrackedEntity) -> AsyncIterator[None]:
        """Disable capture for one entity while the block runs."""
        key = (entity.entity_type, entity.entity_id)
        owner = key not in self._suppressed
        self._suppressed.add(key)
        try:
            yield
        finally:
            if owner:
                self._suppressed.discard(key)

    def is_suppressed(self, entity: TrackedEntity) -> bool:
        """Whether capture is currently disabled for this entity."""
        return (entity.entity_type, entity.entity_id) in self._suppressed

    async def tracked_attributes(self, entity_type: str) -> list[str]:
        """Resolve the attributes recorded for an entity type."""
        policy = self._settings.policy_for(entity_type)
        if policy.track_all:
            return await self._store.attribute_columns(entity_type)
        if policy.attributes is None and self._settings.tracks_all_by_default:
            return await self._store.attribute_columns(entity_type)
        if policy.attributes is not None:
            return list(policy.attributes)
        return []

    async def record_version(
        self, entity: TrackedEntity, change: EntityChange, *, snapshot: bool = False
    ) -> VersionRecord | None:
        """Write the next Version Record for a change.

        Returns None when capture is suppressed or no tracked attribute
        changed. ``snapshot=True`` forces a full-state record even when
        nothing changed.
        """
        if self.is_suppressed(entity):
            return None

        tracked = await self.tracked_attributes(change.entity_type)
        whole = change.kind in (ChangeKind.CREATED, ChangeKind.DELETED)

        old_values: dict[str, object] = {}
        new_values: dict[str, object] = {}
        for name in tracked:
            if whole or name in change.dirty:
                old_values[name] = change.original.get(name)
                if change.kind is not ChangeKind.DELETED:
                    new_values[name] = change.current.get(name)

        if not old_values and not new_values and not (snapshot and tracked):
            return None

        async with self._db.transaction():
            latest = await self._versions.max_version(change.entity_type, change.entity_id)
            next_version = latest + 1

            behind = entity.current_version is not None and entity.current_version < latest
            if behind:
                logger.warning(
                    "%s:%s written at v%d behind head v%d; recording v%d as a snapshot",
                    change.entity_type,
                    change.entity_id,
                    entity.current_version,
                    latest,
                    next_version,
                )
                # Reversing this version must land on the head, not the stale state
                head = await self._head_state(
                    change.entity_type, change.entity_id, tracked, latest
                )
                old_values = {name: head.get(name) for name in tracked}

            is_snapshot = change.kind is not ChangeKind.DELETED and (
                snapshot or behind or self._on_interval(next_version)
            )
            if is_snapshot:
                new_values = {name: change.current.get(name) for name in tracked}

            record = VersionRecord(
                entity_type=change.entity_type,
                entity_id=change.entity_id,
                version=next_version,
                old_values=old_values,
                new_values=new_values,
                is_snapshot=is_snapshot,
                author_id=self._author(),
                created_at=datetime.now(UTC),
            )
            await insert_version(self._db, record, user_id_column=self._settings.user_id_column)

            # Pointer write bypasses listeners, so it cannot re-enter capture
            await self._store.set_current_version(entity, next_version)

        logger.debug(
            "Recorded %s:%s v%d (%s, %d attrs%s)",
            record.entity_type,
            record.entity_id,
            record.version,
            change.kind.value,
            len(record.new_values) or len(record.old_values),
            ", snapshot" if record.is_snapshot else "",
        )
        return record

    async def _head_state(
        self, entity_type: str, entity_id: str, tracked: list[str], latest: int
    ) -> dict[str, object]:
        """Replay recorded history up to ``latest`` on a scratch entity."""
        records = {
            record.version: record
            for record in await self._versions.get_versions(entity_type, entity_id)
        }
        scratch = TrackedEntity(
            entity_type=entity_type,
            entity_id=entity_id,
            attributes={name: None for name in tracked},
        )
        start = max(
            (v for v, record in records.items() if record.is_snapshot and v <= latest),
            default=0,
        )
        if start:
            self._applier.apply_snapshot(scratch, records[start])
        self._applier.walk(scratch, records, start, latest)
        return scratch.attributes

    def _on_interval(self, version: int) -> bool:
        interval = self._settings.snapshot_interval
        return interval > 0 and version % interval == 0

    def _author(self) -> str | None:
        if not self._settings.track_user or self._user_resolver is None:
            return None
        author = self._user_resolver()
        return str(author) if author is not None else None
