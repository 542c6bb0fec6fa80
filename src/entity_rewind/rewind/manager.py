"""Move tracked entities between recorded versions."""

import logging

from entity_rewind.config import RewindSettings
from entity_rewind.db.backend import Database
from entity_rewind.errors import NotTrackable, VersionNotFound
from entity_rewind.models.approach import Approach, ApproachMethod
from entity_rewind.models.entity import ChangeKind, EntityChange, TrackedEntity
from entity_rewind.models.version import VersionRecord
from entity_rewind.rewind.applier import DiffApplier
from entity_rewind.rewind.approach import ApproachEngine
from entity_rewind.rewind.capture import DiffCapture, UserResolver
from entity_rewind.store.entity_store import EntityStore
from entity_rewind.store.version_store import VersionStore

logger = logging.getLogger(__name__)


class RewindManager:
    """Navigation engine: rewind, fast-forward and jump to any version.

    Wires the entity store to the diff capture hook, so every tracked write
    made through ``manager.store`` is versioned.
    """

    def __init__(
        self,
        db: Database,
        settings: RewindSettings,
        *,
        user_resolver: UserResolver | None = None,
    ) -> None:
        """Initialize storage, capture, planning and application."""
        self.db = db
        self.settings = settings
        self.store = EntityStore(db, settings)
        self.version_store = VersionStore(db, user_id_column=settings.user_id_column)
        self.applier = DiffApplier(settings.gap_policy)
        self.capture = DiffCapture(
            db, self.store, self.version_store, settings, user_resolver, applier=self.applier
        )
        self.approach_engine = ApproachEngine()
        self.store.add_listener(self.capture)

    async def rewind(self, entity: TrackedEntity, steps: int = 1) -> Approach:
        """Move back by ``steps`` versions."""
        self._assert_trackable(entity)
        target = await self.current_version(entity) - steps
        return await self.go_to(entity, target)

    async def fast_forward(self, entity: TrackedEntity, steps: int = 1) -> Approach:
        """Move forward by ``steps`` versions."""
        self._assert_trackable(entity)
        target = await self.current_version(entity) + steps
        return await self.go_to(entity, target)

    async def go_to(self, entity: TrackedEntity, target_version: int) -> Approach:
        """Jump to a recorded version (or 0, the pre-history state).

        Everything happens in one transaction with capture suppressed, so a
        failure leaves both the row and the pointer untouched and navigation
        never writes history.
        """
        self._assert_trackable(entity)
        saved = (
            dict(entity.attributes),
            dict(entity.original),
            entity.current_version,
            entity.exists,
        )

        try:
            async with self.db.transaction(), self.capture.suppressed(entity):
                records = await self.versions(entity)
                by_version = {record.version: record for record in records}
                if target_version != 0 and target_version not in by_version:
                    raise VersionNotFound(
                        f"Version {target_version} of {entity.entity_type}:{entity.entity_id}"
                        " does not exist",
                        {
                            "entity_type": entity.entity_type,
                            "entity_id": entity.entity_id,
                            "version": target_version,
                        },
                    )

                current = await self.current_version(entity)
                approach = self.approach_engine.run(current, target_version, records)
                if approach.method is ApproachMethod.NONE:
                    return approach

                start = current
                if approach.method is ApproachMethod.FROM_SNAPSHOT and approach.snapshot:
                    self.applier.apply_snapshot(entity, approach.snapshot)
                    start = approach.snapshot.version
                self.applier.walk(entity, by_version, start, target_version)

                await self.store.save(entity, capture=False)
                await self.store.set_current_version(entity, target_version)
        except BaseException:
            entity.attributes, entity.original, entity.current_version, entity.exists = saved
            raise

        logger.info(
            "Moved %s:%s v%d -> v%d via %s",
            entity.entity_type,
            entity.entity_id,
            current,
            target_version,
            approach.method.value,
        )
        return approach

    async def current_version(self, entity: TrackedEntity) -> int:
        """Version the entity's attributes represent.

        The pointer column when the host table has one, otherwise the highest
        recorded version, otherwise 0.
        """
        self._assert_trackable(entity)
        if await self.store.has_current_version_column(entity.entity_type):
            return entity.current_version or 0
        return await self.version_store.max_version(entity.entity_type, entity.entity_id)

    async def versions(self, entity: TrackedEntity) -> list[VersionRecord]:
        """The entity's audit log, ordered by version."""
        self._assert_trackable(entity)
        return await self.version_store.get_versions(entity.entity_type, entity.entity_id)

    async def record_version(
        self, entity: TrackedEntity, change: EntityChange
    ) -> VersionRecord | None:
        """Record a change reported by a host that bypasses ``self.store``."""
        self._assert_trackable(entity)
        return await self.capture.record_version(entity, change)

    async def snapshot(self, entity: TrackedEntity) -> VersionRecord | None:
        """Record the entity's persisted state as a new snapshot version."""
        self._assert_trackable(entity)
        if not entity.exists:
            raise NotTrackable(
                f"{entity.entity_type}:{entity.entity_id} is not persisted",
                {"entity_type": entity.entity_type, "entity_id": entity.entity_id},
            )
        change = EntityChange(
            kind=ChangeKind.UPDATED,
            entity_type=entity.entity_type,
            entity_id=entity.entity_id,
            original=dict(entity.original),
            current=dict(entity.original),
        )
        return await self.capture.record_version(entity, change, snapshot=True)

    def _assert_trackable(self, entity: object) -> None:
        if not isinstance(entity, TrackedEntity):
            raise NotTrackable(f"{type(entity).__name__} cannot be versioned")
        if not self.settings.is_tracked(entity.entity_type):
            raise NotTrackable(
                f"Entity type '{entity.entity_type}' is not tracked",
                {"entity_type": entity.entity_type},
            )
