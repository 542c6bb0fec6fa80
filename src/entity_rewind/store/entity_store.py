"""Row persistence for tracked entities, with post-write listeners."""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from uuid import uuid4

from entity_rewind.config import IDENTIFIER_RE, RewindSettings, TrackingPolicy
from entity_rewind.db.backend import Database
from entity_rewind.errors import InvalidConfiguration
from entity_rewind.models.entity import ChangeKind, EntityChange, TrackedEntity

logger = logging.getLogger(__name__)

CURRENT_VERSION_COLUMN = "current_version"

Listener = Callable[[TrackedEntity, EntityChange], Awaitable[object]]


class EntityStore:
    """CRUD for rows of registered host tables.

    Every write runs in one transaction. Listeners (the capture hook) run
    after the row write and inside the same transaction, unless the caller
    passes ``capture=False``.
    """

    def __init__(self, db: Database, settings: RewindSettings) -> None:
        """Initialize with a database connection and resolved settings."""
        self._db = db
        self._settings = settings
        self._listeners: list[Listener] = []
        self._columns: dict[str, list[str]] = {}

    def add_listener(self, listener: Listener) -> None:
        """Register a coroutine called after each committed-to-be write."""
        self._listeners.append(listener)

    # -- Introspection --

    async def verify(self, entity_type: str) -> TrackingPolicy:
        """Check that an entity type's host table matches its policy."""
        policy = self._settings.policy_for(entity_type)
        columns = await self._table_columns(policy)
        if not columns:
            raise InvalidConfiguration(
                f"Table '{policy.table}' for '{entity_type}' does not exist",
                {"entity_type": entity_type, "table": policy.table},
            )
        if policy.primary_key not in columns:
            raise InvalidConfiguration(
                f"Table '{policy.table}' has no primary key column '{policy.primary_key}'",
                {"entity_type": entity_type, "table": policy.table},
            )
        explicit = policy.attributes or []
        reserved = {policy.primary_key, CURRENT_VERSION_COLUMN}
        if reserved & set(explicit):
            raise InvalidConfiguration(
                f"'{entity_type}' cannot track {sorted(reserved & set(explicit))}",
                {"entity_type": entity_type},
            )
        missing = [name for name in explicit if name not in columns]
        if missing:
            raise InvalidConfiguration(
                f"Table '{policy.table}' is missing tracked columns: {', '.join(missing)}",
                {"entity_type": entity_type, "missing": missing},
            )
        return policy

    async def verify_all(self) -> None:
        """Verify every registered entity type."""
        for policy in self._settings.entities:
            await self.verify(policy.entity_type)
            logger.info("Tracking %s (table %s)", policy.entity_type, policy.table)

    async def attribute_columns(self, entity_type: str) -> list[str]:
        """Columns holding entity attributes (primary key and pointer excluded)."""
        policy = self._settings.policy_for(entity_type)
        return [
            name
            for name in await self._table_columns(policy)
            if name not in (policy.primary_key, CURRENT_VERSION_COLUMN)
        ]

    async def has_current_version_column(self, entity_type: str) -> bool:
        """Whether the host table carries a current_version pointer."""
        policy = self._settings.policy_for(entity_type)
        return CURRENT_VERSION_COLUMN in await self._table_columns(policy)

    # -- Reads --

    async def get(self, entity_type: str, entity_id: str) -> TrackedEntity | None:
        """Load one entity by primary key."""
        policy = self._settings.policy_for(entity_type)
        cursor = await self._db.execute(
            f'SELECT * FROM "{policy.table}" WHERE "{policy.primary_key}" = ?',  # noqa: S608
            (entity_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        values = {name: row[name] for name in row.keys()}
        values.pop(policy.primary_key, None)
        pointer = values.pop(CURRENT_VERSION_COLUMN, None)
        return TrackedEntity(
            entity_type=entity_type,
            entity_id=str(entity_id),
            attributes=values,
            original=dict(values),
            current_version=pointer,
            exists=True,
        )

    # -- Writes --

    async def create(
        self,
        entity_type: str,
        attributes: Mapping[str, Any],
        *,
        entity_id: str | None = None,
        capture: bool = True,
    ) -> TrackedEntity:
        """Insert a new entity and return it."""
        entity = TrackedEntity(
            entity_type=entity_type,
            entity_id=entity_id or uuid4().hex,
            attributes=dict(attributes),
        )
        await self.save(entity, capture=capture)
        logger.info("Created %s:%s", entity_type, entity.entity_id)
        return entity

    async def save(self, entity: TrackedEntity, *, capture: bool = True) -> EntityChange:
        """Persist an entity: insert if new (or deleted), else update dirty columns."""
        policy = self._settings.policy_for(entity.entity_type)
        await self._check_attributes(policy, entity.attributes)

        existed = entity.exists
        try:
            async with self._db.transaction():
                if existed:
                    dirty = entity.dirty()
                    if dirty:
                        await self._update(policy, entity.entity_id, dirty)
                    kind = ChangeKind.UPDATED
                else:
                    dirty = dict(entity.attributes)
                    await self._insert(policy, entity.entity_id, entity.attributes)
                    # Listeners see the row as persisted so the pointer lands on it
                    entity.exists = True
                    kind = ChangeKind.CREATED

                change = EntityChange(
                    kind=kind,
                    entity_type=entity.entity_type,
                    entity_id=entity.entity_id,
                    original=dict(entity.original),
                    current=dict(entity.attributes),
                    dirty=set(dirty),
                )
                if capture:
                    await self._notify(entity, change)
        except BaseException:
            entity.exists = existed
            raise

        entity.sync_original()
        return change

    async def delete(self, entity: TrackedEntity, *, capture: bool = True) -> EntityChange:
        """Delete an entity's row."""
        policy = self._settings.policy_for(entity.entity_type)

        async with self._db.transaction():
            cursor = await self._db.execute(
                f'DELETE FROM "{policy.table}" WHERE "{policy.primary_key}" = ?',  # noqa: S608
                (entity.entity_id,),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"{entity.entity_type}:{entity.entity_id} not found")

            change = EntityChange(
                kind=ChangeKind.DELETED,
                entity_type=entity.entity_type,
                entity_id=entity.entity_id,
                original=dict(entity.original),
                current=dict(entity.attributes),
            )
            if capture:
                await self._notify(entity, change)

        entity.exists = False
        logger.info("Deleted %s:%s", entity.entity_type, entity.entity_id)
        return change

    async def set_current_version(self, entity: TrackedEntity, version: int) -> None:
        """Write only the pointer column. Never notifies listeners."""
        entity.current_version = version
        if not entity.exists or not await self.has_current_version_column(entity.entity_type):
            return
        policy = self._settings.policy_for(entity.entity_type)
        await self._db.execute(
            f'UPDATE "{policy.table}" SET "{CURRENT_VERSION_COLUMN}" = ?'  # noqa: S608
            f' WHERE "{policy.primary_key}" = ?',
            (version, entity.entity_id),
        )

    # -- Internals --

    async def _table_columns(self, policy: TrackingPolicy) -> list[str]:
        if policy.table not in self._columns:
            columns = await self._db.table_columns(policy.table)
            if not columns:
                return []
            self._columns[policy.table] = columns
        return self._columns[policy.table]

    async def _check_attributes(self, policy: TrackingPolicy, attributes: Mapping[str, Any]) -> None:
        columns = set(await self.attribute_columns(policy.entity_type))
        unknown = [
            name for name in attributes if name not in columns or not IDENTIFIER_RE.match(name)
        ]
        if unknown:
            raise InvalidConfiguration(
                f"Table '{policy.table}' has no columns: {', '.join(unknown)}",
                {"entity_type": policy.entity_type, "unknown": unknown},
            )

    async def _insert(
        self, policy: TrackingPolicy, entity_id: str, attributes: Mapping[str, Any]
    ) -> None:
        names = [policy.primary_key, *attributes]
        column_sql = ", ".join(f'"{name}"' for name in names)
        placeholders = ", ".join("?" for _ in names)
        await self._db.execute(
            f'INSERT INTO "{policy.table}" ({column_sql}) VALUES ({placeholders})',  # noqa: S608
            [entity_id, *attributes.values()],
        )

    async def _update(
        self, policy: TrackingPolicy, entity_id: str, values: Mapping[str, Any]
    ) -> None:
        assignments = ", ".join(f'"{name}" = ?' for name in values)
        cursor = await self._db.execute(
            f'UPDATE "{policy.table}" SET {assignments}'  # noqa: S608
            f' WHERE "{policy.primary_key}" = ?',
            [*values.values(), entity_id],
        )
        if cursor.rowcount == 0:
            raise ValueError(f"{policy.entity_type}:{entity_id} not found")

    async def _notify(self, entity: TrackedEntity, change: EntityChange) -> None:
        for listener in self._listeners:
            await listener(entity, change)
