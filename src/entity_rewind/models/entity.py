"""Tracked entity and change-event models."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ChangeKind(StrEnum):
    """Kind of committed write reported to the capture hook."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class TrackedEntity(BaseModel):
    """In-memory view of one row of a registered host table."""

    entity_type: str
    entity_id: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    original: dict[str, Any] = Field(default_factory=dict)
    current_version: int | None = None
    exists: bool = False

    def get_attribute(self, name: str) -> Any:
        """Return the current value of an attribute (None if unset)."""
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: Any) -> None:
        """Set an attribute in memory. Persisting is the store's job."""
        self.attributes[name] = value

    def dirty(self) -> dict[str, Any]:
        """Attributes whose current value differs from the persisted one."""
        return {
            name: value
            for name, value in self.attributes.items()
            if name not in self.original or self.original[name] != value
        }

    def sync_original(self) -> None:
        """Mark the current attribute values as persisted."""
        self.original = dict(self.attributes)


class EntityChange(BaseModel):
    """A committed create/update/delete, as seen by post-write listeners."""

    kind: ChangeKind
    entity_type: str
    entity_id: str
    original: dict[str, Any] = Field(default_factory=dict)
    current: dict[str, Any] = Field(default_factory=dict)
    dirty: set[str] = Field(default_factory=set)
