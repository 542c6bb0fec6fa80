"""Version Record model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VersionRecord(BaseModel):
    """One immutable unit of history for a tracked entity.

    ``new_values`` replays the version forward; ``old_values`` reverses it.
    Snapshot records carry the complete tracked attribute set in
    ``new_values``.
    """

    model_config = ConfigDict(frozen=True)

    entity_type: str
    entity_id: str
    version: int = Field(ge=1)
    old_values: dict[str, Any] = Field(default_factory=dict)
    new_values: dict[str, Any] = Field(default_factory=dict)
    is_snapshot: bool = False
    author_id: str | None = None
    created_at: datetime | None = None
