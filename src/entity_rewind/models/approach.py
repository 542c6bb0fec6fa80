"""Navigation plan models."""

from enum import StrEnum

from pydantic import BaseModel

from entity_rewind.models.version import VersionRecord


class ApproachMethod(StrEnum):
    """How navigation reaches a target version."""

    NONE = "none"
    DIRECT = "direct"
    FROM_SNAPSHOT = "from_snapshot"


class Approach(BaseModel):
    """Cheapest plan between two versions. Performs no mutation."""

    method: ApproachMethod
    cost: int = 0
    snapshot: VersionRecord | None = None
