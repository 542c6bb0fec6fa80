"""Environment-variable-based configuration and tracking policies."""

import json
import os
import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from entity_rewind.errors import InvalidConfiguration, NotTrackable

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Columns of rewind_versions that the user column must not shadow
_RESERVED_VERSION_COLUMNS = frozenset(
    {"id", "entity_type", "entity_id", "version", "old_values", "new_values",
     "is_snapshot", "created_at"}
)


def get_db_path() -> Path:
    """Return the database file path from REWIND_DB_PATH."""
    raw = os.environ.get("REWIND_DB_PATH", "~/.local/share/entity_rewind/rewind.db")
    return Path(raw).expanduser()


def get_entities_path() -> Path | None:
    """Return the tracking policy file from REWIND_ENTITIES, if set."""
    raw = os.environ.get("REWIND_ENTITIES", "")
    return Path(raw).expanduser() if raw else None


def tracks_all_by_default() -> bool:
    """Return True if REWIND_TRACK_ALL_BY_DEFAULT is set to TRUE."""
    return os.environ.get("REWIND_TRACK_ALL_BY_DEFAULT", "").upper() == "TRUE"


def is_user_tracking() -> bool:
    """Return True if REWIND_TRACK_USER is set to TRUE."""
    return os.environ.get("REWIND_TRACK_USER", "").upper() == "TRUE"


def get_user_id_column() -> str:
    """Return the acting-user column name from REWIND_USER_ID_COLUMN."""
    return os.environ.get("REWIND_USER_ID_COLUMN", "user_id")


def get_snapshot_interval() -> int:
    """Return the snapshot interval from REWIND_SNAPSHOT_INTERVAL (0 disables)."""
    return int(os.environ.get("REWIND_SNAPSHOT_INTERVAL", "0"))


def get_gap_policy() -> str:
    """Return the missing-diff policy from REWIND_GAP_POLICY."""
    return os.environ.get("REWIND_GAP_POLICY", "warn").lower()


def get_log_level() -> str:
    """Return the logging level from REWIND_LOG_LEVEL."""
    return os.environ.get("REWIND_LOG_LEVEL", "WARNING").upper()


class GapPolicy(StrEnum):
    """What a diff walk does when an intermediate version is missing."""

    WARN = "warn"
    STRICT = "strict"


def _check_identifier(value: str) -> str:
    if not IDENTIFIER_RE.match(value):
        raise ValueError(f"{value!r} is not a valid SQL identifier")
    return value


class TrackingPolicy(BaseModel):
    """Which attributes of one entity type are versioned, and where it lives."""

    entity_type: str = Field(min_length=1)
    table: str
    primary_key: str = "id"
    attributes: list[str] | None = None
    track_all: bool = False

    @field_validator("table", "primary_key")
    @classmethod
    def _identifier(cls, value: str) -> str:
        return _check_identifier(value)

    @field_validator("attributes")
    @classmethod
    def _attribute_identifiers(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        for name in value:
            _check_identifier(name)
        if len(set(value)) != len(value):
            raise ValueError("tracked attributes must be unique")
        return value


class RewindSettings(BaseModel):
    """Resolved configuration passed to the store, capture and navigation."""

    entities: list[TrackingPolicy] = Field(default_factory=list)
    tracks_all_by_default: bool = False
    track_user: bool = False
    user_id_column: str = "user_id"
    snapshot_interval: int = Field(default=0, ge=0)
    gap_policy: GapPolicy = GapPolicy.WARN

    @field_validator("user_id_column")
    @classmethod
    def _user_column(cls, value: str) -> str:
        _check_identifier(value)
        if value in _RESERVED_VERSION_COLUMNS:
            raise ValueError(f"user_id_column {value!r} collides with a version column")
        return value

    @model_validator(mode="after")
    def _unique_entity_types(self) -> "RewindSettings":
        names = [policy.entity_type for policy in self.entities]
        if len(set(names)) != len(names):
            raise ValueError("entity types must be registered once")
        return self

    def is_tracked(self, entity_type: str) -> bool:
        """Return True if the entity type has a tracking policy."""
        return any(policy.entity_type == entity_type for policy in self.entities)

    def policy_for(self, entity_type: str) -> TrackingPolicy:
        """Return the tracking policy for an entity type."""
        for policy in self.entities:
            if policy.entity_type == entity_type:
                return policy
        raise NotTrackable(
            f"Entity type '{entity_type}' is not tracked",
            {"entity_type": entity_type},
        )


def load_settings(entities: list[dict[str, object]] | None = None) -> RewindSettings:
    """Build settings from the environment.

    Tracking policies come from ``entities`` when given, otherwise from the
    JSON file named by REWIND_ENTITIES (a list of policy objects).
    """
    if entities is None:
        entities = _read_entities_file(get_entities_path())
    try:
        return RewindSettings(
            entities=entities,
            tracks_all_by_default=tracks_all_by_default(),
            track_user=is_user_tracking(),
            user_id_column=get_user_id_column(),
            snapshot_interval=get_snapshot_interval(),
            gap_policy=get_gap_policy(),
        )
    except (ValidationError, ValueError) as exc:
        raise InvalidConfiguration(f"Invalid rewind configuration: {exc}") from exc


def _read_entities_file(path: Path | None) -> list[dict[str, object]]:
    if path is None:
        return []
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidConfiguration(
            f"Cannot read tracking policies from {path}: {exc}", {"path": str(path)}
        ) from exc
    if not isinstance(data, list):
        raise InvalidConfiguration(
            "Tracking policy file must contain a JSON list", {"path": str(path)}
        )
    return data
