"""Version history, rewind and fast-forward for SQLite-backed records."""

from entity_rewind.config import RewindSettings, TrackingPolicy, load_settings
from entity_rewind.errors import (
    HistoryGap,
    InvalidConfiguration,
    NotTrackable,
    RewindError,
    VersionConflict,
    VersionNotFound,
)
from entity_rewind.models.entity import TrackedEntity
from entity_rewind.models.version import VersionRecord
from entity_rewind.rewind.manager import RewindManager

__all__ = [
    "HistoryGap",
    "InvalidConfiguration",
    "NotTrackable",
    "RewindError",
    "RewindManager",
    "RewindSettings",
    "TrackedEntity",
    "TrackingPolicy",
    "VersionConflict",
    "VersionNotFound",
    "VersionRecord",
    "load_settings",
]
