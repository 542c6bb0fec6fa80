"""Apply Version Records to in-memory entities. Never persists."""

import logging
from collections.abc import Mapping

from entity_rewind.config import GapPolicy
from entity_rewind.errors import HistoryGap
from entity_rewind.models.entity import TrackedEntity
from entity_rewind.models.version import VersionRecord

logger = logging.getLogger(__name__)


class DiffApplier:
    """Forward, reverse and snapshot application of Version Records."""

    def __init__(self, gap_policy: GapPolicy = GapPolicy.WARN) -> None:
        """Initialize with the policy for missing intermediate versions."""
        self.gap_policy = gap_policy

    def apply_forward(self, entity: TrackedEntity, record: VersionRecord) -> None:
        """Replay a version: set every attribute in new_values."""
        for name, value in record.new_values.items():
            entity.set_attribute(name, value)

    def apply_reverse(self, entity: TrackedEntity, record: VersionRecord) -> None:
        """Undo a version: set every attribute in old_values."""
        for name, value in record.old_values.items():
            entity.set_attribute(name, value)

    def apply_snapshot(self, entity: TrackedEntity, record: VersionRecord) -> None:
        """Overwrite the tracked attributes with a snapshot's full state."""
        if not record.is_snapshot:
            raise ValueError(f"Version {record.version} is not a snapshot")
        self.apply_forward(entity, record)

    def walk(
        self,
        entity: TrackedEntity,
        records: Mapping[int, VersionRecord],
        from_version: int,
        to_version: int,
    ) -> list[int]:
        """Move an entity from one version to another one diff at a time.

        Going down reverses ``from, from-1, ..., to+1``; going up replays
        ``from+1, ..., to``. Returns the versions that had no record.
        """
        if from_version > to_version:
            steps = range(from_version, to_version, -1)
            apply = self.apply_reverse
        else:
            steps = range(from_version + 1, to_version + 1)
            apply = self.apply_forward

        missing: list[int] = []
        for version in steps:
            record = records.get(version)
            if record is None:
                missing.append(version)
                continue
            apply(entity, record)

        if missing:
            self._report_gap(entity, missing, from_version, to_version)
        return missing

    def _report_gap(
        self, entity: TrackedEntity, missing: list[int], from_version: int, to_version: int
    ) -> None:
        details = {
            "entity_type": entity.entity_type,
            "entity_id": entity.entity_id,
            "missing": missing,
            "from_version": from_version,
            "to_version": to_version,
        }
        if self.gap_policy is GapPolicy.STRICT:
            raise HistoryGap(
                f"Missing versions {missing} between v{from_version} and v{to_version}",
                details,
            )
        logger.warning(
            "Skipped missing versions %s of %s:%s walking v%d -> v%d; state may be inexact",
            missing,
            entity.entity_type,
            entity.entity_id,
            from_version,
            to_version,
        )
