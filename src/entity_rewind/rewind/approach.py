"""Pick the cheapest way to move between two versions."""

import logging
from collections.abc import Iterable

from entity_rewind.models.approach import Approach, ApproachMethod
from entity_rewind.models.version import VersionRecord

logger = logging.getLogger(__name__)


class ApproachEngine:
    """Cost-based choice between a direct diff walk and a snapshot jump.

    Cost counts record applications: a direct walk costs ``|T - C|``, a jump
    through snapshot ``S`` costs ``1 + |T - S|``. A snapshot wins only when
    strictly cheaper than the direct walk.
    """

    def run(
        self, current_version: int, target_version: int, versions: Iterable[VersionRecord]
    ) -> Approach:
        """Plan the move from ``current_version`` to ``target_version``."""
        if current_version == target_version:
            return Approach(method=ApproachMethod.NONE)

        direct_cost = abs(target_version - current_version)
        low = min(current_version, target_version)
        high = max(current_version, target_version)

        best: tuple[int, bool, int] | None = None
        best_snapshot: VersionRecord | None = None
        for record in versions:
            if not record.is_snapshot:
                continue
            cost = 1 + abs(target_version - record.version)
            if cost >= direct_cost:
                continue
            # Equal cost: prefer a snapshot inside [low, high], then the lower version
            key = (cost, not (low <= record.version <= high), record.version)
            if best is None or key < best:
                best = key
                best_snapshot = record

        if best is None or best_snapshot is None:
            approach = Approach(method=ApproachMethod.DIRECT, cost=direct_cost)
        else:
            approach = Approach(
                method=ApproachMethod.FROM_SNAPSHOT, cost=best[0], snapshot=best_snapshot
            )

        logger.debug(
            "Plan v%d -> v%d: %s (cost %d, direct %d)",
            current_version,
            target_version,
            approach.method.value,
            approach.cost,
            direct_cost,
        )
        return approach
