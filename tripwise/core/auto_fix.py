"""
Applies deterministic time shifts for auto-fixable conflicts.

Exactly one pass is made over the requested conflicts. Residual or newly
exposed conflicts are left for the caller's next detection run.
"""

import logging
from collections.abc import Iterable
from typing import Any

from tripwise.core.errors import InvalidFixError
from tripwise.core.schemas import Activity, Conflict, coerce_activities
from tripwise.core.travel_time_utils import MINUTES_PER_DAY

logger = logging.getLogger(__name__)


class AutoFixApplier:
    def apply_fixes(
        self,
        activities: Iterable[Activity | dict[str, Any]],
        conflicts: list[Conflict],
        conflict_ids: Iterable[str],
    ) -> list[Activity]:
        """
        Resolve the requested conflicts by shifting each conflict's later activity.

        Args:
            activities: Current activities
            conflicts: Conflicts detected for those activities
            conflict_ids: Ids of the conflicts to fix

        Returns:
            New activity list in input order; activities not named by a fixed
            conflict are returned untouched

        Raises:
            InvalidFixError: if any id is unknown, not auto-fixable, or its fix
                cannot be applied. Nothing is applied in that case.
        """
        activities = coerce_activities(activities)
        requested = list(dict.fromkeys(conflict_ids))
        by_id = {c.id: c for c in conflicts}

        unknown = [cid for cid in requested if cid not in by_id]
        if unknown:
            raise InvalidFixError(f"Unknown conflict ids: {', '.join(unknown)}", unknown)

        not_fixable = [cid for cid in requested if not by_id[cid].auto_fix_available]
        if not_fixable:
            raise InvalidFixError(
                f"Conflicts cannot be fixed automatically: {', '.join(not_fixable)}", not_fixable
            )

        current = {a.id: a for a in activities}
        selected = [by_id[cid] for cid in requested]
        for conflict in selected:
            missing = [aid for aid in conflict.activity_ids if aid not in current]
            if missing:
                raise InvalidFixError(
                    f"Conflict {conflict.id} refers to unknown activities: {', '.join(missing)}",
                    [conflict.id],
                )

        # Earliest first, so a later shift never undoes an earlier fix
        selected.sort(
            key=lambda c: (
                current[c.activity_ids[0]].day,
                current[c.activity_ids[0]].sort_key,
                c.id,
            )
        )

        for conflict in selected:
            earlier = current[conflict.activity_ids[0]]
            later = current[conflict.activity_ids[1]]
            target = self._target_start(conflict, earlier)

            if target <= later.start_minutes:
                continue
            if later.locked or target >= MINUTES_PER_DAY:
                raise InvalidFixError(
                    f"Fix for {conflict.id} would move '{later.id}' past its day or a locked time",
                    [conflict.id],
                )
            current[later.id] = later.with_start(target)

        logger.info(f"Applied {len(selected)} auto-fixes")
        return [current[a.id] for a in activities]

    @staticmethod
    def _target_start(conflict: Conflict, earlier: Activity) -> int:
        if conflict.type == "overlap":
            return earlier.end_minutes
        if conflict.type == "tight_connection":
            return earlier.end_minutes + (conflict.required_minutes or 0)
        raise InvalidFixError(f"No deterministic fix for {conflict.type}", [conflict.id])


def apply_fixes(
    activities: Iterable[Activity | dict[str, Any]],
    conflicts: list[Conflict],
    conflict_ids: Iterable[str],
) -> list[Activity]:
    return AutoFixApplier().apply_fixes(activities, conflicts, conflict_ids)
