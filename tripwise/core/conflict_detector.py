"""
Conflict detection over a trip's timed, geolocated activities.

Only adjacent pairs within a day are compared. Fixing one pair can expose a
conflict with a non-adjacent activity, so callers re-run detection after
applying fixes rather than assuming a single pass found everything.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from typing import Any

from tripwise.core.distance_estimator import GeoDistanceEstimator, MemoizedEstimator
from tripwise.core.geo_utils import is_same_venue
from tripwise.core.opening_hours_utils import is_venue_open_during, parse_opening_hours
from tripwise.core.schemas import (
    Activity,
    Conflict,
    OptimizationSettings,
    Severity,
    coerce_activities,
    conflict_id,
)
from tripwise.core.travel_time_utils import MINUTES_PER_DAY

logger = logging.getLogger(__name__)

# Shortfall (travel minutes not covered by the gap) at which a tight
# connection becomes high severity
TIGHT_CONNECTION_HIGH_DEFICIT = 15


def group_by_day(activities: Iterable[Activity]) -> dict[date, list[Activity]]:
    """Group activities per calendar day, each day sorted by (start_time, order, id)."""
    days: dict[date, list[Activity]] = defaultdict(list)
    for activity in activities:
        days[activity.day].append(activity)
    return {day: sorted(days[day], key=lambda a: a.sort_key) for day in sorted(days)}


def long_distance_severity(excess_minutes: int) -> Severity:
    if excess_minutes < 15:
        return "low"
    elif excess_minutes < 45:
        return "medium"
    return "high"


def same_venue(a: Activity, b: Activity) -> bool:
    return is_same_venue(
        a.location.latitude, a.location.longitude, b.location.latitude, b.location.longitude
    )


class ConflictDetector:
    """Scans each day's activities and reports typed, structured conflicts."""

    def __init__(self, settings: OptimizationSettings | None = None) -> None:
        self.settings = settings or OptimizationSettings()

    def detect(
        self,
        activities: Iterable[Activity | dict[str, Any]],
        estimator: GeoDistanceEstimator | MemoizedEstimator,
    ) -> list[Conflict]:
        """
        Detect conflicts across all days.

        Args:
            activities: Activities for any number of days
            estimator: Travel-time estimator, or a memo already scoped to the
                caller's pass

        Returns:
            Conflicts ordered by day and position; equal input gives equal output

        Raises:
            MalformedActivity: if any activity is missing required fields
        """
        activities = coerce_activities(activities)
        memo = self._memo_for(estimator)

        conflicts: list[Conflict] = []
        for day, day_activities in group_by_day(activities).items():
            conflicts.extend(self._detect_day(day, day_activities, memo))

        logger.debug(
            f"Detected {len(conflicts)} conflicts across {len(activities)} activities "
            f"({memo.calls} estimator calls)"
        )
        return conflicts

    def _memo_for(self, estimator: GeoDistanceEstimator | MemoizedEstimator) -> MemoizedEstimator:
        if isinstance(estimator, MemoizedEstimator):
            return estimator
        return MemoizedEstimator(estimator, list(self.settings.preferred_transport_modes))

    def _detect_day(
        self, day: date, activities: list[Activity], memo: MemoizedEstimator
    ) -> list[Conflict]:
        conflicts: list[Conflict] = []

        for activity in activities:
            venue_conflict = self._check_opening_hours(activity)
            if venue_conflict is not None:
                conflicts.append(venue_conflict)

        for a, b in zip(activities, activities[1:]):
            conflict = self._check_pair(day, a, b, memo)
            if conflict is not None:
                conflicts.append(conflict)

        return conflicts

    def _check_pair(
        self, day: date, a: Activity, b: Activity, memo: MemoizedEstimator
    ) -> Conflict | None:
        gap = b.start_minutes - a.end_minutes
        ids = [a.id, b.id]

        if gap < 0:
            shift = -gap
            return Conflict(
                id=conflict_id("overlap", ids),
                type="overlap",
                severity="high",
                day=day,
                activity_ids=ids,
                auto_fix_available=self._can_shift(b, shift),
                gap_minutes=gap,
                required_minutes=0,
                shift_minutes=shift,
            )

        # Back-to-back at the same venue needs no travel leg
        if not (a.location.resolved and b.location.resolved) or same_venue(a, b):
            return None

        travel = memo.minutes(a.location, b.location)
        if travel is None:
            return None

        buffer = self.settings.buffer_minutes
        required = travel + buffer

        if gap < required:
            shift = required - gap
            deficit = travel - gap
            return Conflict(
                id=conflict_id("tight_connection", ids),
                type="tight_connection",
                severity="medium" if deficit < TIGHT_CONNECTION_HIGH_DEFICIT else "high",
                day=day,
                activity_ids=ids,
                auto_fix_available=self._can_shift(b, shift),
                gap_minutes=gap,
                travel_minutes=travel,
                required_minutes=required,
                shift_minutes=shift,
            )

        if travel > self.settings.max_travel_minutes:
            excess = travel - self.settings.max_travel_minutes
            return Conflict(
                id=conflict_id("long_distance", ids),
                type="long_distance",
                severity=long_distance_severity(excess),
                day=day,
                activity_ids=ids,
                auto_fix_available=False,
                gap_minutes=gap,
                travel_minutes=travel,
                required_minutes=required,
                excess_minutes=excess,
            )

        return None

    def _check_opening_hours(self, activity: Activity) -> Conflict | None:
        if not activity.opening_hours:
            return None

        hours = parse_opening_hours(activity.opening_hours)
        day_name = activity.day.strftime("%A")
        is_open, closed_all_day, reason = is_venue_open_during(
            hours, day_name, activity.start_minutes, activity.end_minutes
        )
        if is_open:
            return None

        return Conflict(
            id=conflict_id("venue_unavailable", [activity.id]),
            type="venue_unavailable",
            severity="high" if closed_all_day else "medium",
            day=activity.day,
            activity_ids=[activity.id],
            auto_fix_available=False,
            reason=reason,
        )

    @staticmethod
    def _can_shift(activity: Activity, shift_minutes: int) -> bool:
        """A shift is deterministic only for unlocked activities that stay on their day."""
        return not activity.locked and activity.start_minutes + shift_minutes < MINUTES_PER_DAY


def detect_conflicts(
    activities: Iterable[Activity | dict[str, Any]],
    estimator: GeoDistanceEstimator | MemoizedEstimator,
    settings: OptimizationSettings | None = None,
) -> list[Conflict]:
    return ConflictDetector(settings).detect(activities, estimator)
