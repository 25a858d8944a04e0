"""
Schedule optimization: re-sequence each day's activities to cut travel time.

The default strategy is a greedy nearest-neighbor walk. Per-day activity
counts are small (typically 15 or fewer) so a deterministic greedy pass is
enough, and its choices can be explained to the traveler. Other strategies
plug in through SequencingStrategy.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Protocol

from tripwise.core.conflict_detector import ConflictDetector, group_by_day, same_venue
from tripwise.core.distance_estimator import GeoDistanceEstimator, MemoizedEstimator
from tripwise.core.schemas import (
    Activity,
    Conflict,
    Improvement,
    OptimizationResult,
    OptimizationSettings,
    coerce_activities,
)
from tripwise.core.travel_time_utils import MINUTES_PER_DAY, format_minutes

logger = logging.getLogger(__name__)

# Cost added per minute a candidate has to start later than originally planned
WINDOW_PENALTY_PER_MINUTE = 0.5
# Cost multiplier for each minute a leg runs over max_travel_minutes
LONG_LEG_PENALTY_PER_MINUTE = 1.0
# Activities this short at the same venue may be grouped back-to-back
GROUPABLE_MINUTES = 30

SEVERITY_IMPACT = {"high": 8, "medium": 5, "low": 2}


def leg_minutes(memo: MemoizedEstimator, a: Activity, b: Activity) -> int | None:
    """Travel minutes from a to b; 0 at the same venue, None when unknown."""
    if same_venue(a, b):
        return 0
    return memo.minutes(a.location, b.location)


def total_travel_minutes(memo: MemoizedEstimator, day_activities: list[Activity]) -> int:
    """Sum of known legs between consecutive activities of one day, in time order."""
    ordered = sorted(day_activities, key=lambda a: a.sort_key)
    total = 0
    for a, b in zip(ordered, ordered[1:]):
        minutes = leg_minutes(memo, a, b)
        if minutes is not None:
            total += minutes
    return total


@dataclass
class DayPlan:
    """Outcome of sequencing a single day."""

    activities: list[Activity] = field(default_factory=list)
    overflow: list[Activity] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    grouped: list[tuple[str, str]] = field(default_factory=list)


class SequencingStrategy(Protocol):
    def sequence(
        self,
        activities: list[Activity],
        memo: MemoizedEstimator,
        settings: OptimizationSettings,
        allow_overflow: bool,
    ) -> DayPlan:
        """Return a retimed sequence for one day's activities (already sorted)."""
        ...


class GreedyNearestNeighborStrategy:
    """
    Walk forward from the day's earliest activity, always taking the cheapest
    reachable next activity.

    Locked activities keep their times; unlocked ones are packed behind each
    other with travel time plus buffer in between. Ties go to the lowest id.
    """

    def sequence(
        self,
        activities: list[Activity],
        memo: MemoizedEstimator,
        settings: OptimizationSettings,
        allow_overflow: bool,
    ) -> DayPlan:
        plan = DayPlan()
        if not activities:
            return plan

        hours = settings.working_hours
        first = activities[0]
        if not first.locked and hours.enabled and first.start_minutes < hours.start_minutes:
            first = first.with_start(hours.start_minutes)

        plan.activities.append(first)
        current = first
        cursor = first.end_minutes

        anchors = [a for a in activities[1:] if a.locked]
        pool = [a for a in activities[1:] if not a.locked]

        while pool or anchors:
            anchor = anchors[0] if anchors else None
            choice = self._pick(current, cursor, pool, anchor, memo, settings)

            if choice is None:
                if anchor is None:
                    break
                # Nothing fits before the next locked activity
                plan.activities.append(anchor)
                anchors.pop(0)
                current = anchor
                cursor = max(cursor, anchor.end_minutes)
                continue

            candidate, start, grouped = choice
            pool.remove(candidate)
            end = start + (candidate.duration_minutes or 0)

            overflows = start >= MINUTES_PER_DAY or end > MINUTES_PER_DAY
            if overflows or (hours.enabled and end > hours.end_minutes):
                if allow_overflow:
                    plan.overflow.append(candidate)
                else:
                    plan.activities.append(candidate)
                    plan.unresolved.append(candidate.id)
                continue

            placed = candidate.with_start(start)
            if grouped:
                plan.grouped.append((current.id, placed.id))
            plan.activities.append(placed)
            current = placed
            cursor = end

        return plan

    def _pick(
        self,
        current: Activity,
        cursor: int,
        pool: list[Activity],
        anchor: Activity | None,
        memo: MemoizedEstimator,
        settings: OptimizationSettings,
    ) -> tuple[Activity, int, bool] | None:
        best: tuple[tuple[bool, float, str], Activity, int, bool] | None = None

        for candidate in pool:
            travel = leg_minutes(memo, current, candidate)
            grouped = (
                settings.aggressive_optimization
                and same_venue(current, candidate)
                and (current.duration_minutes or 0) <= GROUPABLE_MINUTES
                and (candidate.duration_minutes or 0) <= GROUPABLE_MINUTES
            )
            buffer = 0 if grouped else settings.buffer_minutes
            start = cursor + (travel or 0) + buffer

            hours = settings.working_hours
            if hours.enabled and start < hours.start_minutes:
                start = hours.start_minutes

            if anchor is not None:
                end = start + (candidate.duration_minutes or 0)
                onward = leg_minutes(memo, candidate, anchor) or 0
                if end + onward + settings.buffer_minutes > anchor.start_minutes:
                    continue

            cost = float(travel or 0)
            if travel is not None and travel > settings.max_travel_minutes:
                cost += (travel - settings.max_travel_minutes) * LONG_LEG_PENALTY_PER_MINUTE
            if start > candidate.start_minutes:
                cost += (start - candidate.start_minutes) * WINDOW_PENALTY_PER_MINUTE

            # Legs without an estimate rank after every known leg
            rank = (travel is None, cost, candidate.id)
            if best is None or rank < best[0]:
                best = (rank, candidate, start, grouped)

        if best is None:
            return None
        return best[1], best[2], best[3]


class ScheduleOptimizer:
    """Proposes a reordered, retimed schedule that never increases travel time."""

    def __init__(
        self,
        settings: OptimizationSettings | None = None,
        strategy: SequencingStrategy | None = None,
    ) -> None:
        self.settings = settings or OptimizationSettings()
        self.strategy = strategy or GreedyNearestNeighborStrategy()
        self.detector = ConflictDetector(self.settings)

    def optimize(
        self,
        activities: Iterable[Activity | dict[str, Any]],
        conflicts: list[Conflict],
        estimator: GeoDistanceEstimator | MemoizedEstimator,
    ) -> OptimizationResult:
        """
        Optimize every day of a trip.

        Args:
            activities: Activities for any number of days
            conflicts: Conflicts previously detected for these activities
            estimator: Travel-time estimator

        Returns:
            OptimizationResult; the original schedule with zero gain when the
            candidate schedule is not an improvement

        Raises:
            MalformedActivity: if any activity is missing required fields
        """
        activities = coerce_activities(activities)
        if isinstance(estimator, MemoizedEstimator):
            memo = estimator
        else:
            memo = MemoizedEstimator(estimator, list(self.settings.preferred_transport_modes))

        original_days = group_by_day(activities)
        original_travel = sum(total_travel_minutes(memo, acts) for acts in original_days.values())

        candidate, improvements, unresolved = self._sequence_days(original_days, memo)

        candidate_days = group_by_day(candidate)
        optimized_travel = sum(total_travel_minutes(memo, acts) for acts in candidate_days.values())

        baseline_conflicts = self.detector.detect(activities, memo)
        candidate_conflicts = self.detector.detect(candidate, memo)

        reduced = original_travel - optimized_travel
        fewer_conflicts = len(candidate_conflicts) < len(baseline_conflicts)
        accepted = len(candidate_conflicts) <= len(baseline_conflicts) and (
            reduced > 0 or (reduced == 0 and fewer_conflicts)
        )

        if not accepted:
            logger.debug(
                f"Optimization rejected (travel {original_travel} -> {optimized_travel} min, "
                f"conflicts {len(baseline_conflicts)} -> {len(candidate_conflicts)})"
            )
            return OptimizationResult(
                reordered_activities=activities,
                conflicts_resolved=self._count_resolved(conflicts, baseline_conflicts),
                original_travel_minutes=original_travel,
                optimized_travel_minutes=original_travel,
            )

        resolved = [c for c in conflicts if c.key not in {r.key for r in candidate_conflicts}]
        improvements.extend(
            Improvement(
                kind="conflict_resolved",
                description=f"Resolves {c.type.replace('_', ' ')} between {', '.join(c.activity_ids)}",
                impact=SEVERITY_IMPACT[c.severity],
                activity_ids=list(c.activity_ids),
            )
            for c in resolved
        )
        improvements.sort(key=lambda i: -i.impact)

        gain = 100 * max(reduced, 0) / max(1, original_travel)
        logger.debug(
            f"Optimization accepted: travel {original_travel} -> {optimized_travel} min, "
            f"{len(resolved)} conflicts resolved"
        )
        return OptimizationResult(
            reordered_activities=candidate,
            travel_time_reduced_minutes=max(reduced, 0),
            conflicts_resolved=len(resolved),
            efficiency_gain_percent=round(min(100.0, max(0.0, gain)), 1),
            improvements=improvements,
            original_travel_minutes=original_travel,
            optimized_travel_minutes=optimized_travel,
            unresolved_activity_ids=unresolved,
        )

    def _sequence_days(
        self, days: dict[date, list[Activity]], memo: MemoizedEstimator
    ) -> tuple[list[Activity], list[Improvement], list[str]]:
        settings = self.settings
        result: list[Activity] = []
        improvements: list[Improvement] = []
        unresolved: list[str] = []
        originals = {a.id: a for acts in days.values() for a in acts}

        carried: dict[date, list[Activity]] = {}
        pending = sorted(days)
        while pending:
            day = pending.pop(0)
            incoming = carried.pop(day, [])
            day_activities = sorted(days.get(day, []) + incoming, key=lambda a: a.sort_key)

            # Activities already pushed once may not be pushed again
            allow_overflow = settings.aggressive_optimization and not incoming
            plan = self.strategy.sequence(day_activities, memo, settings, allow_overflow)

            if plan.overflow:
                next_day = day + timedelta(days=1)
                start = settings.working_hours.start_minutes
                carried[next_day] = [a.with_start(start, day=next_day) for a in plan.overflow]
                if next_day not in pending:
                    pending.append(next_day)
                    pending.sort()
                improvements.extend(
                    Improvement(
                        kind="moved_to_next_day",
                        description=f"Moved '{a.title or a.id}' to {next_day.isoformat()} "
                        f"to stay within working hours",
                        impact=6,
                        activity_ids=[a.id],
                    )
                    for a in plan.overflow
                )

            unresolved.extend(plan.unresolved)
            ordered = self._renumber(plan.activities)
            result.extend(ordered)
            improvements.extend(self._describe_day(day, ordered, originals, plan, memo))

        return result, improvements, unresolved

    @staticmethod
    def _renumber(activities: list[Activity]) -> list[Activity]:
        # Stable sort keeps the strategy's sequence for equal start times
        ordered = sorted(activities, key=lambda a: a.start_minutes)
        return [a.model_copy(update={"order": index}) for index, a in enumerate(ordered)]

    def _describe_day(
        self,
        day: date,
        ordered: list[Activity],
        originals: dict[str, Activity],
        plan: DayPlan,
        memo: MemoizedEstimator,
    ) -> list[Improvement]:
        improvements: list[Improvement] = []

        before = [originals[a.id] for a in ordered if originals[a.id].day == day]
        before_ids = [a.id for a in sorted(before, key=lambda a: a.sort_key)]
        kept = set(before_ids)
        after_ids = [a.id for a in ordered if a.id in kept]
        if before_ids != after_ids:
            saved = total_travel_minutes(memo, before) - total_travel_minutes(
                memo, [a for a in ordered if a.id in kept]
            )
            moved = sum(1 for x, y in zip(before_ids, after_ids) if x != y)
            improvements.append(
                Improvement(
                    kind="reorder",
                    description=f"Reordered {moved} activities on {day.isoformat()}"
                    + (f" to save {saved} min of travel" if saved > 0 else ""),
                    impact=min(10, max(1, math.ceil(max(saved, 0) / 5))),
                    activity_ids=after_ids,
                )
            )

        for activity in ordered:
            original = originals[activity.id]
            if original.day != activity.day or original.start_time == activity.start_time:
                continue
            delta = activity.start_minutes - original.start_minutes
            improvements.append(
                Improvement(
                    kind="retime",
                    description=f"Start '{activity.title or activity.id}' at "
                    f"{format_minutes(activity.start_minutes)} instead of "
                    f"{format_minutes(original.start_minutes)}",
                    impact=min(10, max(1, abs(delta) // 15)),
                    activity_ids=[activity.id],
                )
            )

        for first_id, second_id in plan.grouped:
            improvements.append(
                Improvement(
                    kind="grouped",
                    description=f"Grouped {first_id} and {second_id} back-to-back at the same venue",
                    impact=2,
                    activity_ids=[first_id, second_id],
                )
            )

        return improvements

    def _count_resolved(self, conflicts: list[Conflict], remaining: list[Conflict]) -> int:
        remaining_keys = {c.key for c in remaining}
        return sum(1 for c in conflicts if c.key not in remaining_keys)


def optimize_schedule(
    activities: Iterable[Activity | dict[str, Any]],
    conflicts: list[Conflict],
    estimator: GeoDistanceEstimator | MemoizedEstimator,
    settings: OptimizationSettings | None = None,
) -> OptimizationResult:
    return ScheduleOptimizer(settings).optimize(activities, conflicts, estimator)
