"""
End-to-end analysis of a trip: conflicts, optimization and reminders.
"""

import logging
from collections.abc import Iterable
from typing import Any

from tripwise.core.conflict_detector import ConflictDetector
from tripwise.core.distance_estimator import GeoDistanceEstimator, MemoizedEstimator
from tripwise.core.narrative import (
    NarrativeGenerator,
    TemplateNarrativeGenerator,
    annotate_conflicts,
)
from tripwise.core.reminder_scheduler import ReminderScheduler
from tripwise.core.schedule_optimizer import ScheduleOptimizer
from tripwise.core.schemas import (
    Activity,
    ItineraryAnalysis,
    OptimizationSettings,
    Reminder,
    coerce_activities,
)

logger = logging.getLogger(__name__)


def analyze_itinerary(
    activities: Iterable[Activity | dict[str, Any]],
    estimator: GeoDistanceEstimator,
    settings: OptimizationSettings | None = None,
    existing_reminders: Iterable[Reminder] = (),
    narrator: NarrativeGenerator | None = None,
) -> ItineraryAnalysis:
    """
    Run detection, optimization and reminder generation in one pass.

    All three stages share one estimator memo, so each travel leg is
    estimated at most once. Reminders follow the optimized schedule only
    when the optimizer found an improvement.
    """
    settings = settings or OptimizationSettings()
    narrator = narrator or TemplateNarrativeGenerator()
    activities = coerce_activities(activities)
    memo = MemoizedEstimator(estimator, list(settings.preferred_transport_modes))

    conflicts = ConflictDetector(settings).detect(activities, memo)
    optimization = ScheduleOptimizer(settings).optimize(activities, conflicts, memo)

    improved = optimization.travel_time_reduced_minutes > 0 or optimization.conflicts_resolved > 0
    schedule = optimization.reordered_activities if improved else activities
    reminders = ReminderScheduler(memo, settings).generate(schedule, existing_reminders)

    logger.info(
        f"Analyzed {len(activities)} activities: {len(conflicts)} conflicts, "
        f"{optimization.travel_time_reduced_minutes} min travel saved, "
        f"{len(reminders)} reminders ({memo.calls} estimator calls)"
    )
    return ItineraryAnalysis(
        conflicts=annotate_conflicts(conflicts, activities, narrator),
        optimization=optimization,
        reminders=reminders,
        summary=narrator.describe_optimization(optimization),
    )
