"""
Derives timed reminders from a finalized schedule.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from tripwise.core.conflict_detector import group_by_day, same_venue
from tripwise.core.distance_estimator import GeoDistanceEstimator, MemoizedEstimator
from tripwise.core.schemas import (
    Activity,
    OptimizationSettings,
    Reminder,
    ReminderType,
    coerce_activities,
)

logger = logging.getLogger(__name__)

DEFAULT_MINUTES_BEFORE: dict[str, int] = {
    "departure": 30,
    "preparation": 60,
    "check_in": 120,
    "arrival": 0,
}

BOOKING_SENSITIVE_CATEGORIES = {"flight", "hotel", "check-in", "check_in", "checkin", "accommodation"}
ACCOMMODATION_CATEGORIES = {"hotel", "accommodation", "lodging", "hostel"}

REMINDER_TITLES = {
    "departure": "Leave for {title}",
    "preparation": "Get documents and confirmations ready for {title}",
    "check_in": "Check-in window for {title}",
    "arrival": "Arriving at {title}",
}


def _normalized(category: str | None) -> str:
    return (category or "").strip().lower()


class ReminderScheduler:
    """
    Generates departure, preparation and check-in reminders.

    Reminders are keyed by (activity id, type). When regenerating, an
    existing reminder with the same key keeps its id, enabled flag and
    minutes_before; only its scheduled time follows the activity.
    """

    def __init__(
        self,
        estimator: GeoDistanceEstimator | MemoizedEstimator | None = None,
        settings: OptimizationSettings | None = None,
    ) -> None:
        self.settings = settings or OptimizationSettings()
        self.estimator = estimator

    def generate(
        self,
        activities: Iterable[Activity | dict[str, Any]],
        existing_reminders: Iterable[Reminder] = (),
    ) -> list[Reminder]:
        activities = coerce_activities(activities)
        by_activity = {a.id: a for a in activities}

        existing: dict[tuple[str, str], Reminder] = {}
        for reminder in existing_reminders:
            existing.setdefault(reminder.key, reminder)

        travel_before = self._travel_into(activities)

        reminders: dict[tuple[str, str], Reminder] = {}
        for activity in activities:
            for reminder_type, minutes_before in self._wanted(activity, travel_before):
                key = (activity.id, reminder_type)
                reminders[key] = self._upsert(activity, reminder_type, minutes_before, existing.get(key))

        # Keep user-made reminders whose activity still exists
        for key, reminder in existing.items():
            activity = by_activity.get(reminder.related_activity_id)
            if key in reminders or activity is None:
                continue
            reminders[key] = reminder.model_copy(
                update={"scheduled_at": self._scheduled_at(activity, reminder.minutes_before)}
            )

        logger.debug(f"Generated {len(reminders)} reminders for {len(activities)} activities")
        return sorted(reminders.values(), key=lambda r: (r.scheduled_at, r.id))

    def _wanted(
        self, activity: Activity, travel_before: dict[str, int]
    ) -> list[tuple[ReminderType, int]]:
        wanted: list[tuple[ReminderType, int]] = []
        category = _normalized(activity.category)

        if activity.location.resolved:
            travel = travel_before.get(activity.id, 0)
            wanted.append(("departure", DEFAULT_MINUTES_BEFORE["departure"] + travel))
        if category in BOOKING_SENSITIVE_CATEGORIES:
            wanted.append(("preparation", DEFAULT_MINUTES_BEFORE["preparation"]))
        if category in ACCOMMODATION_CATEGORIES:
            wanted.append(("check_in", DEFAULT_MINUTES_BEFORE["check_in"]))

        return wanted

    def _travel_into(self, activities: list[Activity]) -> dict[str, int]:
        """Travel minutes from the previous activity of the same day, per activity id."""
        if self.estimator is None:
            return {}

        if isinstance(self.estimator, MemoizedEstimator):
            memo = self.estimator
        else:
            memo = MemoizedEstimator(self.estimator, list(self.settings.preferred_transport_modes))

        travel: dict[str, int] = {}
        for day_activities in group_by_day(activities).values():
            for previous, activity in zip(day_activities, day_activities[1:]):
                if same_venue(previous, activity):
                    continue
                minutes = memo.minutes(previous.location, activity.location)
                if minutes is not None:
                    travel[activity.id] = minutes
        return travel

    def _upsert(
        self,
        activity: Activity,
        reminder_type: ReminderType,
        minutes_before: int,
        existing: Reminder | None,
    ) -> Reminder:
        if existing is not None:
            return existing.model_copy(
                update={"scheduled_at": self._scheduled_at(activity, existing.minutes_before)}
            )

        return Reminder(
            id=f"{reminder_type}-{activity.id}",
            type=reminder_type,
            related_activity_id=activity.id,
            scheduled_at=self._scheduled_at(activity, minutes_before),
            minutes_before=minutes_before,
            enabled=True,
            title=REMINDER_TITLES[reminder_type].format(title=activity.title or activity.id),
        )

    @staticmethod
    def _scheduled_at(activity: Activity, minutes_before: int) -> datetime:
        return datetime.combine(activity.day, activity.start_time) - timedelta(minutes=minutes_before)


def generate_reminders(
    activities: Iterable[Activity | dict[str, Any]],
    existing_reminders: Iterable[Reminder] = (),
    estimator: GeoDistanceEstimator | MemoizedEstimator | None = None,
    settings: OptimizationSettings | None = None,
) -> list[Reminder]:
    return ReminderScheduler(estimator, settings).generate(activities, existing_reminders)
