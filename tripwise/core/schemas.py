from collections.abc import Iterable
from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from tripwise.core.errors import MalformedActivity
from tripwise.core.travel_time_utils import (
    MINUTES_PER_DAY,
    default_duration_for_category,
    minutes_to_time,
    parse_time_to_minutes,
    time_to_minutes,
)

ConflictType = Literal["overlap", "tight_connection", "long_distance", "venue_unavailable"]
Severity = Literal["low", "medium", "high"]
ReminderType = Literal["departure", "preparation", "check_in", "arrival"]
ImprovementKind = Literal["reorder", "retime", "moved_to_next_day", "grouped", "conflict_resolved"]


def _coerce_clock(value: Any) -> Any:
    """Accept "HH:MM" and "H:MM AM/PM" strings for wall-clock fields."""
    if isinstance(value, str):
        return minutes_to_time(parse_time_to_minutes(value))
    return value


# =============================================================================
# Activities
# =============================================================================


class Location(BaseModel):
    name: str = ""
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @property
    def resolved(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Activity(BaseModel):
    """A single scheduled item on one day of a trip."""

    id: str
    title: str = ""
    category: str | None = Field(None, description="Free-form tag, e.g. 'Food', 'Culture'")
    day: date
    start_time: time
    end_time: time | None = None
    duration_minutes: int | None = Field(
        None, ge=0, description="Derived from end_time - start_time, else a category default"
    )
    location: Location = Field(default_factory=Location)
    order: int = Field(0, description="Tie-break for activities starting at the same time")
    locked: bool = Field(False, description="Anchored by the user; never moved by the optimizer")
    opening_hours: list[str] | None = Field(
        None, description="Google Places weekday_text, e.g. ['Monday: 9:00 AM – 5:00 PM']"
    )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_clock(cls, value: Any) -> Any:
        return _coerce_clock(value)

    @model_validator(mode="after")
    def _derive_duration(self) -> "Activity":
        if self.end_time is not None:
            span = time_to_minutes(self.end_time) - time_to_minutes(self.start_time)
            if span < 0:
                # Ends after midnight
                span += MINUTES_PER_DAY
            self.duration_minutes = span
        elif self.duration_minutes is None:
            self.duration_minutes = default_duration_for_category(self.category)
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        """Minutes since midnight at which the activity ends; may exceed one day."""
        return self.start_minutes + (self.duration_minutes or 0)

    @property
    def sort_key(self) -> tuple[int, int, str]:
        return (self.start_minutes, self.order, self.id)

    def with_start(self, start_minutes: int, day: date | None = None) -> "Activity":
        """Return a copy moved to a new start, keeping its duration."""
        update: dict[str, Any] = {"start_time": minutes_to_time(start_minutes)}
        if self.end_time is not None:
            end = start_minutes + (self.duration_minutes or 0)
            update["end_time"] = minutes_to_time(end % MINUTES_PER_DAY)
        if day is not None:
            update["day"] = day
        return self.model_copy(update=update)


def coerce_activities(items: Iterable[Activity | dict[str, Any]]) -> list[Activity]:
    """
    Validate a batch of activities, rejecting the whole batch on any bad record.

    Raises:
        MalformedActivity: a record is missing id/day/start_time, has an
            unparseable field, or reuses another record's id
    """
    activities: list[Activity] = []
    seen: set[str] = set()

    for index, item in enumerate(items):
        if isinstance(item, Activity):
            activity = item
        else:
            try:
                activity = Activity.model_validate(item)
            except (ValidationError, ValueError) as e:
                raw_id = item.get("id") if isinstance(item, dict) else None
                raise MalformedActivity(
                    f"Activity at position {index} is malformed: {e}",
                    activity_id=str(raw_id) if raw_id is not None else None,
                ) from e

        if activity.id in seen:
            raise MalformedActivity(
                f"Duplicate activity id '{activity.id}'", activity_id=activity.id
            )
        seen.add(activity.id)
        activities.append(activity)

    return activities


# =============================================================================
# Conflicts
# =============================================================================


def conflict_id(conflict_type: str, activity_ids: Iterable[str]) -> str:
    """Content key for a conflict: equal type and activity set give equal ids."""
    return f"{conflict_type}:{'+'.join(sorted(activity_ids))}"


class Conflict(BaseModel):
    """A detected scheduling problem, recomputed on every detection pass."""

    id: str
    type: ConflictType
    severity: Severity
    day: date
    activity_ids: list[str] = Field(..., description="Earlier activity first")
    auto_fix_available: bool = False
    suggested_fix: str | None = Field(None, description="Filled in by the narrative generator")

    gap_minutes: int | None = None
    travel_minutes: int | None = None
    required_minutes: int | None = None
    shift_minutes: int | None = Field(
        None, description="How far the later activity moves when auto-fixed"
    )
    excess_minutes: int | None = None
    reason: str | None = None

    @property
    def key(self) -> tuple[str, frozenset[str]]:
        return (self.type, frozenset(self.activity_ids))


# =============================================================================
# Optimization
# =============================================================================


class WorkingHours(BaseModel):
    start: time = time(9, 0)
    end: time = time(21, 0)
    enabled: bool = False

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_clock(cls, value: Any) -> Any:
        return _coerce_clock(value)

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)


class OptimizationSettings(BaseModel):
    """Per-request knobs for detection and optimization. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    buffer_minutes: int = Field(15, ge=0, le=240, description="Added after every travel leg")
    max_travel_minutes: int = Field(
        60, ge=1, le=1440, description="Legs longer than this are penalized"
    )
    aggressive_optimization: bool = Field(
        False, description="Allow next-day moves and grouping of short same-venue activities"
    )
    preferred_transport_modes: list[
        Literal["auto", "walking", "transit", "driving", "cycling"]
    ] = Field(default_factory=lambda: ["auto"])
    working_hours: WorkingHours = Field(default_factory=WorkingHours)

    @field_validator("preferred_transport_modes")
    @classmethod
    def _non_empty_modes(cls, value: list[str]) -> list[str]:
        return value or ["auto"]


class Improvement(BaseModel):
    kind: ImprovementKind
    description: str
    impact: int = Field(..., ge=0, le=10)
    activity_ids: list[str] = Field(default_factory=list)


class OptimizationResult(BaseModel):
    reordered_activities: list[Activity] = Field(default_factory=list)
    travel_time_reduced_minutes: int = Field(0, ge=0)
    conflicts_resolved: int = Field(0, ge=0)
    efficiency_gain_percent: float = Field(0.0, ge=0, le=100)
    improvements: list[Improvement] = Field(default_factory=list)
    original_travel_minutes: int = 0
    optimized_travel_minutes: int = 0
    unresolved_activity_ids: list[str] = Field(default_factory=list)


# =============================================================================
# Reminders
# =============================================================================


class Reminder(BaseModel):
    id: str
    type: ReminderType
    related_activity_id: str
    scheduled_at: datetime
    minutes_before: int = Field(..., ge=0)
    enabled: bool = True
    title: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.related_activity_id, self.type)


# =============================================================================
# API payloads
# =============================================================================


class ItineraryAnalysis(BaseModel):
    conflicts: list[Conflict] = Field(default_factory=list)
    optimization: OptimizationResult
    reminders: list[Reminder] = Field(default_factory=list)
    summary: list[str] = Field(default_factory=list)


class ActivityBatchRequest(BaseModel):
    activities: list[dict[str, Any]] = Field(default_factory=list)
    settings: OptimizationSettings = Field(default_factory=OptimizationSettings)


class AutoFixRequest(ActivityBatchRequest):
    conflict_ids: list[str] = Field(default_factory=list)


class AutoFixResponse(BaseModel):
    fixed_activities: list[Activity] = Field(default_factory=list)
    remaining_conflicts: list[Conflict] = Field(default_factory=list)


class ReminderRequest(ActivityBatchRequest):
    existing_reminders: list[Reminder] = Field(default_factory=list)


class AnalyzeRequest(ReminderRequest):
    pass
