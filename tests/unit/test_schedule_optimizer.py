from datetime import time, timedelta

import pytest

from tripwise.core.conflict_detector import detect_conflicts
from tripwise.core.schedule_optimizer import DayPlan, ScheduleOptimizer, optimize_schedule
from tripwise.core.schemas import OptimizationSettings

TRAVEL = {
    ("hotel", "louvre"): 10,
    ("louvre", "versailles"): 10,
    ("hotel", "versailles"): 40,
}


@pytest.fixture
def paris(estimator_with):
    return estimator_with(TRAVEL)


def by_id(result):
    return {a.id: a for a in result.reordered_activities}


def test_empty_schedule(paris):
    result = optimize_schedule([], [], paris)

    assert result.reordered_activities == []
    assert result.efficiency_gain_percent == 0
    assert result.travel_time_reduced_minutes == 0


def test_reorders_to_cut_travel(make_activity, paris):
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("b", "10:30", "11:30", place="versailles"),
        make_activity("c", "12:00", "13:00", place="louvre"),
    ]
    conflicts = detect_conflicts(activities, paris)

    result = optimize_schedule(activities, conflicts, paris)

    assert [a.id for a in result.reordered_activities] == ["a", "c", "b"]
    assert result.original_travel_minutes == 50
    assert result.optimized_travel_minutes == 20
    assert result.travel_time_reduced_minutes == 30
    assert result.efficiency_gain_percent == 60.0
    assert result.conflicts_resolved == 1

    moved = by_id(result)
    assert moved["a"].start_time == time(9, 0)
    assert moved["c"].start_time == time(10, 25)
    assert moved["c"].end_time == time(11, 25)
    assert moved["b"].start_time == time(11, 50)
    assert [moved[x].order for x in ("a", "c", "b")] == [0, 1, 2]

    kinds = [i.kind for i in result.improvements]
    assert "reorder" in kinds
    assert "conflict_resolved" in kinds
    assert all(0 <= i.impact <= 10 for i in result.improvements)
    impacts = [i.impact for i in result.improvements]
    assert impacts == sorted(impacts, reverse=True)

    assert detect_conflicts(result.reordered_activities, paris) == []


def test_never_makes_schedule_worse(make_activity, paris):
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("c", "10:30", "11:30", place="louvre"),
        make_activity("b", "12:00", "13:00", place="versailles"),
    ]

    result = optimize_schedule(activities, [], paris)

    assert result.reordered_activities == activities
    assert result.travel_time_reduced_minutes == 0
    assert result.efficiency_gain_percent == 0
    assert result.improvements == []


def test_locked_activity_keeps_its_time(make_activity, paris):
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("b", "10:30", "11:30", place="versailles"),
        make_activity("c", "12:00", "13:00", place="louvre", locked=True),
    ]

    result = optimize_schedule(activities, [], paris)

    moved = by_id(result)
    assert moved["c"].start_time == time(12, 0)
    assert [a.id for a in result.reordered_activities] == ["a", "c", "b"]
    assert moved["b"].start_time == time(13, 25)
    assert result.travel_time_reduced_minutes == 30


def test_optimization_is_deterministic(make_activity, paris):
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("b", "10:30", "11:30", place="versailles"),
        make_activity("c", "12:00", "13:00", place="louvre"),
        make_activity("d", "12:00", "13:00", place="eiffel"),
    ]

    first = optimize_schedule(activities, [], paris)
    second = optimize_schedule(list(reversed(activities)), [], paris)

    assert first.model_dump() == second.model_dump()


def test_working_hours_push_to_next_day_when_aggressive(make_activity, paris):
    settings = OptimizationSettings(
        aggressive_optimization=True,
        working_hours={"start": "09:00", "end": "12:30", "enabled": True},
    )
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("b", "10:00", "11:00", place="versailles"),
        make_activity("c", "11:00", "12:00", place="louvre"),
    ]

    result = ScheduleOptimizer(settings).optimize(activities, [], paris)

    moved = by_id(result)
    assert moved["b"].day == activities[1].day + timedelta(days=1)
    assert moved["b"].start_time == time(9, 0)
    assert moved["c"].start_time == time(10, 25)
    assert result.travel_time_reduced_minutes == 40
    assert any(i.kind == "moved_to_next_day" for i in result.improvements)


def test_working_hours_never_cross_days_when_not_aggressive(make_activity, paris):
    settings = OptimizationSettings(
        working_hours={"start": "09:00", "end": "12:30", "enabled": True},
    )
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("b", "10:00", "11:00", place="versailles"),
        make_activity("c", "11:00", "12:00", place="louvre"),
    ]

    result = ScheduleOptimizer(settings).optimize(activities, [], paris)

    assert {a.day for a in result.reordered_activities} == {activities[0].day}
    assert result.travel_time_reduced_minutes >= 0
    assert result.efficiency_gain_percent >= 0


def test_aggressive_groups_short_same_venue_activities(make_activity, estimator_with):
    estimator = estimator_with({("louvre", "versailles"): 30, ("hotel", "versailles"): 45})
    settings = OptimizationSettings(aggressive_optimization=True)
    activities = [
        make_activity("a", "09:00", "09:30", place="hotel"),
        make_activity("b", "10:00", "11:00", place="versailles"),
        make_activity("c", "11:30", "11:50", place="hotel"),
    ]

    result = ScheduleOptimizer(settings).optimize(activities, [], estimator)

    moved = by_id(result)
    assert [a.id for a in result.reordered_activities] == ["a", "c", "b"]
    assert moved["c"].start_time == time(9, 30)
    assert any(i.kind == "grouped" for i in result.improvements)


def test_settings_ignore_unknown_keys():
    settings = OptimizationSettings.model_validate(
        {
            "buffer_minutes": 5,
            "consider_traffic": True,
            "working_hours": {"start": "8:00 AM", "end": "18:00", "enabled": True},
        }
    )

    assert settings.buffer_minutes == 5
    assert settings.max_travel_minutes == 60
    assert settings.aggressive_optimization is False
    assert settings.preferred_transport_modes == ["auto"]
    assert settings.working_hours.start == time(8, 0)


def test_strategy_is_pluggable(make_activity, paris):
    class KeepOrder:
        def __init__(self):
            self.days = 0

        def sequence(self, activities, memo, settings, allow_overflow):
            self.days += 1
            return DayPlan(activities=list(activities))

    strategy = KeepOrder()
    activities = [
        make_activity("a", "09:00", "10:00", place="hotel"),
        make_activity("b", "10:30", "11:30", place="versailles"),
    ]

    result = ScheduleOptimizer(strategy=strategy).optimize(activities, [], paris)

    assert strategy.days == 1
    assert result.efficiency_gain_percent == 0
    assert result.reordered_activities == activities
