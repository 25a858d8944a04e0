from datetime import time, timedelta

import pytest

from tripwise.core.auto_fix import apply_fixes
from tripwise.core.conflict_detector import detect_conflicts
from tripwise.core.errors import InvalidFixError


def test_overlap_fix_moves_later_activity(make_activity, estimator):
    a = make_activity("a", "09:00", "10:00")
    b = make_activity("b", "09:30", "10:30")
    conflicts = detect_conflicts([a, b], estimator)

    fixed = apply_fixes([a, b], conflicts, [conflicts[0].id])

    assert fixed[0] == a
    assert fixed[1].start_time == time(10, 0)
    assert fixed[1].end_time == time(11, 0)
    assert fixed[0].end_minutes <= fixed[1].start_minutes


def test_tight_connection_fix_adds_travel_and_buffer(make_activity, estimator_with):
    estimator = estimator_with({("hotel", "versailles"): 50})
    a = make_activity("a", "09:00", "10:00", place="hotel")
    b = make_activity("b", "10:10", "11:00", place="versailles")
    conflicts = detect_conflicts([a, b], estimator)

    fixed = apply_fixes([a, b], conflicts, [conflicts[0].id])

    assert fixed[1].start_time == time(11, 5)
    assert fixed[1].duration_minutes == 50
    assert detect_conflicts(fixed, estimator) == []


def test_fixes_apply_in_chronological_order(make_activity, estimator):
    a = make_activity("a", "09:00", "10:00")
    b = make_activity("b", "09:30", "10:30")
    c = make_activity("c", "10:15", "11:00")
    conflicts = detect_conflicts([a, b, c], estimator)
    ids = [conflict.id for conflict in reversed(conflicts)]

    fixed = {x.id: x for x in apply_fixes([a, b, c], conflicts, ids)}

    assert fixed["b"].start_time == time(10, 0)
    assert fixed["c"].start_time == time(11, 0)
    assert fixed["c"].end_time == time(11, 45)


def test_unrelated_activities_untouched(make_activity, estimator):
    a = make_activity("a", "09:00", "10:00")
    b = make_activity("b", "09:30", "10:30")
    other = make_activity("z", "09:00", "09:45", day=a.day + timedelta(days=1))
    conflicts = detect_conflicts([other, a, b], estimator)

    fixed = apply_fixes([other, a, b], conflicts, [conflicts[0].id])

    assert [x.id for x in fixed] == ["z", "a", "b"]
    assert fixed[0] == other
    assert fixed[1] == a


def test_single_pass_leaves_residual_conflicts(make_activity, estimator):
    a = make_activity("a", "09:00", "10:00")
    b = make_activity("b", "09:30", "10:30")
    c = make_activity("c", "10:45", "11:15")
    conflicts = detect_conflicts([a, b, c], estimator)
    assert [x.id for x in conflicts] == ["overlap:a+b"]

    fixed = apply_fixes([a, b, c], conflicts, ["overlap:a+b"])

    assert fixed[2] == c
    assert [x.id for x in detect_conflicts(fixed, estimator)] == ["overlap:b+c"]


def test_unknown_conflict_id_rejected(make_activity, estimator):
    a = make_activity("a", "09:00", "10:00")
    b = make_activity("b", "09:30", "10:30")
    conflicts = detect_conflicts([a, b], estimator)

    with pytest.raises(InvalidFixError) as exc:
        apply_fixes([a, b], conflicts, [conflicts[0].id, "overlap:x+y"])

    assert exc.value.conflict_ids == ["overlap:x+y"]


def test_non_fixable_conflict_rejected(make_activity, estimator_with):
    estimator = estimator_with({("hotel", "versailles"): 90})
    a = make_activity("a", "09:00", "10:00", place="hotel")
    b = make_activity("b", "15:00", "16:00", place="versailles")
    conflicts = detect_conflicts([a, b], estimator)

    with pytest.raises(InvalidFixError):
        apply_fixes([a, b], conflicts, [conflicts[0].id])


def test_empty_request_returns_copy(make_activity, estimator):
    a = make_activity("a", "09:00", "10:00")

    assert apply_fixes([a], [], []) == [a]
