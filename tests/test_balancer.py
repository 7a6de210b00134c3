from __future__ import annotations

import sys
from datetime import date, time, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agents.conflict_resolution import NOTE_TOP_UP, ConstraintBalancerAgent  # noqa: E402
from core.models import (  # noqa: E402
    Employee,
    EmployeeStatus,
    Shift,
    ShiftStatus,
    Suggestion,
    SystemContext,
    TimeOffRequest,
    TimeOffStatus,
)
from core.timeutils import shift_hours  # noqa: E402

WEEK_START = date(2024, 12, 9)  # Monday


def _day(offset):
    return WEEK_START + timedelta(days=offset)


def _suggestion(emp_id, offset, start, end):
    return Suggestion(
        employee_id=emp_id,
        employee_name=emp_id.upper(),
        date=_day(offset),
        start_time=start,
        end_time=end,
    )


def _emp(emp_id, **kwargs):
    return Employee(id=emp_id, first_name=emp_id.upper(), **kwargs)


def test_time_off_removes_only_approved_days():
    ctx = SystemContext(
        employees={"e1": _emp("e1")},
        time_off=(
            TimeOffRequest("e1", _day(1), _day(2)),
            TimeOffRequest("e1", _day(4), _day(4), status=TimeOffStatus.PENDING),
        ),
    )
    suggestions = [_suggestion("e1", d, time(9, 0), time(17, 0)) for d in range(5)]

    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)

    assert [s.date for s in result.suggestions] == [_day(0), _day(3), _day(4)]
    assert result.dropped_time_off == 2


def test_short_rest_gap_is_dropped_without_permission():
    suggestions = [
        _suggestion("e1", 0, time(14, 0), time(22, 0)),
        _suggestion("e1", 1, time(7, 0), time(15, 0)),  # 9h after Monday
        _suggestion("e1", 2, time(9, 0), time(17, 0)),
    ]
    ctx = SystemContext(employees={"e1": _emp("e1")})
    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert [s.date for s in result.suggestions] == [_day(0), _day(2)]
    assert result.dropped_rest == 1

    ctx = SystemContext(employees={"e1": _emp("e1", has_8hr_rest_permission=True)})
    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert len(result.suggestions) == 3


def test_overnight_shift_rest_gap_counts_from_next_morning():
    suggestions = [
        _suggestion("e1", 0, time(18, 0), time(2, 0)),
        _suggestion("e1", 1, time(10, 0), time(18, 0)),  # 8h after 02:00
    ]
    ctx = SystemContext(employees={"e1": _emp("e1")})
    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert [s.date for s in result.suggestions] == [_day(0)]


def test_persisted_shifts_anchor_the_rest_rule():
    persisted = Shift(
        employee_id="e1",
        date=_day(0),
        start_time=time(15, 0),
        end_time=time(23, 0),
        status=ShiftStatus.SCHEDULED,
    )
    ctx = SystemContext(employees={"e1": _emp("e1")}, shifts=(persisted,))
    suggestions = [_suggestion("e1", 1, time(8, 0), time(16, 0))]

    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert result.suggestions == []


def test_shifts_either_side_of_the_week_anchor_the_rest_rule():
    before = Shift(
        employee_id="e1",
        date=_day(-1),
        start_time=time(22, 0),
        end_time=time(6, 0),  # ends Monday 06:00
        status=ShiftStatus.SCHEDULED,
    )
    after = Shift(
        employee_id="e1",
        date=_day(7),
        start_time=time(6, 0),
        end_time=time(14, 0),
        status=ShiftStatus.SCHEDULED,
    )
    ctx = SystemContext(
        employees={"e1": _emp("e1", max_hours_per_week=8.0)},
        shifts=(before, after),
    )
    suggestions = [
        _suggestion("e1", 0, time(9, 0), time(17, 0)),  # 3h after the Sunday night
        _suggestion("e1", 6, time(14, 0), time(22, 0)),  # 8h before next Monday
    ]

    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert result.suggestions == []
    assert result.dropped_rest == 2

    # a later Monday start is legal, and the neighbouring shifts add no hours
    suggestions = [_suggestion("e1", 0, time(17, 0), time(23, 0))]
    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert result.suggestions == suggestions
    assert result.dropped_max_hours == 0


def test_min_hours_top_up_keeps_clear_of_the_previous_night():
    night_before = Shift(
        employee_id="e1",
        date=_day(-1),
        start_time=time(20, 0),
        end_time=time(4, 0),
        status=ShiftStatus.SCHEDULED,
    )
    ctx = SystemContext(
        employees={"e1": _emp("e1", min_hours_per_week=8.0, availability_days="Monday,Tuesday")},
        shifts=(night_before,),
    )
    (s,) = ConstraintBalancerAgent().balance(ctx, WEEK_START, []).suggestions
    # Monday 12:00 is only 8h after 04:00
    assert s.date == _day(1)


def test_max_hours_trims_latest_shifts_first():
    ctx = SystemContext(employees={"e1": _emp("e1", max_hours_per_week=20.0)})
    suggestions = [_suggestion("e1", d, time(9, 0), time(17, 0)) for d in range(5)]

    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)

    assert [s.date for s in result.suggestions] == [_day(0), _day(1)]
    assert result.dropped_max_hours == 3
    assert sum(shift_hours(s.start_time, s.end_time) for s in result.suggestions) <= 20.0


def test_min_hours_top_up_adds_one_shift_on_quietest_day():
    ctx = SystemContext(
        employees={
            "e1": _emp("e1", min_hours_per_week=20.0),
            "e2": _emp("e2"),
        }
    )
    suggestions = [_suggestion("e2", 0, time(9, 0), time(17, 0))]

    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)

    added = [s for s in result.suggestions if s.employee_id == "e1"]
    assert len(added) == 1
    (s,) = added
    assert s.notes == NOTE_TOP_UP
    assert s.date == _day(1)  # Monday already has e2
    # 40h default week / 5 -> 8h from midday
    assert (s.start_time, s.end_time) == (time(12, 0), time(20, 0))
    assert result.added_top_up == 1

    (shortfall,) = result.shortfalls
    assert shortfall.employee_id == "e1"
    assert shortfall.hours == 8.0
    assert shortfall.min_hours == 20.0


def test_top_up_length_follows_contract_and_cap():
    ctx = SystemContext(
        employees={"e1": _emp("e1", min_hours_per_week=10.0, hours_per_week=20.0)}
    )
    (s,) = ConstraintBalancerAgent().balance(ctx, WEEK_START, []).suggestions
    assert (s.start_time, s.end_time) == (time(12, 0), time(16, 0))

    ctx = SystemContext(
        employees={
            "e1": _emp("e1", min_hours_per_week=20.0, max_hours_per_week=6.0, hours_per_week=40.0)
        }
    )
    (s,) = ConstraintBalancerAgent().balance(ctx, WEEK_START, []).suggestions
    assert (s.start_time, s.end_time) == (time(12, 0), time(18, 0))


def test_top_up_skips_inactive_and_satisfied_employees():
    ctx = SystemContext(
        employees={
            "e1": _emp("e1", min_hours_per_week=8.0),
            "e2": _emp("e2", min_hours_per_week=20.0, status=EmployeeStatus.INACTIVE),
        }
    )
    suggestions = [_suggestion("e1", 0, time(9, 0), time(17, 0))]
    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert result.suggestions == suggestions
    assert result.shortfalls == []


def test_output_is_sorted():
    ctx = SystemContext(employees={"e1": _emp("e1"), "e2": _emp("e2")})
    suggestions = [
        _suggestion("e2", 2, time(9, 0), time(17, 0)),
        _suggestion("e1", 0, time(12, 0), time(20, 0)),
        _suggestion("e2", 0, time(9, 0), time(17, 0)),
    ]
    result = ConstraintBalancerAgent().balance(ctx, WEEK_START, suggestions)
    assert [(s.date, s.employee_id) for s in result.suggestions] == [
        (_day(0), "e2"),
        (_day(0), "e1"),
        (_day(2), "e2"),
    ]
