from __future__ import annotations

import sys
from datetime import date, time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agents.history import HistoricalPatternAgent  # noqa: E402
from core.models import Employee, Shift, ShiftStatus  # noqa: E402

WEEK_START = date(2024, 12, 9)
MON_1 = date(2024, 11, 25)
MON_2 = date(2024, 12, 2)
FRI_1 = date(2024, 11, 29)
FRI_2 = date(2024, 12, 6)


def _shift(emp_id, day, start, end, name="", status=ShiftStatus.COMPLETED):
    return Shift(
        employee_id=emp_id,
        employee_name=name,
        date=day,
        start_time=start,
        end_time=end,
        department="Bar",
        role="Bartender",
        status=status,
    )


EMPLOYEES = {
    "e1": Employee(id="e1", first_name="Amelia", last_name="Hart"),
    "e2": Employee(id="e2", first_name="Ben", last_name="Okafor"),
}


def test_history_window_excludes_target_week_cancelled_and_old_shifts():
    agent = HistoricalPatternAgent()
    shifts = [
        _shift("e1", MON_2, time(9, 0), time(17, 0)),
        _shift("e1", WEEK_START, time(9, 0), time(17, 0)),
        _shift("e1", MON_1, time(9, 0), time(17, 0), status=ShiftStatus.CANCELLED),
        _shift("e1", date(2024, 10, 13), time(9, 0), time(17, 0)),
    ]
    window = agent.history_window(shifts, WEEK_START)
    assert [s.date for s in window] == [MON_2]


def test_day_pattern_averages_and_ranking():
    shifts = [
        _shift("e1", MON_1, time(9, 0), time(17, 0)),
        _shift("e1", MON_2, time(10, 0), time(18, 0)),
        _shift("e2", MON_2, time(12, 0), time(20, 0)),
    ]
    patterns = HistoricalPatternAgent().analyze(shifts, EMPLOYEES)

    assert patterns.weeks_analyzed == 2
    monday = patterns.pattern_for(0)
    assert monday.average_staff == 1.5
    assert patterns.pattern_for(1).average_staff == 0.0

    first, second = monday.employee_shifts
    assert first.employee_id == "e1"
    assert first.frequency == 2
    assert (first.average_start, first.average_end) == (time(9, 30), time(17, 30))
    assert second.employee_id == "e2"

    # 12:00-17:00 is covered by both weeks' e1 plus e2 in week two
    assert monday.peak_hours[12] == 1.5
    assert monday.peak_hours[9] == 0.5


def test_overnight_windows_average_across_midnight():
    shifts = [
        _shift("e1", FRI_1, time(22, 0), time(2, 0)),
        _shift("e1", FRI_2, time(23, 0), time(3, 0)),
    ]
    patterns = HistoricalPatternAgent().analyze(shifts, EMPLOYEES)
    (friday,) = patterns.pattern_for(4).employee_shifts
    assert friday.average_start == time(22, 30)
    assert friday.average_end == time(2, 30)


def test_unknown_ids_become_standins():
    shifts = [
        _shift("x9", FRI_1, time(18, 0), time(0, 0), name="Harry Stone"),
        _shift("x9", FRI_2, time(18, 0), time(0, 0), name="Harry Stone"),
    ]
    patterns = HistoricalPatternAgent().analyze(shifts, EMPLOYEES)

    standin = patterns.standins["x9"]
    assert standin.name == "Harry Stone"
    assert standin.is_historical_only
    assert standin.is_active
    assert standin.target_weekly_hours == 0.0
    assert standin.bucket == ("Bar", "Bartender")
    assert "x9" not in patterns.employee_preferences


def test_preferences_count_days_and_slots():
    shifts = [
        _shift("e1", MON_1, time(9, 0), time(17, 0)),
        _shift("e1", MON_2, time(9, 0), time(17, 0)),
        _shift("e1", FRI_2, time(12, 0), time(20, 0)),
    ]
    patterns = HistoricalPatternAgent().analyze(shifts, EMPLOYEES)
    pref = patterns.employee_preferences["e1"]
    assert pref.total_shifts == 3
    assert pref.preferred_days == {0: 2, 4: 1}
    assert pref.preferred_slots["09:00-17:00"] == 2
    assert patterns.employee_preferences["e2"].total_shifts == 0


def test_no_history_gives_empty_patterns():
    patterns = HistoricalPatternAgent().analyze([], EMPLOYEES)
    assert patterns.average_staff_per_day == 0.0
    assert all(not patterns.pattern_for(d).employee_shifts for d in range(7))
