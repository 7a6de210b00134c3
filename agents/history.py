from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Sequence

import pandas as pd

from core.models import (
    Booking,
    DayPattern,
    Employee,
    EmployeePreference,
    EmployeeShiftPattern,
    EmployeeStatus,
    HistoricalPatterns,
    Shift,
    ShiftStatus,
)
from core.settings import DEFAULT_SETTINGS, EngineSettings
from core.timeutils import (
    booking_hours,
    duration_minutes,
    format_time,
    from_minutes,
    hours_touched,
    to_minutes,
)


def _standin_from_shift(shift: Shift) -> Employee:
    """
    Minimal employee record for a historical id that is no longer on the
    roster. Assumed active, with no availability restriction and no target
    hours of its own.
    """
    name = shift.employee_name.strip() or "Unknown Employee"
    parts = name.split(" ")
    return Employee(
        id=shift.employee_id,
        first_name=parts[0] or "Unknown",
        last_name=" ".join(parts[1:]) or "Employee",
        department=shift.department,
        role=shift.role,
        hours_per_week=0.0,
        status=EmployeeStatus.ACTIVE,
        is_historical_only=True,
    )


@dataclass
class HistoricalPatternAgent:
    """
    Mines past shifts for day-of-week staffing habits:

    - average staff per weekday (shifts / weeks analyzed)
    - hour -> average presence per weekday
    - per employee and weekday, the averaged start/end window and how often
      it was observed, ranked most frequent first

    Times are averaged as minutes since midnight. Overnight shifts are
    unwrapped (+24h on the end) before averaging and folded back afterwards.
    """
    settings: EngineSettings = DEFAULT_SETTINGS

    def history_window(self, shifts: Sequence[Shift], week_start: date) -> List[Shift]:
        """Non-cancelled shifts in the look-back window before week_start."""
        window_start = week_start - timedelta(weeks=self.settings.history_weeks)
        return [
            s for s in shifts
            if window_start <= s.date < week_start and s.status != ShiftStatus.CANCELLED
        ]

    def analyze(
        self,
        shifts: Sequence[Shift],
        employees: Dict[str, Employee],
        bookings: Sequence[Booking] = (),
    ) -> HistoricalPatterns:
        patterns = HistoricalPatterns(
            day_patterns={d: DayPattern() for d in range(7)},
            peak_demand_hours=self._peak_demand_hours(bookings),
            employee_preferences={emp_id: EmployeePreference() for emp_id in employees},
        )

        usable = [s for s in shifts if s.status != ShiftStatus.CANCELLED]
        if not usable:
            return patterns

        # Latest record wins for the stand-in's name/department.
        for shift in sorted(usable, key=lambda s: s.date):
            if shift.employee_id and shift.employee_id not in employees:
                patterns.standins[shift.employee_id] = _standin_from_shift(shift)

        df = self._frame(usable)
        weeks = max(1, int(df["iso_week"].nunique()))
        patterns.weeks_analyzed = weeks

        staff_counts = df.groupby("weekday").size()
        for weekday, count in staff_counts.items():
            patterns.day_patterns[int(weekday)].average_staff = round(count / weeks, 2)

        presence = (
            df[["weekday", "hours"]]
            .explode("hours")
            .dropna(subset=["hours"])
            .groupby(["weekday", "hours"])
            .size()
        )
        for (weekday, hour), count in presence.items():
            patterns.day_patterns[int(weekday)].peak_hours[int(hour)] = round(count / weeks, 2)

        per_employee = (
            df.groupby(["weekday", "employee_id"])
            .agg(
                start=("start_min", "mean"),
                end=("end_min", "mean"),
                frequency=("start_min", "size"),
            )
            .reset_index()
            .sort_values(
                ["weekday", "frequency", "employee_id"],
                ascending=[True, False, True],
            )
        )
        for row in per_employee.itertuples(index=False):
            patterns.day_patterns[int(row.weekday)].employee_shifts.append(
                EmployeeShiftPattern(
                    employee_id=row.employee_id,
                    average_start=from_minutes(row.start),
                    average_end=from_minutes(row.end),
                    frequency=int(row.frequency),
                )
            )

        self._fill_preferences(df, patterns)
        return patterns

    @staticmethod
    def _frame(shifts: Sequence[Shift]) -> pd.DataFrame:
        rows = []
        for s in shifts:
            start_min = to_minutes(s.start_time)
            iso = s.date.isocalendar()
            rows.append(
                {
                    "employee_id": s.employee_id,
                    "weekday": s.date.weekday(),
                    "iso_week": f"{iso[0]}-{iso[1]:02d}",
                    "start_min": start_min,
                    "end_min": start_min + duration_minutes(s.start_time, s.end_time),
                    "slot": f"{format_time(s.start_time)}-{format_time(s.end_time)}",
                    "hours": hours_touched(s.start_time, s.end_time),
                }
            )
        return pd.DataFrame(rows)

    @staticmethod
    def _fill_preferences(df: pd.DataFrame, patterns: HistoricalPatterns) -> None:
        for emp_id, group in df.groupby("employee_id"):
            pref = patterns.employee_preferences.get(emp_id)
            if pref is None:
                continue  # only roster employees are profiled
            pref.preferred_days = {
                int(k): int(v) for k, v in group["weekday"].value_counts().items()
            }
            pref.preferred_slots = {
                str(k): int(v) for k, v in group["slot"].value_counts().items()
            }
            pref.total_shifts = int(len(group))

    def _peak_demand_hours(self, bookings: Sequence[Booking]) -> Dict[int, int]:
        hourly: Dict[int, int] = {}
        for b in bookings:
            for hour in booking_hours(b.start_time, b.end_time, b.duration_minutes, self.settings):
                hourly[hour] = hourly.get(hour, 0) + 1
        return hourly
