from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from core.models import (
    Booking,
    Bucket,
    DemandForecast,
    Employee,
    Shift,
    ShiftStatus,
)
from core.settings import DEFAULT_SETTINGS, EngineSettings
from core.timeutils import booking_hours, hours_touched, week_dates

SlotKey = Tuple[int, int]  # (weekday, hour)


@dataclass
class DemandForecastAgent:
    """
    Turns booking volume into hourly staff-need estimates.

    Calibration: for each (weekday, hour) we compare the covers booked in the
    history window with the staff that were on shift at that time. Their
    ratio (covers per staff-hour) is whatever staffing density previously
    served that level of demand; slots without both numbers use the default
    ratio from EngineSettings.

    Forecast: each booking of the target week needs covers / ratio staff in
    every hour it touches, with a floor of `min_staff_needed`; those needs
    are summed per (date, hour).

    The forecast is then split across (department, role) buckets in
    proportion to which buckets historically worked that (weekday, hour).
    """
    settings: EngineSettings = DEFAULT_SETTINGS

    def forecast(
        self,
        week_start: date,
        bookings: Sequence[Booking],
        historical_shifts: Sequence[Shift],
        employees: Dict[str, Employee],
    ) -> DemandForecast:
        week = set(week_dates(week_start))
        history_bookings = [b for b in bookings if b.date < week_start]
        target_bookings = [b for b in bookings if b.date in week]
        shifts = [s for s in historical_shifts if s.status != ShiftStatus.CANCELLED]

        covers_by_slot = self.covers_by_dow_hour(history_bookings)
        staff_by_slot = self.staff_by_dow_hour(shifts)

        ratios: Dict[SlotKey, float] = {}
        for slot, covers in covers_by_slot.items():
            staff = staff_by_slot.get(slot, 0.0)
            if covers > 0 and staff > 0:
                ratios[slot] = covers / staff

        result = DemandForecast(covers_per_staff_hour=ratios)

        result.demand_by_date_hour.update(self._staff_by_date_hour(target_bookings, ratios))

        weights = self.bucket_weights(shifts, employees)
        for (day, hour), demand in result.demand_by_date_hour.items():
            slot_weights = weights.get((day.weekday(), hour))
            if not slot_weights:
                continue
            total = sum(slot_weights.values()) or 1.0
            result.need_by_bucket[(day, hour)] = {
                bucket: demand * (w / total) for bucket, w in slot_weights.items()
            }

        return result

    def covers_per_staff_hour(self, forecast: DemandForecast, weekday: int, hour: int) -> float:
        return forecast.covers_per_staff_hour.get(
            (weekday, hour), self.settings.default_covers_per_staff_hour
        )

    def covers_by_dow_hour(self, bookings: Sequence[Booking]) -> Dict[SlotKey, float]:
        rows = self._booking_rows(bookings, key=lambda b: b.date.weekday())
        return {
            (int(k), hour): v
            for (k, hour), v in self._sum_by(rows, ["key", "hour"], "covers").items()
        }

    def staff_by_dow_hour(self, shifts: Sequence[Shift]) -> Dict[SlotKey, float]:
        rows = [
            {"key": s.date.weekday(), "hour": hour, "staff": 1}
            for s in shifts
            for hour in hours_touched(s.start_time, s.end_time)
        ]
        return {
            (int(k), hour): v
            for (k, hour), v in self._sum_by(rows, ["key", "hour"], "staff").items()
        }

    def bucket_weights(
        self,
        shifts: Sequence[Shift],
        employees: Dict[str, Employee],
    ) -> Dict[SlotKey, Dict[Bucket, float]]:
        """
        (weekday, hour) -> (department, role) -> number of historical shifts
        of that bucket present in the slot.
        """
        rows = []
        for s in shifts:
            emp = employees.get(s.employee_id)
            department = (emp.department if emp else "") or s.department
            role = (emp.role if emp else "") or s.role
            for hour in hours_touched(s.start_time, s.end_time):
                rows.append(
                    {
                        "weekday": s.date.weekday(),
                        "hour": hour,
                        "department": department,
                        "role": role,
                        "n": 1,
                    }
                )
        if not rows:
            return {}

        grouped = (
            pd.DataFrame(rows)
            .groupby(["weekday", "hour", "department", "role"])["n"]
            .sum()
        )
        weights: Dict[SlotKey, Dict[Bucket, float]] = {}
        for (weekday, hour, department, role), n in grouped.items():
            weights.setdefault((int(weekday), int(hour)), {})[(department, role)] = float(n)
        return weights

    def _staff_by_date_hour(
        self,
        bookings: Sequence[Booking],
        ratios: Dict[SlotKey, float],
    ) -> Dict[Tuple[date, int], float]:
        # Each booking is floored on its own before the hour is summed.
        # ISO strings keep pandas from coercing the dates to Timestamps
        rows = self._booking_rows(bookings, key=lambda b: b.date.isoformat())
        for row in rows:
            weekday = date.fromisoformat(row["key"]).weekday()
            ratio = ratios.get((weekday, row["hour"]), self.settings.default_covers_per_staff_hour)
            row["staff"] = max(self.settings.min_staff_needed, row["covers"] / ratio)
        return {
            (date.fromisoformat(k), hour): v
            for (k, hour), v in self._sum_by(rows, ["key", "hour"], "staff").items()
        }

    def _booking_rows(self, bookings: Sequence[Booking], key) -> List[dict]:
        return [
            {
                "key": key(b),
                "hour": hour,
                "covers": b.covers or self.settings.default_booking_covers,
            }
            for b in bookings
            for hour in booking_hours(b.start_time, b.end_time, b.duration_minutes, self.settings)
        ]

    @staticmethod
    def _sum_by(rows: List[dict], keys: List[str], value: str) -> Dict[tuple, float]:
        if not rows:
            return {}
        grouped = pd.DataFrame(rows).groupby(keys)[value].sum()
        out: Dict[tuple, float] = {}
        for (k, hour), total in grouped.items():
            out[(k, int(hour))] = float(total)
        return out
