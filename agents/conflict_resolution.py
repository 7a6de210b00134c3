from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from core.models import (
    Employee,
    Shift,
    ShiftStatus,
    Shortfall,
    Suggestion,
    SystemContext,
)
from core.settings import DEFAULT_SETTINGS, EngineSettings
from core.timeutils import (
    business_hours_for,
    fits_rest_rules,
    from_minutes,
    gap_hours,
    rest_gap_ok,
    shift_bounds,
    shift_hours,
    to_minutes,
    week_dates,
)
from agents.generator import is_available_on, make_suggestion, round_half_up

NOTE_TOP_UP = "Generated - minimum hours top-up"


@dataclass
class BalanceResult:
    suggestions: List[Suggestion] = field(default_factory=list)
    dropped_time_off: int = 0
    dropped_rest: int = 0
    dropped_max_hours: int = 0
    added_top_up: int = 0
    shortfalls: List[Shortfall] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)


@dataclass
class ConstraintBalancerAgent:
    """
    Repairs a candidate rota so it can be accepted as-is:

    1. Drop suggestions on approved time off.
    2. Walk each employee's shifts chronologically and drop any suggestion
       that breaks the 11h (or 8h with permission) rest rule.
    3. Drop the latest suggestions of employees above their weekly max.
    4. Give employees still under their weekly min one extra shift.

    The order matters: hour balancing only ever sees a legal base set.
    Persisted shifts of the week are never dropped; they count towards
    hours and act as fixed anchors for the rest rule, as do persisted shifts
    on the days either side of the week.
    """
    settings: EngineSettings = DEFAULT_SETTINGS

    def balance(
        self,
        ctx: SystemContext,
        week_start: date,
        suggestions: Sequence[Suggestion],
    ) -> BalanceResult:
        result = BalanceResult()
        dates = week_dates(week_start)
        in_week = set(dates)
        outer = {dates[0] - timedelta(days=1), dates[-1] + timedelta(days=1)}
        live = [s for s in ctx.shifts if s.status != ShiftStatus.CANCELLED]
        persisted = [s for s in live if s.date in in_week]
        # Shifts either side of the week only count for rest gaps, never for hours.
        anchors = persisted + [s for s in live if s.date in outer]

        kept = self.filter_time_off(ctx, suggestions)
        result.dropped_time_off = len(suggestions) - len(kept)
        result.logs.append(f"Time-off filter removed {result.dropped_time_off} suggestions.")

        before = len(kept)
        kept = self.enforce_rest_gaps(ctx, kept, anchors)
        result.dropped_rest = before - len(kept)
        result.logs.append(f"Rest-gap check removed {result.dropped_rest} suggestions.")

        before = len(kept)
        kept = self.trim_max_hours(ctx, kept, persisted)
        result.dropped_max_hours = before - len(kept)
        result.logs.append(f"Max-hours trim removed {result.dropped_max_hours} suggestions.")

        added = self.top_up_min_hours(ctx, dates, kept, persisted, anchors)
        result.added_top_up = len(added)
        for s in added:
            result.logs.append(
                f"Min-hours top-up: {s.employee_name} on {s.date.isoformat()} "
                f"{s.start_time:%H:%M}-{s.end_time:%H:%M}."
            )
        kept = kept + added

        result.shortfalls = self.shortfalls(ctx, kept, persisted)
        for sf in result.shortfalls:
            result.logs.append(
                f"{sf.employee_name} still short: {sf.hours:.2f}h of {sf.min_hours:.2f}h minimum."
            )

        result.suggestions = sorted(kept, key=lambda s: (s.date, s.start_time, s.employee_id))
        return result

    # --- stage 1 ---------------------------------------------------------

    @staticmethod
    def filter_time_off(ctx: SystemContext, suggestions: Sequence[Suggestion]) -> List[Suggestion]:
        return [s for s in suggestions if not ctx.is_on_time_off(s.employee_id, s.date)]

    # --- stage 2 ---------------------------------------------------------

    def enforce_rest_gaps(
        self,
        ctx: SystemContext,
        suggestions: Sequence[Suggestion],
        anchors: Sequence[Shift],
    ) -> List[Suggestion]:
        fixed: Dict[str, List[Tuple[datetime, datetime]]] = {}
        for s in anchors:
            fixed.setdefault(s.employee_id, []).append(shift_bounds(s.date, s.start_time, s.end_time))

        by_employee: Dict[str, List[Suggestion]] = {}
        for s in suggestions:
            by_employee.setdefault(s.employee_id, []).append(s)

        kept: List[Suggestion] = []
        for emp_id, items in by_employee.items():
            allow_8hr = self._allows_8hr(ctx.employees.get(emp_id))
            items.sort(key=lambda s: shift_bounds(s.date, s.start_time, s.end_time)[0])

            previous_end: Optional[datetime] = None
            for s in items:
                bounds = shift_bounds(s.date, s.start_time, s.end_time)
                if previous_end is not None:
                    if not rest_gap_ok(gap_hours(previous_end, bounds[0]), allow_8hr, self.settings):
                        continue
                if not fits_rest_rules(bounds, fixed.get(emp_id, []), allow_8hr, self.settings):
                    continue
                kept.append(s)
                previous_end = bounds[1]
        return kept

    @staticmethod
    def _allows_8hr(emp: Optional[Employee]) -> bool:
        return bool(emp and emp.has_8hr_rest_permission)

    # --- stage 3 ---------------------------------------------------------

    def trim_max_hours(
        self,
        ctx: SystemContext,
        suggestions: Sequence[Suggestion],
        persisted: Sequence[Shift],
    ) -> List[Suggestion]:
        hours = self._hours_by_employee(suggestions, persisted)
        dropped = set()

        for emp_id, emp in ctx.employees.items():
            cap = emp.max_hours_per_week
            if cap is None or hours.get(emp_id, 0.0) <= cap:
                continue
            # Latest first
            own = sorted(
                (i for i, s in enumerate(suggestions) if s.employee_id == emp_id),
                key=lambda i: (suggestions[i].date, suggestions[i].start_time),
                reverse=True,
            )
            for i in own:
                if hours[emp_id] <= cap:
                    break
                s = suggestions[i]
                hours[emp_id] -= shift_hours(s.start_time, s.end_time)
                dropped.add(i)

        return [s for i, s in enumerate(suggestions) if i not in dropped]

    # --- stage 4 ---------------------------------------------------------

    def top_up_min_hours(
        self,
        ctx: SystemContext,
        dates: List[date],
        suggestions: Sequence[Suggestion],
        persisted: Sequence[Shift],
        anchors: Sequence[Shift] = (),
    ) -> List[Suggestion]:
        hours = self._hours_by_employee(suggestions, persisted)

        coverage: Dict[date, int] = {d: 0 for d in dates}
        assigned: Dict[str, set] = {}
        intervals: Dict[str, List[Tuple[datetime, datetime]]] = {}
        for item in list(persisted) + list(suggestions):
            coverage[item.date] = coverage.get(item.date, 0) + 1
            assigned.setdefault(item.employee_id, set()).add(item.date)
        for item in list(anchors or persisted) + list(suggestions):
            intervals.setdefault(item.employee_id, []).append(
                shift_bounds(item.date, item.start_time, item.end_time)
            )

        added: List[Suggestion] = []
        for emp_id, emp in ctx.employees.items():
            if not emp.is_active or emp.min_hours_per_week <= 0:
                continue
            current = hours.get(emp_id, 0.0)
            if current + self.settings.hours_tolerance >= emp.min_hours_per_week:
                continue

            weekly = emp.hours_per_week or self.settings.default_weekly_hours
            length = max(
                self.settings.min_extra_shift_hours,
                min(self.settings.max_extra_shift_hours, round_half_up(weekly / 5)),
            )
            length_min = length * 60
            if emp.max_hours_per_week is not None:
                headroom_min = int((emp.max_hours_per_week - current) * 60)
                length_min = min(length_min, headroom_min)
            if length_min <= 0:
                continue

            candidates = [
                d for d in dates
                if d not in assigned.get(emp_id, set())
                and is_available_on(emp, d)
                and not ctx.is_on_time_off(emp_id, d)
            ]
            candidates.sort(key=lambda d: coverage[d])

            for day in candidates:
                window = self._top_up_window(ctx, day, length_min)
                if window is None:
                    continue
                start, end = window
                bounds = shift_bounds(day, start, end)
                if not fits_rest_rules(
                    bounds, intervals.get(emp_id, []), emp.has_8hr_rest_permission, self.settings
                ):
                    continue
                suggestion = make_suggestion(emp, day, start, end, NOTE_TOP_UP)
                added.append(suggestion)
                coverage[day] += 1
                assigned.setdefault(emp_id, set()).add(day)
                intervals.setdefault(emp_id, []).append(bounds)
                break
        return added

    def _top_up_window(self, ctx: SystemContext, day: date, length_min: int) -> Optional[Tuple[time, time]]:
        hours = business_hours_for(ctx.business_hours, day.weekday(), self.settings)
        if hours.closed:
            return None
        start_m = max(to_minutes(self.settings.top_up_start), to_minutes(hours.open_time))
        end_m = min(start_m + length_min, to_minutes(self.settings.top_up_latest_end))
        if end_m <= start_m:
            return None
        return from_minutes(start_m), from_minutes(end_m)

    # --- reporting -------------------------------------------------------

    def shortfalls(
        self,
        ctx: SystemContext,
        suggestions: Sequence[Suggestion],
        persisted: Sequence[Shift],
    ) -> List[Shortfall]:
        hours = self._hours_by_employee(suggestions, persisted)
        out: List[Shortfall] = []
        for emp_id, emp in ctx.employees.items():
            if not emp.is_active or emp.min_hours_per_week <= 0:
                continue
            total = hours.get(emp_id, 0.0)
            if total + self.settings.hours_tolerance < emp.min_hours_per_week:
                out.append(
                    Shortfall(
                        employee_id=emp_id,
                        employee_name=emp.name,
                        hours=round(total, 2),
                        min_hours=emp.min_hours_per_week,
                    )
                )
        return out

    @staticmethod
    def _hours_by_employee(
        suggestions: Sequence[Suggestion],
        persisted: Sequence[Shift],
    ) -> Dict[str, float]:
        hours: Dict[str, float] = {}
        for item in list(persisted) + list(suggestions):
            hours[item.employee_id] = hours.get(item.employee_id, 0.0) + shift_hours(
                item.start_time, item.end_time
            )
        return hours
