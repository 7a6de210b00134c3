from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from core.models import (
    Bucket,
    BusinessHours,
    DemandForecast,
    Employee,
    HistoricalPatterns,
    PayType,
    Shift,
    ShiftStatus,
    ShiftType,
    Suggestion,
    SystemContext,
)
from core.settings import (
    DEFAULT_AVAILABILITY_END,
    DEFAULT_AVAILABILITY_START,
    DEFAULT_SETTINGS,
    EngineSettings,
)
from core.timeutils import (
    business_hours_for,
    fits_rest_rules,
    from_minutes,
    hours_touched,
    parse_availability_days,
    parse_availability_hours,
    shift_bounds,
    shift_hours,
    to_minutes,
    week_dates,
)

NOTE_HISTORICAL = "Generated - historical pattern"
NOTE_MIN_COVERAGE = "Generated - minimum coverage"
NOTE_EXTRA_HOURS = "Generated - additional hours"
NOTE_EMERGENCY = "Generated - limited emergency coverage"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_available_on(emp: Employee, day: date) -> bool:
    """No availability description means the employee can work any day."""
    days = parse_availability_days(emp.availability_days)
    return not days or day.weekday() in days


def availability_window(emp: Employee) -> Tuple[int, int]:
    """Availability as minutes since midnight, defaulting to 09:00-17:00."""
    parsed = parse_availability_hours(emp.availability_hours)
    if parsed is not None:
        return parsed
    return to_minutes(DEFAULT_AVAILABILITY_START), to_minutes(DEFAULT_AVAILABILITY_END)


def business_window(hours: BusinessHours) -> Tuple[int, int]:
    open_m = to_minutes(hours.open_time)
    close_m = to_minutes(hours.close_time)
    if close_m <= open_m:
        close_m += 24 * 60  # closes after midnight
    return open_m, close_m


def make_suggestion(emp: Employee, day: date, start: time, end: time, notes: str) -> Suggestion:
    return Suggestion(
        employee_id=emp.id,
        employee_name=emp.name,
        date=day,
        start_time=start,
        end_time=end,
        department=emp.department,
        role=emp.role,
        notes=notes,
        shift_type=ShiftType.REGULAR,
        pay_type=PayType.HOURLY,
        pay_rate=emp.hourly_rate,
    )


class _WeekState:
    """
    Bookkeeping for one generation run: coverage per date, which dates each
    employee already works, their shift intervals (for rest checks), hours
    so far and hours already assigned per demand bucket.
    """

    def __init__(self, dates: List[date], persisted: Sequence[Shift], neighbours: Sequence[Shift]):
        self.coverage: Dict[date, int] = {d: 0 for d in dates}
        self.assigned: Dict[str, Set[date]] = {}
        self.intervals: Dict[str, List[Tuple[datetime, datetime]]] = {}
        self.hours: Dict[str, float] = {}
        self.by_bucket: Dict[Tuple[date, int], Dict[Bucket, float]] = {}

        for s in persisted:
            self.coverage[s.date] = self.coverage.get(s.date, 0) + 1
            self.assigned.setdefault(s.employee_id, set()).add(s.date)
            self.hours[s.employee_id] = self.hours.get(s.employee_id, 0.0) + shift_hours(
                s.start_time, s.end_time
            )
        # Shifts just outside the week still constrain rest gaps.
        for s in list(persisted) + list(neighbours):
            self.intervals.setdefault(s.employee_id, []).append(
                shift_bounds(s.date, s.start_time, s.end_time)
            )

    def works_on(self, employee_id: str, day: date) -> bool:
        return day in self.assigned.get(employee_id, set())

    def rest_ok(self, emp: Employee, day: date, start: time, end: time, settings: EngineSettings) -> bool:
        return fits_rest_rules(
            shift_bounds(day, start, end),
            self.intervals.get(emp.id, []),
            emp.has_8hr_rest_permission,
            settings,
        )

    def add(self, suggestion: Suggestion, bucket: Bucket) -> None:
        emp_id = suggestion.employee_id
        self.coverage[suggestion.date] = self.coverage.get(suggestion.date, 0) + 1
        self.assigned.setdefault(emp_id, set()).add(suggestion.date)
        self.intervals.setdefault(emp_id, []).append(
            shift_bounds(suggestion.date, suggestion.start_time, suggestion.end_time)
        )
        self.hours[emp_id] = self.hours.get(emp_id, 0.0) + shift_hours(
            suggestion.start_time, suggestion.end_time
        )
        for hour in hours_touched(suggestion.start_time, suggestion.end_time):
            slot = self.by_bucket.setdefault((suggestion.date, hour), {})
            slot[bucket] = slot.get(bucket, 0.0) + 1


@dataclass
class GenerationResult:
    suggestions: List[Suggestion] = field(default_factory=list)
    min_staff_per_day: int = 0
    coverage_by_date: Dict[date, int] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)


@dataclass
class CandidateGeneratorAgent:
    """
    Builds the candidate rota for one week in four greedy passes:

    1. Base suggestions: replay each employee's averaged historical window
       for the matching weekday.
    2. Coverage top-up: bring every open day up to the minimum staff level
       with available employees (business hours ∩ availability).
    3. Extra hours: give employees still below their weekly target shifts
       on their lowest-coverage days, starting where unmet demand for their
       (department, role) bucket is highest.
    4. Safety net: if the whole week is implausibly thin, give employees
       without any suggestion a few short shifts from opening time.

    At most one generated shift per employee per date.
    """
    settings: EngineSettings = DEFAULT_SETTINGS

    def generate(
        self,
        ctx: SystemContext,
        week_start: date,
        patterns: HistoricalPatterns,
        forecast: DemandForecast,
    ) -> GenerationResult:
        dates = week_dates(week_start)
        employees = self.employee_map(ctx, patterns)
        active = [e for e in employees.values() if e.is_active]

        in_week = set(dates)
        outer = {dates[0] - timedelta(days=1), dates[-1] + timedelta(days=1)}
        live = [s for s in ctx.shifts if s.status != ShiftStatus.CANCELLED]
        state = _WeekState(
            dates,
            persisted=[s for s in live if s.date in in_week],
            neighbours=[s for s in live if s.date in outer],
        )

        result = GenerationResult()

        base = self.base_suggestions(ctx, dates, patterns, employees, state)
        result.logs.append(f"Base suggestions from historical patterns: {len(base)}.")

        min_staff = self.min_staff_per_day(patterns, forecast, dates, len(active))
        result.min_staff_per_day = min_staff
        result.logs.append(f"Minimum staff per day: {min_staff}.")

        coverage = self.coverage_top_up(ctx, dates, active, min_staff, state)
        result.logs.append(f"Coverage top-up shifts: {len(coverage)}.")

        extra = self.demand_guided_hours(ctx, dates, active, forecast, state)
        result.logs.append(f"Demand-guided extra-hour shifts: {len(extra)}.")

        suggestions = base + coverage + extra
        emergency = self.shortfall_safety_net(ctx, dates, active, min_staff, suggestions, state)
        if emergency:
            result.logs.append(
                f"Suggestion count was low; added {len(emergency)} emergency shifts."
            )

        result.suggestions = suggestions + emergency
        result.coverage_by_date = dict(state.coverage)
        return result

    @staticmethod
    def employee_map(ctx: SystemContext, patterns: HistoricalPatterns) -> Dict[str, Employee]:
        """Roster employees plus stand-ins for ids only seen in history."""
        employees = dict(ctx.employees)
        for emp_id, standin in patterns.standins.items():
            employees.setdefault(emp_id, standin)
        return employees

    # --- 1. base suggestions ---------------------------------------------

    def base_suggestions(
        self,
        ctx: SystemContext,
        dates: List[date],
        patterns: HistoricalPatterns,
        employees: Dict[str, Employee],
        state: _WeekState,
    ) -> List[Suggestion]:
        out: List[Suggestion] = []
        for day in dates:
            pattern = patterns.pattern_for(day.weekday())
            if pattern.average_staff <= 0:
                continue
            for emp_shift in pattern.employee_shifts:
                emp = employees.get(emp_shift.employee_id)
                if emp is None:
                    continue
                # Stand-ins are not subject to roster status checks.
                if not emp.is_historical_only and not emp.is_active:
                    continue
                if state.works_on(emp.id, day):
                    continue
                suggestion = make_suggestion(
                    emp, day, emp_shift.average_start, emp_shift.average_end, NOTE_HISTORICAL
                )
                state.add(suggestion, emp.bucket)
                out.append(suggestion)
        return out

    # --- 2. coverage top-up ----------------------------------------------

    def min_staff_per_day(
        self,
        patterns: HistoricalPatterns,
        forecast: DemandForecast,
        dates: List[date],
        active_count: int,
    ) -> int:
        avg_hist = patterns.average_staff_per_day
        if avg_hist > 0:
            base = round_half_up(avg_hist)
        else:
            avg_demand = sum(forecast.daily_staff_hours(d) for d in dates) / len(dates)
            if avg_demand > 0:
                base = math.ceil(avg_demand / self.settings.default_shift_hours)
            else:
                base = math.ceil(active_count * self.settings.min_staff_fallback_share)
        cap = math.ceil(active_count * self.settings.min_staff_active_share)
        return max(self.settings.min_staff_floor, min(cap, base))

    def coverage_top_up(
        self,
        ctx: SystemContext,
        dates: List[date],
        active: List[Employee],
        min_staff: int,
        state: _WeekState,
    ) -> List[Suggestion]:
        out: List[Suggestion] = []
        for day in sorted(dates, key=lambda d: state.coverage[d]):
            if state.coverage[day] >= min_staff:
                continue
            hours = business_hours_for(ctx.business_hours, day.weekday(), self.settings)
            if hours.closed:
                continue

            available = [
                e for e in active
                if is_available_on(e, day)
                and not state.works_on(e.id, day)
                and not ctx.is_on_time_off(e.id, day)
            ]
            # Least loaded first so the extra coverage is spread around.
            available.sort(key=lambda e: state.hours.get(e.id, 0.0))

            for emp in available:
                if state.coverage[day] >= min_staff:
                    break
                window = self._coverage_window(emp, hours)
                if window is None:
                    continue
                start, end = window
                if not state.rest_ok(emp, day, start, end, self.settings):
                    continue
                suggestion = make_suggestion(emp, day, start, end, NOTE_MIN_COVERAGE)
                state.add(suggestion, emp.bucket)
                out.append(suggestion)
        return out

    @staticmethod
    def _coverage_window(emp: Employee, hours: BusinessHours) -> Optional[Tuple[time, time]]:
        open_m, close_m = business_window(hours)
        avail_start, avail_end = availability_window(emp)
        start = max(open_m, avail_start)
        end = min(close_m, avail_end)
        if end - start < 60:
            return None
        return from_minutes(start), from_minutes(end)

    # --- 3. demand-guided extra hours ------------------------------------

    def demand_guided_hours(
        self,
        ctx: SystemContext,
        dates: List[date],
        active: List[Employee],
        forecast: DemandForecast,
        state: _WeekState,
    ) -> List[Suggestion]:
        out: List[Suggestion] = []
        tolerance = self.settings.hours_tolerance

        for emp in active:
            remaining = emp.target_weekly_hours - state.hours.get(emp.id, 0.0)
            if remaining <= tolerance:
                continue

            avail_start, avail_end = availability_window(emp)
            days = sorted(
                (d for d in dates if is_available_on(emp, d)),
                key=lambda d: state.coverage[d],
            )
            for day in days:
                if remaining <= tolerance:
                    break
                if state.works_on(emp.id, day) or ctx.is_on_time_off(emp.id, day):
                    continue
                if business_hours_for(ctx.business_hours, day.weekday(), self.settings).closed:
                    continue

                start_hour = self._best_start_hour(emp, day, avail_start, avail_end, forecast, state)
                length = max(
                    self.settings.min_extra_shift_hours,
                    min(self.settings.max_extra_shift_hours, round_half_up(remaining)),
                )
                start_m = start_hour * 60
                end_m = min(avail_end, start_m + length * 60)
                if end_m - start_m < 60:
                    continue
                start, end = from_minutes(start_m), from_minutes(end_m)
                if not state.rest_ok(emp, day, start, end, self.settings):
                    continue

                suggestion = make_suggestion(emp, day, start, end, NOTE_EXTRA_HOURS)
                state.add(suggestion, emp.bucket)
                out.append(suggestion)
                remaining -= shift_hours(start, end)
        return out

    def _best_start_hour(
        self,
        emp: Employee,
        day: date,
        avail_start: int,
        avail_end: int,
        forecast: DemandForecast,
        state: _WeekState,
    ) -> int:
        """
        Whole-hour start inside the availability window whose scan window
        covers the most unmet demand. Earliest start wins ties.
        """
        scan = self.settings.scan_window_hours
        first = math.ceil(avail_start / 60)
        last = max(first, avail_end // 60 - scan)
        best_start, best_score = first, float("-inf")
        for hour in range(first, last + 1):
            score = sum(
                self._unmet_need(emp.bucket, day, hour + offset, forecast, state)
                for offset in range(scan)
            )
            if score > best_score:
                best_start, best_score = hour, score
        return best_start

    @staticmethod
    def _unmet_need(
        bucket: Bucket,
        day: date,
        hour: int,
        forecast: DemandForecast,
        state: _WeekState,
    ) -> float:
        need = forecast.bucket_need(day, hour, bucket)
        if need is None:
            # No historical distribution for this slot: use raw demand.
            return forecast.demand_at(day, hour)
        already = state.by_bucket.get((day, hour), {}).get(bucket, 0.0)
        return max(0.0, need - already)

    # --- 4. shortfall safety net -----------------------------------------

    def shortfall_safety_net(
        self,
        ctx: SystemContext,
        dates: List[date],
        active: List[Employee],
        min_staff: int,
        suggestions: List[Suggestion],
        state: _WeekState,
    ) -> List[Suggestion]:
        threshold = max(2 * len(active), 5 * min_staff)
        if len(suggestions) >= threshold:
            return []

        business_days = [
            d for d in dates
            if not business_hours_for(ctx.business_hours, d.weekday(), self.settings).closed
        ]
        if not business_days:
            return []

        covered = {s.employee_id for s in suggestions}
        without = [e for e in active if e.id not in covered]
        per_employee = min(self.settings.max_emergency_shifts, len(business_days))

        out: List[Suggestion] = []
        for idx, emp in enumerate(without):
            for k in range(per_employee):
                day = business_days[(idx + k) % len(business_days)]
                if state.works_on(emp.id, day) or ctx.is_on_time_off(emp.id, day):
                    continue
                hours = business_hours_for(ctx.business_hours, day.weekday(), self.settings)
                open_m, close_m = business_window(hours)
                end_m = min(open_m + self.settings.emergency_shift_hours * 60, close_m)
                if end_m <= open_m:
                    continue
                suggestion = make_suggestion(
                    emp, day, from_minutes(open_m), from_minutes(end_m), NOTE_EMERGENCY
                )
                state.add(suggestion, emp.bucket)
                out.append(suggestion)
        return out
