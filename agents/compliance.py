from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Sequence, Union

import pandas as pd

from core.models import (
    Employee,
    Shift,
    ShiftStatus,
    Suggestion,
    ValidationResult,
    Violation,
    ViolationSeverity,
)
from core.settings import DEFAULT_SETTINGS, EngineSettings
from core.timeutils import duration_minutes, gap_hours, shift_bounds

ShiftLike = Union[Shift, Suggestion]


@dataclass
class WeeklyValidationAgent:
    """
    Read-only weekly compliance report, per employee:

    - total hours (minute-accurate, overnight shifts wrap)
    - min_hours / max_hours warnings against the employee's weekly bounds
    - rest gaps between consecutive shifts:
        * < 8h without the 8h permission  -> gap_8hr_no_permission (error)
        * otherwise < 11h                 -> gap_11hr (warning if permitted
                                             and >= 8h, else error)
    - the smallest rest gap observed

    Employees without shifts in the week are left out of the report.
    """
    settings: EngineSettings = DEFAULT_SETTINGS

    def validate_week(
        self,
        shifts: Sequence[Shift],
        employees: Dict[str, Employee],
        week_start: date,
    ) -> Dict[str, ValidationResult]:
        live = [s for s in shifts if s.status != ShiftStatus.CANCELLED]
        return self._validate(live, employees, week_start)

    def validate_suggestions(
        self,
        suggestions: Sequence[Suggestion],
        employees: Dict[str, Employee],
        week_start: date,
    ) -> Dict[str, ValidationResult]:
        return self._validate(list(suggestions), employees, week_start)

    def _validate(
        self,
        items: List[ShiftLike],
        employees: Dict[str, Employee],
        week_start: date,
    ) -> Dict[str, ValidationResult]:
        week_end = week_start + timedelta(days=6)
        results: Dict[str, ValidationResult] = {}

        for emp_id, emp in employees.items():
            own = [s for s in items if s.employee_id == emp_id and week_start <= s.date <= week_end]
            if not own:
                continue
            own.sort(key=lambda s: shift_bounds(s.date, s.start_time, s.end_time)[0])

            total_minutes = sum(duration_minutes(s.start_time, s.end_time) for s in own)
            result = ValidationResult(
                employee_id=emp_id,
                week_start=week_start,
                total_hours=total_minutes / 60.0,
                has_8hr_permission=emp.has_8hr_rest_permission,
            )
            self._check_hours(emp, result)
            self._check_gaps(emp, own, result)
            results[emp_id] = result

        return results

    @staticmethod
    def _check_hours(emp: Employee, result: ValidationResult) -> None:
        total = result.total_hours
        if emp.min_hours_per_week > 0 and total < emp.min_hours_per_week:
            result.violations.append(
                Violation(
                    kind="min_hours",
                    message=f"Under minimum weekly hours ({total:.2f} < {emp.min_hours_per_week:g})",
                    severity=ViolationSeverity.WARNING,
                    employee_id=emp.id,
                )
            )
        if emp.max_hours_per_week is not None and total > emp.max_hours_per_week:
            result.violations.append(
                Violation(
                    kind="max_hours",
                    message=f"Over maximum weekly hours ({total:.2f} > {emp.max_hours_per_week:g})",
                    severity=ViolationSeverity.WARNING,
                    employee_id=emp.id,
                )
            )

    def _check_gaps(self, emp: Employee, own: List[ShiftLike], result: ValidationResult) -> None:
        permitted = emp.has_8hr_rest_permission
        for prev, curr in zip(own, own[1:]):
            _, prev_end = shift_bounds(prev.date, prev.start_time, prev.end_time)
            curr_start, _ = shift_bounds(curr.date, curr.start_time, curr.end_time)
            gap = gap_hours(prev_end, curr_start)
            if result.min_gap_hours is None or gap < result.min_gap_hours:
                result.min_gap_hours = gap

            if gap >= self.settings.min_rest_hours:
                continue
            if gap < self.settings.min_rest_hours_with_permission and not permitted:
                result.violations.append(
                    Violation(
                        kind="gap_8hr_no_permission",
                        message=f"Rest gap {gap:.2f}h < 8h and no permission",
                        severity=ViolationSeverity.ERROR,
                        employee_id=emp.id,
                        date=curr.date,
                    )
                )
            else:
                soft = permitted and gap >= self.settings.min_rest_hours_with_permission
                result.violations.append(
                    Violation(
                        kind="gap_11hr",
                        message=f"Rest gap {gap:.2f}h < 11h",
                        severity=ViolationSeverity.WARNING if soft else ViolationSeverity.ERROR,
                        employee_id=emp.id,
                        date=curr.date,
                    )
                )


def violations_frame(results: Dict[str, ValidationResult]) -> pd.DataFrame:
    """One row per violation; empty frame with the same columns if none."""
    rows = [
        {
            "employee_id": r.employee_id,
            "week_start": r.week_start.isoformat(),
            "kind": v.kind,
            "severity": v.severity.value,
            "date": v.date.isoformat() if v.date else "",
            "message": v.message,
        }
        for r in results.values()
        for v in r.violations
    ]
    return pd.DataFrame(
        rows, columns=["employee_id", "week_start", "kind", "severity", "date", "message"]
    )
