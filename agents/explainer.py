from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Dict, List

from core.models import (
    HistoricalPatterns,
    Suggestion,
    ValidationResult,
    ViolationSeverity,
)
from core.timeutils import shift_hours
from agents.conflict_resolution import BalanceResult

_WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass
class ExplanationAgent:
    """
    Produces a human-readable summary of one generation run.
    """

    def summarize(
        self,
        week_start: date,
        balance: BalanceResult,
        patterns: HistoricalPatterns,
        min_staff_per_day: int,
        validations: Dict[str, ValidationResult],
    ) -> List[str]:
        lines: List[str] = []
        suggestions = balance.suggestions

        # Basic stats
        employees = {s.employee_id for s in suggestions}
        total_hours = sum(shift_hours(s.start_time, s.end_time) for s in suggestions)
        lines.append(
            f"Suggested {len(suggestions)} shifts ({total_hours:.1f}h) "
            f"for {len(employees)} employees in the week of {week_start.isoformat()}."
        )

        lines.append(
            f"History: {patterns.weeks_analyzed} week(s) analysed, "
            f"{patterns.average_staff_per_day:.2f} staff per day on average; "
            f"minimum staffing target {min_staff_per_day} per open day."
        )
        if patterns.standins:
            lines.append(
                f"{len(patterns.standins)} employee(s) seen only in history were "
                "scheduled from their past shifts."
            )

        # Where suggestions came from
        sources = Counter(s.notes for s in suggestions)
        if sources:
            desc = ", ".join(f"{note.replace('Generated - ', '')} x{n}" for note, n in sources.most_common())
            lines.append(f"Sources: {desc}.")

        lines.append("Per day: " + ", ".join(self._per_day(suggestions, week_start)) + ".")

        lines.append(
            "Balancing: "
            f"{balance.dropped_time_off} dropped for time off, "
            f"{balance.dropped_rest} for rest gaps, "
            f"{balance.dropped_max_hours} over max hours; "
            f"{balance.added_top_up} added to reach minimum hours."
        )

        if balance.shortfalls:
            names = ", ".join(f"{sf.employee_name} ({sf.hours:g}/{sf.min_hours:g}h)" for sf in balance.shortfalls)
            lines.append(f"Still below minimum hours: {names}.")

        errors = sum(
            1 for r in validations.values() for v in r.violations
            if v.severity == ViolationSeverity.ERROR
        )
        warnings = sum(
            1 for r in validations.values() for v in r.violations
            if v.severity == ViolationSeverity.WARNING
        )
        lines.append(f"Validation: {errors} errors and {warnings} warnings on the suggested week.")
        if warnings:
            kinds = Counter(
                v.kind for r in validations.values() for v in r.violations
                if v.severity == ViolationSeverity.WARNING
            ).most_common(3)
            lines.append("Most common warnings: " + ", ".join(f"{k} x{n}" for k, n in kinds) + ".")

        return lines

    @staticmethod
    def _per_day(suggestions: List[Suggestion], week_start: date) -> List[str]:
        counts = Counter((s.date - week_start).days for s in suggestions)
        return [f"{_WEEKDAY_NAMES[i]} {counts.get(i, 0)}" for i in range(7)]
