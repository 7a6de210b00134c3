from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from core.models import Suggestion
from core.timeutils import format_time, shift_hours

EXPORT_COLUMNS = [
    "date",
    "employee_id",
    "employee_name",
    "department",
    "role",
    "start_time",
    "end_time",
    "hours",
    "shift_type",
    "pay_type",
    "pay_rate",
    "notes",
]


def suggestions_frame(suggestions: Sequence[Suggestion]) -> pd.DataFrame:
    rows: List[dict] = [
        {
            "date": s.date.isoformat(),
            "employee_id": s.employee_id,
            "employee_name": s.employee_name,
            "department": s.department,
            "role": s.role,
            "start_time": format_time(s.start_time),
            "end_time": format_time(s.end_time),
            "hours": round(shift_hours(s.start_time, s.end_time), 2),
            "shift_type": s.shift_type.value,
            "pay_type": s.pay_type.value,
            "pay_rate": s.pay_rate,
            "notes": s.notes,
        }
        for s in suggestions
    ]
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    return df.sort_values(["date", "start_time", "employee_id"]).reset_index(drop=True)


@dataclass
class ExportAgent:
    """
    Writes the suggested rota to CSV so managers can inspect it.
    One row per suggested shift.
    """

    output_dir: Path

    def export_rota(self, week_start: date, suggestions: Sequence[Suggestion]) -> Path:
        df = suggestions_frame(suggestions)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.output_dir / f"rota_{week_start.isoformat()}.csv"
        df.to_csv(out_path, index=False)
        return out_path
