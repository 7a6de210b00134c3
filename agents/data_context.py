from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from core.models import (
    Booking,
    BusinessHours,
    Employee,
    EmployeeStatus,
    PayType,
    Shift,
    ShiftStatus,
    ShiftType,
    SystemContext,
    TimeOffRequest,
    TimeOffStatus,
)
from core.timeutils import parse_date, parse_time


def _parse_enum(enum_cls, raw: str, default):
    s = (raw or "").strip().lower()
    if not s:
        return default
    try:
        return enum_cls(s)
    except ValueError:
        raise ValueError(f"Unexpected {enum_cls.__name__} value: {raw!r}") from None


def _parse_bool(raw: str) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "y")


def _parse_float(raw: str, default: Optional[float]) -> Optional[float]:
    s = (raw or "").strip()
    if not s:
        return default
    try:
        return float(s)
    except ValueError:
        raise ValueError(f"Expected a number, got {raw!r}") from None


_DAY_COLUMN_VALUES: Dict[str, int] = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

_REQUIRED_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "employees.csv": ("id",),
    "shifts.csv": ("employee_id", "date", "start_time", "end_time"),
    "bookings.csv": ("date", "start_time"),
    "time_off.csv": ("employee_id", "start_date", "end_date"),
    "business_hours.csv": ("day",),
}


@dataclass
class DataContextAgent:
    """
    Loads the engine's input feeds from a directory of CSV files into an
    immutable SystemContext:

    - employees.csv       (required)
    - shifts.csv          historical + already persisted shifts
    - bookings.csv        reservations with covers
    - time_off.csv        time-off requests
    - business_hours.csv  opening hours per weekday

    Missing optional files yield empty feeds. Missing required columns and
    malformed dates or times raise ValueError.
    """
    raw_data_dir: Path

    def load_context(self) -> SystemContext:
        employees = self._load_employees()
        return SystemContext(
            employees=employees,
            shifts=tuple(self._load_shifts()),
            bookings=tuple(self._load_bookings()),
            time_off=tuple(self._load_time_off()),
            business_hours=self._load_business_hours(),
        )

    def _read(self, name: str) -> Optional[pd.DataFrame]:
        path = self.raw_data_dir / name
        if not path.exists():
            return None
        # Read everything as text so parsing stays under our control.
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        df.columns = [str(c).strip() for c in df.columns]
        missing = [c for c in _REQUIRED_COLUMNS.get(name, ()) if c not in df.columns]
        if missing:
            raise ValueError(f"{name} is missing column(s): {', '.join(missing)}")
        return df

    def _load_employees(self) -> Dict[str, Employee]:
        df = self._read("employees.csv")
        if df is None:
            raise FileNotFoundError(
                f"employees.csv not found in {self.raw_data_dir}"
            )

        employees: Dict[str, Employee] = {}
        for _, row in df.iterrows():
            emp_id = str(row.get("id", "")).strip()
            if not emp_id:
                continue
            employees[emp_id] = Employee(
                id=emp_id,
                first_name=str(row.get("first_name", "")).strip(),
                last_name=str(row.get("last_name", "")).strip(),
                department=str(row.get("department", "")).strip(),
                role=str(row.get("role", "")).strip(),
                pay_type=_parse_enum(PayType, row.get("pay_type", ""), PayType.HOURLY),
                hourly_rate=_parse_float(row.get("hourly_rate", ""), 0.0),
                min_hours_per_week=_parse_float(row.get("min_hours_per_week", ""), 0.0),
                max_hours_per_week=_parse_float(row.get("max_hours_per_week", ""), None),
                hours_per_week=_parse_float(row.get("hours_per_week", ""), None),
                is_full_time=_parse_bool(row.get("is_full_time", "")),
                availability_days=str(row.get("availability_days", "")).strip(),
                availability_hours=str(row.get("availability_hours", "")).strip(),
                has_8hr_rest_permission=_parse_bool(row.get("has_8hr_rest_permission", "")),
                status=_parse_enum(EmployeeStatus, row.get("status", ""), EmployeeStatus.ACTIVE),
            )
        return employees

    def _load_shifts(self) -> List[Shift]:
        df = self._read("shifts.csv")
        if df is None:
            return []

        shifts: List[Shift] = []
        for _, row in df.iterrows():
            shift_id = str(row.get("id", "")).strip() or None
            shifts.append(
                Shift(
                    id=shift_id,
                    employee_id=str(row["employee_id"]).strip(),
                    employee_name=str(row.get("employee_name", "")).strip(),
                    date=parse_date(row["date"]),
                    start_time=parse_time(row["start_time"]),
                    end_time=parse_time(row["end_time"]),
                    department=str(row.get("department", "")).strip(),
                    role=str(row.get("role", "")).strip(),
                    status=_parse_enum(ShiftStatus, row.get("status", ""), ShiftStatus.SCHEDULED),
                    shift_type=_parse_enum(ShiftType, row.get("shift_type", ""), ShiftType.REGULAR),
                    pay_type=_parse_enum(PayType, row.get("pay_type", ""), PayType.HOURLY),
                    pay_rate=_parse_float(row.get("pay_rate", ""), 0.0),
                )
            )
        return shifts

    def _load_bookings(self) -> List[Booking]:
        df = self._read("bookings.csv")
        if df is None:
            return []

        bookings: List[Booking] = []
        for _, row in df.iterrows():
            end_raw = str(row.get("end_time", "")).strip()
            duration_raw = str(row.get("duration_minutes", "")).strip()
            covers_raw = str(row.get("covers", "")).strip()
            bookings.append(
                Booking(
                    date=parse_date(row["date"]),
                    start_time=parse_time(row["start_time"]),
                    end_time=parse_time(end_raw) if end_raw else None,
                    duration_minutes=int(float(duration_raw)) if duration_raw else None,
                    covers=int(float(covers_raw)) if covers_raw else 2,
                )
            )
        return bookings

    def _load_time_off(self) -> List[TimeOffRequest]:
        df = self._read("time_off.csv")
        if df is None:
            return []

        return [
            TimeOffRequest(
                employee_id=str(row["employee_id"]).strip(),
                start_date=parse_date(row["start_date"]),
                end_date=parse_date(row["end_date"]),
                status=_parse_enum(TimeOffStatus, row.get("status", ""), TimeOffStatus.APPROVED),
            )
            for _, row in df.iterrows()
        ]

    def _load_business_hours(self) -> Dict[int, BusinessHours]:
        df = self._read("business_hours.csv")
        if df is None:
            return {}

        hours: Dict[int, BusinessHours] = {}
        for _, row in df.iterrows():
            day_raw = str(row["day"]).strip().lower()
            if day_raw not in _DAY_COLUMN_VALUES:
                raise ValueError(f"Unexpected weekday in business hours: {row['day']!r}")
            day = _DAY_COLUMN_VALUES[day_raw]
            closed = _parse_bool(row.get("closed", ""))
            open_raw = str(row.get("open", "")).strip() or "09:00"
            close_raw = str(row.get("close", "")).strip() or "17:00"
            hours[day] = BusinessHours(
                day=day,
                open_time=parse_time(open_raw),
                close_time=parse_time(close_raw),
                closed=closed,
            )
        return hours
