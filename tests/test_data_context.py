from __future__ import annotations

import sys
from datetime import date, time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agents.data_context import DataContextAgent  # noqa: E402
from core.models import EmployeeStatus, ShiftStatus, TimeOffStatus  # noqa: E402

EMPLOYEES_CSV = """id,first_name,last_name,department,role,pay_type,hourly_rate,min_hours_per_week,max_hours_per_week,hours_per_week,is_full_time,availability_days,availability_hours,has_8hr_rest_permission,status
e1,Amelia,Hart,Front of House,Supervisor,hourly,16.50,30,40,38,true,Monday to Saturday,08:00-23:00,true,active
e2,Ben,Okafor,Kitchen,Chef,hourly,12.20,,,,false,,,false,inactive
"""


def _write(tmp_path: Path, name: str, text: str) -> None:
    (tmp_path / name).write_text(text, encoding="utf-8")


def test_loads_employees_and_defaults_missing_feeds(tmp_path):
    _write(tmp_path, "employees.csv", EMPLOYEES_CSV)

    ctx = DataContextAgent(raw_data_dir=tmp_path).load_context()

    assert set(ctx.employees) == {"e1", "e2"}
    e1 = ctx.employees["e1"]
    assert e1.name == "Amelia Hart"
    assert e1.max_hours_per_week == 40.0
    assert e1.has_8hr_rest_permission is True
    assert e1.bucket == ("Front of House", "Supervisor")

    e2 = ctx.employees["e2"]
    assert e2.status == EmployeeStatus.INACTIVE
    assert e2.max_hours_per_week is None
    assert e2.min_hours_per_week == 0.0

    assert ctx.shifts == ()
    assert ctx.bookings == ()
    assert ctx.time_off == ()
    assert ctx.business_hours == {}


def test_loads_all_feeds(tmp_path):
    _write(tmp_path, "employees.csv", EMPLOYEES_CSV)
    _write(
        tmp_path,
        "shifts.csv",
        "id,employee_id,employee_name,date,start_time,end_time,department,role,status\n"
        "s1,e1,Amelia Hart,2024-12-02,18:00,00:00,Front of House,Supervisor,completed\n"
        ",e1,Amelia Hart,2024-12-03,09:00,17:00,Front of House,Supervisor,cancelled\n",
    )
    _write(
        tmp_path,
        "bookings.csv",
        "date,start_time,end_time,duration_minutes,covers\n"
        "2024-12-09,19:00,,90,4\n"
        "2024-12-09,12:30,14:00,,\n",
    )
    _write(
        tmp_path,
        "time_off.csv",
        "employee_id,start_date,end_date,status\n"
        "e1,2024-12-10,2024-12-11,approved\n",
    )
    _write(
        tmp_path,
        "business_hours.csv",
        "day,open,close,closed\nMonday,11:00,23:00,false\nSun,,,true\n",
    )

    ctx = DataContextAgent(raw_data_dir=tmp_path).load_context()

    s1, s2 = ctx.shifts
    assert s1.id == "s1"
    assert s1.end_time == time(0, 0)
    assert s2.id is None
    assert s2.status == ShiftStatus.CANCELLED

    b1, b2 = ctx.bookings
    assert b1.end_time is None and b1.duration_minutes == 90 and b1.covers == 4
    assert b2.end_time == time(14, 0) and b2.covers == 2

    (off,) = ctx.time_off
    assert off.status == TimeOffStatus.APPROVED
    assert ctx.is_on_time_off("e1", date(2024, 12, 11))
    assert not ctx.is_on_time_off("e1", date(2024, 12, 12))

    assert ctx.business_hours[0].open_time == time(11, 0)
    assert ctx.business_hours[6].closed


def test_missing_roster_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        DataContextAgent(raw_data_dir=tmp_path).load_context()


def test_malformed_values_raise_value_error(tmp_path):
    _write(tmp_path, "employees.csv", EMPLOYEES_CSV)
    _write(
        tmp_path,
        "shifts.csv",
        "employee_id,date,start_time,end_time\ne1,09/12/2024,09:00,17:00\n",
    )
    with pytest.raises(ValueError):
        DataContextAgent(raw_data_dir=tmp_path).load_context()


def test_unknown_status_raises_value_error(tmp_path):
    _write(
        tmp_path,
        "employees.csv",
        "id,first_name,status\ne1,Amelia,on-leave\n",
    )
    with pytest.raises(ValueError):
        DataContextAgent(raw_data_dir=tmp_path).load_context()


@pytest.mark.parametrize(
    "name, text, column",
    [
        ("shifts.csv", "employee_id,start_time,end_time\ne1,09:00,17:00\n", "date"),
        ("bookings.csv", "date,covers\n2024-12-09,4\n", "start_time"),
        ("time_off.csv", "start_date,end_date\n2024-12-09,2024-12-10\n", "employee_id"),
        ("business_hours.csv", "open,close\n09:00,17:00\n", "day"),
    ],
)
def test_missing_required_column_raises_value_error(tmp_path, name, text, column):
    _write(tmp_path, "employees.csv", EMPLOYEES_CSV)
    _write(tmp_path, name, text)
    with pytest.raises(ValueError, match=f"{name} is missing column\\(s\\): {column}"):
        DataContextAgent(raw_data_dir=tmp_path).load_context()
