from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from core.models import BusinessHours
from core.settings import (
    DEFAULT_SETTINGS,
    EngineSettings,
    FALLBACK_DAY_CLOSE,
    FALLBACK_DAY_OPEN,
)

MINUTES_PER_DAY = 24 * 60

_DAY_NAMES: Dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
_DAY_ABBREVIATIONS: Dict[str, int] = {name[:3]: idx for name, idx in _DAY_NAMES.items()}

_HOURS_RANGE_RE = re.compile(r"(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})")


def parse_date(raw) -> date:
    """
    Accepts a date, a datetime or an ISO 'YYYY-MM-DD' string.
    Malformed strings are a contract violation and raise ValueError.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValueError(f"Malformed date value: {raw!r}") from None


def parse_time(raw) -> time:
    """
    Parse 'HH:MM' (or 'HH:MM:SS') into a time. '24:00' is read as midnight.
    """
    if isinstance(raw, time):
        return raw
    text = str(raw).strip()
    parts = text.split(":")
    if len(parts) < 2 or not all(p.isdigit() for p in parts[:2]):
        raise ValueError(f"Malformed time value: {raw!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour == 24 and minute == 0:
        return time(0, 0)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Time out of range: {raw!r}")
    return time(hour, minute)


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: float) -> time:
    whole = int(minutes) % MINUTES_PER_DAY
    return time(whole // 60, whole % 60)


def format_time(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def duration_minutes(start: time, end: time) -> int:
    """
    Minutes between start and end; an end at or before the start wraps
    past midnight (+24h).
    """
    return (to_minutes(end) - to_minutes(start)) % MINUTES_PER_DAY


def shift_hours(start: time, end: time) -> float:
    return duration_minutes(start, end) / 60.0


def shift_bounds(day: date, start: time, end: time) -> Tuple[datetime, datetime]:
    """
    Absolute start/end timestamps of a shift. Overnight shifts end on the
    following calendar day.
    """
    start_dt = datetime.combine(day, start)
    return start_dt, start_dt + timedelta(minutes=duration_minutes(start, end))


def gap_hours(prev_end: datetime, next_start: datetime) -> float:
    return (next_start - prev_end).total_seconds() / 3600.0


def rest_gap_ok(
    gap: float,
    allow_8hr: bool,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> bool:
    if gap >= settings.min_rest_hours:
        return True
    return allow_8hr and gap >= settings.min_rest_hours_with_permission


def fits_rest_rules(
    candidate: Tuple[datetime, datetime],
    others: Iterable[Tuple[datetime, datetime]],
    allow_8hr: bool,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> bool:
    """
    True if the candidate interval keeps a legal rest gap to every other
    interval of the same employee, before or after it.
    """
    cand_start, cand_end = candidate
    for other_start, other_end in others:
        if other_end <= cand_start:
            gap = gap_hours(other_end, cand_start)
        elif cand_end <= other_start:
            gap = gap_hours(cand_end, other_start)
        else:
            return False  # overlapping
        if not rest_gap_ok(gap, allow_8hr, settings):
            return False
    return True


def hours_touched(start: time, end: time) -> List[int]:
    """
    Hours of day a time span touches: the start hour up to the end, where
    the end hour only counts when the span runs past the top of that hour.
    Wraps past midnight.
    """
    start_min = to_minutes(start)
    total = duration_minutes(start, end)
    if total == 0:
        return []
    first = start_min // 60
    last = (start_min + total - 1) // 60
    return [h % 24 for h in range(first, last + 1)]


def normalize_week_start(value) -> date:
    day = parse_date(value)
    return day - timedelta(days=day.weekday())


def week_dates(week_start: date) -> List[date]:
    return [week_start + timedelta(days=i) for i in range(7)]


def parse_availability_days(text: Optional[str]) -> List[int]:
    """
    Parse descriptions like 'Monday to Saturday', 'Fri-Mon', 'Mon, Wed'.

    Empty text returns [] which callers treat as "any day". Text that names
    no recognisable day defaults to Monday..Friday.
    """
    if not text or not str(text).strip():
        return []
    s = str(text).lower().replace(",", " ").replace("-", " to ")
    if " to " in s:
        left, right = [p.strip() for p in s.split(" to ", 1)]
        a = _day_index(left)
        b = _day_index(right)
        if a is not None and b is not None:
            if a <= b:
                return list(range(a, b + 1))
            return list(range(a, 7)) + list(range(0, b + 1))
    found = {idx for idx in (_day_index(tok) for tok in s.split()) if idx is not None}
    if not found:
        return [0, 1, 2, 3, 4]
    return sorted(found)


def _day_index(token: str) -> Optional[int]:
    token = token.strip().strip(".")
    if token in _DAY_NAMES:
        return _DAY_NAMES[token]
    return _DAY_ABBREVIATIONS.get(token[:3]) if len(token) >= 3 else None


def parse_availability_hours(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    '08:00-22:00' -> (480, 1320) minutes since midnight, or None.
    """
    if not text:
        return None
    m = _HOURS_RANGE_RE.search(str(text))
    if not m:
        return None
    sh, sm, eh, em = (int(g) for g in m.groups())
    start, end = sh * 60 + sm, eh * 60 + em
    if end <= start:
        return None
    return start, end


def business_hours_for(
    configured: Dict[int, BusinessHours],
    weekday: int,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> BusinessHours:
    if not configured:
        return settings.business_hours_defaults[weekday]
    found = configured.get(weekday)
    if found is not None:
        return found
    return BusinessHours(day=weekday, open_time=FALLBACK_DAY_OPEN, close_time=FALLBACK_DAY_CLOSE)


def booking_hours(
    start: time,
    end: Optional[time],
    duration: Optional[int],
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> List[int]:
    """
    Hours of day a booking occupies. Without an explicit end the booking
    lasts `duration` minutes, or the default booking length.
    """
    if end is None:
        minutes = duration if duration else settings.default_booking_minutes
        end = from_minutes(to_minutes(start) + minutes)
    return hours_touched(start, end)
