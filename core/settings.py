from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Dict

from core.models import BusinessHours

# Fallback opening hours when the venue has configured none.
DEFAULT_BUSINESS_HOURS: Dict[int, BusinessHours] = {
    0: BusinessHours(day=0, open_time=time(9, 0), close_time=time(17, 0)),
    1: BusinessHours(day=1, open_time=time(9, 0), close_time=time(17, 0)),
    2: BusinessHours(day=2, open_time=time(9, 0), close_time=time(17, 0)),
    3: BusinessHours(day=3, open_time=time(9, 0), close_time=time(17, 0)),
    4: BusinessHours(day=4, open_time=time(9, 0), close_time=time(17, 0)),
    5: BusinessHours(day=5, open_time=time(10, 0), close_time=time(16, 0)),
    6: BusinessHours(day=6, open_time=time(10, 0), close_time=time(16, 0), closed=True),
}

# Used for a weekday missing from a configured table.
FALLBACK_DAY_OPEN = time(9, 0)
FALLBACK_DAY_CLOSE = time(17, 0)

# Used when an employee has no parseable availability window.
DEFAULT_AVAILABILITY_START = time(9, 0)
DEFAULT_AVAILABILITY_END = time(17, 0)

# Rest rules (UK Working Time style)
MIN_REST_HOURS = 11.0
MIN_REST_HOURS_WITH_PERMISSION = 8.0


@dataclass(frozen=True)
class EngineSettings:
    """
    Tunable constants of the rota engine. Override per run, e.g.
    EngineSettings(default_covers_per_staff_hour=15).
    """
    history_weeks: int = 8
    default_covers_per_staff_hour: float = 20.0
    min_staff_needed: float = 0.25
    default_booking_minutes: int = 120
    default_booking_covers: int = 2

    # Coverage top-up threshold
    min_staff_floor: int = 3
    min_staff_active_share: float = 0.7
    min_staff_fallback_share: float = 0.5
    default_shift_hours: float = 8.0

    # Demand-guided extra hours
    scan_window_hours: int = 4
    min_extra_shift_hours: int = 4
    max_extra_shift_hours: int = 8
    hours_tolerance: float = 0.25

    # Shortfall safety net
    max_emergency_shifts: int = 3
    emergency_shift_hours: int = 4

    # Min-hours top-up
    top_up_start: time = time(12, 0)
    top_up_latest_end: time = time(23, 0)
    default_weekly_hours: float = 40.0

    min_rest_hours: float = MIN_REST_HOURS
    min_rest_hours_with_permission: float = MIN_REST_HOURS_WITH_PERMISSION

    # Learning feedback
    confidence_saturation_events: int = 50

    business_hours_defaults: Dict[int, BusinessHours] = field(
        default_factory=lambda: dict(DEFAULT_BUSINESS_HOURS)
    )


DEFAULT_SETTINGS = EngineSettings()
