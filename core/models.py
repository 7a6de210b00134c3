from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Dict, Optional, Tuple
from datetime import date, datetime, time


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"
    SUSPENDED = "suspended"


class PayType(str, Enum):
    HOURLY = "hourly"
    SALARY = "salary"


class ShiftStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ShiftType(str, Enum):
    REGULAR = "regular"
    HOLIDAY = "holiday"
    OFF = "off"
    TRAINING = "training"


class TimeOffStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdjustmentKind(str, Enum):
    MODIFIED = "modified"
    DELETED = "deleted"
    ADDED = "added"


class ViolationSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


# (department, role) pair used to split demand across staff categories.
Bucket = Tuple[str, str]


@dataclass
class Employee:
    id: str
    first_name: str
    last_name: str = ""
    department: str = ""
    role: str = ""
    pay_type: PayType = PayType.HOURLY
    hourly_rate: float = 0.0
    min_hours_per_week: float = 0.0
    max_hours_per_week: Optional[float] = None  # None = unbounded
    hours_per_week: Optional[float] = None
    is_full_time: bool = False
    availability_days: str = ""   # e.g. "Monday to Saturday", "Mon, Wed"
    availability_hours: str = ""  # e.g. "08:00-22:00"
    has_8hr_rest_permission: bool = False
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    # True for stand-ins synthesized from history for ids missing in the roster
    is_historical_only: bool = False

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE

    @property
    def bucket(self) -> Bucket:
        return (self.department, self.role)

    @property
    def target_weekly_hours(self) -> float:
        """
        Weekly hours the generator aims for:
        max(min hours, contracted hours) capped at the max hours.
        """
        base = self.hours_per_week
        if base is None:
            base = 40.0 if self.is_full_time else 20.0
        target = max(self.min_hours_per_week, base)
        if self.max_hours_per_week is not None:
            target = min(target, self.max_hours_per_week)
        return target


@dataclass
class Shift:
    employee_id: str
    date: date
    start_time: time
    end_time: time
    employee_name: str = ""
    department: str = ""
    role: str = ""
    status: ShiftStatus = ShiftStatus.SCHEDULED
    shift_type: ShiftType = ShiftType.REGULAR
    pay_type: PayType = PayType.HOURLY
    pay_rate: float = 0.0
    id: Optional[str] = None


@dataclass
class Booking:
    date: date
    start_time: time
    end_time: Optional[time] = None
    duration_minutes: Optional[int] = None  # used when end_time is missing
    covers: int = 2


@dataclass
class TimeOffRequest:
    employee_id: str
    start_date: date
    end_date: date  # inclusive
    status: TimeOffStatus = TimeOffStatus.APPROVED

    def covers_date(self, day: date) -> bool:
        return (
            self.status == TimeOffStatus.APPROVED
            and self.start_date <= day <= self.end_date
        )


@dataclass
class BusinessHours:
    day: int  # 0=Mon .. 6=Sun
    open_time: time
    close_time: time
    closed: bool = False


@dataclass
class Suggestion:
    """
    An unpersisted candidate shift. Becomes a Shift only after acceptance.
    """
    employee_id: str
    employee_name: str
    date: date
    start_time: time
    end_time: time
    department: str = ""
    role: str = ""
    notes: str = ""
    shift_type: ShiftType = ShiftType.REGULAR
    pay_type: PayType = PayType.HOURLY
    pay_rate: float = 0.0

    def to_shift(self, shift_id: Optional[str] = None) -> Shift:
        return Shift(
            id=shift_id,
            employee_id=self.employee_id,
            employee_name=self.employee_name,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            department=self.department,
            role=self.role,
            status=ShiftStatus.DRAFT,
            shift_type=self.shift_type,
            pay_type=self.pay_type,
            pay_rate=self.pay_rate,
        )


@dataclass
class LearningEvent:
    id: str
    timestamp: datetime
    employee_id: str
    date: date
    kind: AdjustmentKind
    original_shift: Dict[str, str] = field(default_factory=dict)
    new_shift: Optional[Dict[str, str]] = None
    reason: str = ""
    demand_context: Optional[Dict[str, Any]] = None


@dataclass
class AIInsights:
    patterns: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    confidence: float = 0.0
    modifications: int = 0
    deletions: int = 0


@dataclass
class Violation:
    kind: str  # "min_hours", "max_hours", "gap_11hr", "gap_8hr_no_permission"
    message: str
    severity: ViolationSeverity
    employee_id: Optional[str] = None
    date: Optional[date] = None


@dataclass
class ValidationResult:
    employee_id: str
    week_start: date
    violations: List[Violation] = field(default_factory=list)
    total_hours: float = 0.0
    min_gap_hours: Optional[float] = None
    has_8hr_permission: bool = False

    @property
    def has_errors(self) -> bool:
        return any(v.severity == ViolationSeverity.ERROR for v in self.violations)


@dataclass
class EmployeeShiftPattern:
    employee_id: str
    average_start: time
    average_end: time
    frequency: int


@dataclass
class DayPattern:
    average_staff: float = 0.0
    # hour of day -> average number of staff present per week
    peak_hours: Dict[int, float] = field(default_factory=dict)
    # ranked, most frequently observed first
    employee_shifts: List[EmployeeShiftPattern] = field(default_factory=list)


@dataclass
class EmployeePreference:
    preferred_days: Dict[int, int] = field(default_factory=dict)
    preferred_slots: Dict[str, int] = field(default_factory=dict)
    total_shifts: int = 0


@dataclass
class HistoricalPatterns:
    day_patterns: Dict[int, DayPattern] = field(default_factory=dict)
    weeks_analyzed: int = 1
    employee_preferences: Dict[str, EmployeePreference] = field(default_factory=dict)
    # hour of day -> number of bookings touching that hour
    peak_demand_hours: Dict[int, int] = field(default_factory=dict)
    # minimal employees synthesized for history ids missing from the roster
    standins: Dict[str, Employee] = field(default_factory=dict)

    def pattern_for(self, weekday: int) -> DayPattern:
        return self.day_patterns.get(weekday, DayPattern())

    @property
    def average_staff_per_day(self) -> float:
        return sum(self.pattern_for(d).average_staff for d in range(7)) / 7.0


@dataclass
class DemandForecast:
    # (date, hour) -> forecast staff-hours needed
    demand_by_date_hour: Dict[Tuple[date, int], float] = field(default_factory=dict)
    # (date, hour) -> bucket -> share of the demand
    need_by_bucket: Dict[Tuple[date, int], Dict[Bucket, float]] = field(default_factory=dict)
    # (weekday, hour) -> calibrated covers per staff-hour
    covers_per_staff_hour: Dict[Tuple[int, int], float] = field(default_factory=dict)

    def demand_at(self, day: date, hour: int) -> float:
        return self.demand_by_date_hour.get((day, hour), 0.0)

    def bucket_need(self, day: date, hour: int, bucket: Bucket) -> Optional[float]:
        """
        Share of demand for this bucket, or None when the slot has no
        historical distribution (callers then fall back to raw demand).
        """
        slot = self.need_by_bucket.get((day, hour))
        if slot is None:
            return None
        return slot.get(bucket)

    def daily_staff_hours(self, day: date) -> float:
        return sum(v for (d, _), v in self.demand_by_date_hour.items() if d == day)


@dataclass
class Shortfall:
    employee_id: str
    employee_name: str
    hours: float
    min_hours: float


@dataclass
class RotaSummary:
    total_suggestions: int = 0
    unique_employees: int = 0
    message: str = ""
    error: Optional[str] = None
    shortfalls: List[Shortfall] = field(default_factory=list)


@dataclass(frozen=True)
class SystemContext:
    """
    Immutable snapshot of everything the engine reads for one venue.
    """
    employees: Dict[str, Employee] = field(default_factory=dict)
    shifts: Tuple[Shift, ...] = ()
    bookings: Tuple[Booking, ...] = ()
    time_off: Tuple[TimeOffRequest, ...] = ()
    # weekday (0=Mon .. 6=Sun) -> opening hours; empty = built-in defaults
    business_hours: Dict[int, BusinessHours] = field(default_factory=dict)

    def time_off_for(self, employee_id: str) -> List[TimeOffRequest]:
        return [t for t in self.time_off if t.employee_id == employee_id]

    def is_on_time_off(self, employee_id: str, day: date) -> bool:
        return any(t.covers_date(day) for t in self.time_off_for(employee_id))
