"""Domain models for week-scoped schedule derivation and fairness review."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"

    @classmethod
    def from_date(cls, value: date) -> Optional["Weekday"]:
        """Return the bucket for a calendar date, or None for weekends."""
        index = value.weekday()
        if index > 4:
            return None
        return WORKWEEK[index]


WORKWEEK: tuple[Weekday, ...] = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
)


@dataclass(frozen=True)
class DateRange:
    from_date: date
    to_date: date
    week_start: date

    @property
    def week_key(self) -> str:
        return self.week_start.isoformat()

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=4)

    def to_api_dict(self) -> dict[str, str]:
        return {
            "from": self.from_date.isoformat(),
            "to": self.to_date.isoformat(),
            "weekStart": self.week_start.isoformat(),
        }


@dataclass(frozen=True)
class ScheduleRef:
    """Schedule reference nested inside an employee record."""

    id: str
    workday_id: str
    assigned_by_id: str | None
    created_at: datetime | None
    workday_date: datetime | None


@dataclass(frozen=True)
class EmployeeRecord:
    id: str
    full_name: str
    email: str
    position: str | None
    schedules: tuple[ScheduleRef, ...] = ()


@dataclass(frozen=True)
class ScheduleAssignment:
    id: str
    workday_id: str
    employee_id: str
    assigned_by_id: str | None
    type: str | None
    workday_date: datetime
    created_at: datetime | None = None


AssignmentMatrix = dict[str, dict[Weekday, Optional[ScheduleAssignment]]]


class AnomalyKind(str, Enum):
    WEEKEND_ASSIGNMENT = "WEEKEND_ASSIGNMENT"
    DUPLICATE_CELL = "DUPLICATE_CELL"


@dataclass(frozen=True)
class BucketingAnomaly:
    kind: AnomalyKind
    assignment_id: str
    employee_id: str
    local_date: date
    detail: str


@dataclass(frozen=True)
class BucketingResult:
    week: DateRange
    matrix: AssignmentMatrix
    anomalies: list[BucketingAnomaly]


@dataclass(frozen=True)
class WeekScheduleSummary:
    week_start: date
    total_employees: int
    total_schedules: int
    average_per_employee: float
    day_counts: dict[Weekday, int]


@dataclass(frozen=True)
class FairnessMetric:
    """One algorithm's fairness summary as reported by the scheduling service.

    Older comparison responses only carry ``total``, ``fairness_index`` and
    ``scores``; the remaining fields are ``None`` for those.
    """

    total: int
    fairness_index: float
    scores: dict[str, float]
    average_score: float | None = None
    total_penalty: float | None = None
    preferred_days_count: dict[str, int] | None = None
    non_preferred_days_count: dict[str, int] | None = None
    total_days_count: dict[str, int] | None = None
    out_of_bounds: tuple[str, ...] | None = None
    invalid_assignments: tuple[str, ...] | None = None

    @property
    def has_day_counts(self) -> bool:
        return self.total_days_count is not None

    @property
    def reports_violations(self) -> bool:
        return self.out_of_bounds is not None or self.invalid_assignments is not None


class FairnessRule(str, Enum):
    SCORE_OUT_OF_BOUNDS = "SCORE_OUT_OF_BOUNDS"
    INVALID_DAY_COUNT = "INVALID_DAY_COUNT"


@dataclass(frozen=True)
class FairnessViolation:
    employee_id: str
    rule: FairnessRule
    value: float
    detail: str


@dataclass(frozen=True)
class FairnessReport:
    out_of_bounds: list[str] = field(default_factory=list)
    invalid_assignments: list[str] = field(default_factory=list)
    violations: list[FairnessViolation] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.violations


@dataclass(frozen=True)
class ComparisonResult:
    week_start: date
    metrics: dict[str, FairnessMetric]


@dataclass(frozen=True)
class ComparisonRow:
    algorithm: str
    name: str
    fairness_index: float
    average_score: float | None
    total_penalty: float | None
    total: int


@dataclass(frozen=True)
class GenerationOutcome:
    algorithm: str
    week_start: date
    created: list[ScheduleAssignment]

    @property
    def already_scheduled(self) -> bool:
        return not self.created
