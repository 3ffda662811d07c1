"""Per-employee x per-weekday bucketing of schedule assignments for one week."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fairshift.domain.models import (
    WORKWEEK,
    AnomalyKind,
    AssignmentMatrix,
    BucketingAnomaly,
    BucketingResult,
    DateRange,
    EmployeeRecord,
    ScheduleAssignment,
    WeekScheduleSummary,
    Weekday,
)
from fairshift.domain.week import normalize_week, parse_instant, to_local_date
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _id_order(record_id: str) -> tuple[int, int, str]:
    # Numeric ids compare as numbers, any other id as text after them.
    text = str(record_id)
    if text.isdecimal():
        return (0, int(text), text)
    return (1, 0, text)


def _creation_order_key(assignment: ScheduleAssignment) -> tuple[datetime, tuple[int, int, str]]:
    created = parse_instant(assignment.created_at) if assignment.created_at else _EARLIEST
    return (created, _id_order(assignment.id))


def _empty_row() -> dict[Weekday, Optional[ScheduleAssignment]]:
    return {weekday: None for weekday in WORKWEEK}


def employee_assignments(employees: Iterable[EmployeeRecord]) -> list[ScheduleAssignment]:
    """Flatten the schedule references nested in employee records."""
    flattened: list[ScheduleAssignment] = []
    for employee in employees:
        for ref in employee.schedules:
            if ref.workday_date is None:
                logger.debug(
                    "Skipping schedule %s of employee %s without a workday date",
                    ref.id,
                    employee.id,
                )
                continue
            flattened.append(
                ScheduleAssignment(
                    id=ref.id,
                    workday_id=ref.workday_id,
                    employee_id=employee.id,
                    assigned_by_id=ref.assigned_by_id,
                    type=None,
                    workday_date=ref.workday_date,
                    created_at=ref.created_at,
                )
            )
    return flattened


def bucketize_assignments(
    assignments: Iterable[ScheduleAssignment],
    date_range: DateRange,
    timezone_name: str,
    employee_ids: Optional[Iterable[str]] = None,
) -> BucketingResult:
    """Place each assignment in its (employee, weekday) cell for the week.

    Assignments outside ``[week_start, week_start + 4]`` belong to another
    week's view and are dropped. Weekend dates of the selected calendar week
    and duplicate cells are dropped with an anomaly. Within a cell the most
    recently created record wins; equal or missing creation times fall back to
    the larger id, numerically when both ids are numeric.
    """
    week = normalize_week(date_range.week_start, timezone_name)
    week_end = week.week_start + timedelta(days=4)
    calendar_week_end = week.week_start + timedelta(days=6)

    matrix: AssignmentMatrix = {}
    for employee_id in employee_ids or ():
        matrix.setdefault(str(employee_id), _empty_row())

    anomalies: list[BucketingAnomaly] = []
    ordered = sorted(assignments, key=_creation_order_key)
    for assignment in ordered:
        local_day = to_local_date(assignment.workday_date, timezone_name)
        weekday = Weekday.from_date(local_day)

        if weekday is None:
            if week.week_start <= local_day <= calendar_week_end:
                anomalies.append(
                    BucketingAnomaly(
                        kind=AnomalyKind.WEEKEND_ASSIGNMENT,
                        assignment_id=assignment.id,
                        employee_id=assignment.employee_id,
                        local_date=local_day,
                        detail=f"{local_day.strftime('%A')} is not a schedulable workday",
                    )
                )
            continue
        if not week.week_start <= local_day <= week_end:
            continue

        row = matrix.setdefault(assignment.employee_id, _empty_row())
        previous = row[weekday]
        if previous is not None:
            # Records are visited oldest first, so the incoming one is newer.
            anomalies.append(
                BucketingAnomaly(
                    kind=AnomalyKind.DUPLICATE_CELL,
                    assignment_id=previous.id,
                    employee_id=assignment.employee_id,
                    local_date=local_day,
                    detail=(
                        f"{weekday.value} already assigned; kept newer schedule "
                        f"{assignment.id}"
                    ),
                )
            )
        row[weekday] = assignment

    if anomalies:
        logger.warning(
            "Bucketing week %s produced %d anomalies",
            week.week_key,
            len(anomalies),
        )
    ordered_matrix = {employee_id: matrix[employee_id] for employee_id in sorted(matrix)}
    return BucketingResult(week=week, matrix=ordered_matrix, anomalies=anomalies)


def bucketize_employees(
    employees: Iterable[EmployeeRecord],
    date_range: DateRange,
    timezone_name: str,
) -> BucketingResult:
    """Bucket the schedules nested in employee records; every employee gets a row."""
    employee_list = list(employees)
    return bucketize_assignments(
        employee_assignments(employee_list),
        date_range,
        timezone_name,
        employee_ids=[employee.id for employee in employee_list],
    )


def summarize_week(
    assignments: Iterable[ScheduleAssignment],
    employee_count: int,
    date_range: DateRange,
    timezone_name: str,
    assignment_type: Optional[str] = "FAIR",
) -> WeekScheduleSummary:
    """Headline counts for one week, restricted to a single assignment type."""
    week = normalize_week(date_range.week_start, timezone_name)
    week_end = week.week_start + timedelta(days=4)

    day_counts = {weekday: 0 for weekday in WORKWEEK}
    total = 0
    for assignment in assignments:
        if assignment_type is not None and assignment.type != assignment_type:
            continue
        local_day = to_local_date(assignment.workday_date, timezone_name)
        weekday = Weekday.from_date(local_day)
        if weekday is None or not week.week_start <= local_day <= week_end:
            continue
        day_counts[weekday] += 1
        total += 1

    average = round(total / employee_count, 1) if employee_count else 0.0
    return WeekScheduleSummary(
        week_start=week.week_start,
        total_employees=employee_count,
        total_schedules=total,
        average_per_employee=average,
        day_counts=day_counts,
    )
