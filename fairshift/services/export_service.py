"""Tabular export of one week's assignment matrix."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from fairshift.domain.models import WORKWEEK, BucketingResult, EmployeeRecord
from fairshift.domain.week import week_dates


BASE_COLUMNS = ["employee_id", "full_name", "email", "position"]


def build_week_frame(
    bucketing: BucketingResult,
    employees: Iterable[EmployeeRecord],
) -> pd.DataFrame:
    """One row per employee, one column per weekday holding the scheduled date."""
    by_id = {employee.id: employee for employee in employees}
    dates = week_dates(bucketing.week)
    weekday_columns = [weekday.value for weekday in WORKWEEK]

    rows: list[dict[str, str]] = []
    for employee_id, cells in bucketing.matrix.items():
        employee = by_id.get(employee_id)
        row = {
            "employee_id": employee_id,
            "full_name": employee.full_name if employee else "",
            "email": employee.email if employee else "",
            "position": (employee.position or "") if employee else "",
        }
        for weekday in WORKWEEK:
            row[weekday.value] = dates[weekday].isoformat() if cells.get(weekday) else ""
        rows.append(row)

    frame = pd.DataFrame(rows, columns=BASE_COLUMNS + weekday_columns)
    if not frame.empty:
        frame = frame.sort_values(["full_name", "employee_id"], kind="stable").reset_index(drop=True)
    return frame


def export_week_csv(
    bucketing: BucketingResult,
    employees: Iterable[EmployeeRecord],
) -> str:
    return build_week_frame(bucketing, employees).to_csv(index=False)
