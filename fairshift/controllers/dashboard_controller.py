"""Controller layer for the scheduling dashboard workflow endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from fairshift.controllers.dependencies import get_dashboard_service
from fairshift.domain.models import (
    WORKWEEK,
    BucketingResult,
    ComparisonRow,
    DateRange,
    FairnessReport,
    ScheduleAssignment,
)
from fairshift.domain.week import InvalidDateError, week_dates
from fairshift.repository.schedule_client import RemoteRequestError
from fairshift.services.dashboard_service import (
    DashboardValidationError,
    DashboardWorkflowService,
)
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["dashboard"])


class DateRangeResponse(BaseModel):
    from_date: date
    to_date: date
    week_start: date


class WeekResponse(BaseModel):
    selected: DateRangeResponse
    week: DateRangeResponse


class SelectWeekRequest(BaseModel):
    date: str = Field(min_length=1)


class FetchStateResponse(BaseModel):
    status: str
    error: Optional[str] = None
    stale: bool = False


class CellResponse(BaseModel):
    schedule_id: str
    date: date
    type: Optional[str] = None


class MatrixRowResponse(BaseModel):
    employee_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    position: Optional[str] = None
    cells: dict[str, Optional[CellResponse]]


class AnomalyResponse(BaseModel):
    kind: str
    assignment_id: str
    employee_id: str
    local_date: date
    detail: str


class ScheduleMatrixResponse(FetchStateResponse):
    week: DateRangeResponse
    weekdays: dict[str, date]
    rows: list[MatrixRowResponse]
    anomalies: list[AnomalyResponse]


class ScheduleSummaryResponse(FetchStateResponse):
    week_start: date
    total_employees: int = Field(ge=0)
    total_schedules: int = Field(ge=0)
    average_per_employee: float = Field(ge=0.0)
    day_counts: dict[str, int]


class ViolationResponse(BaseModel):
    employee_id: str
    rule: str
    value: float
    detail: str


class FairnessReportResponse(BaseModel):
    out_of_bounds: list[str]
    invalid_assignments: list[str]
    violations: list[ViolationResponse]


class ComparisonRowResponse(BaseModel):
    algorithm: str
    name: str
    fairness_index: float
    average_score: Optional[float] = None
    total_penalty: Optional[float] = None
    total: int


class FairnessSummaryResponse(BaseModel):
    algorithm: str
    name: str
    average_score: Optional[float] = None
    fairness_index: float
    total_schedules: int
    total_penalty: Optional[float] = None
    report: FairnessReportResponse


class ComparisonResponse(FetchStateResponse):
    week: DateRangeResponse
    rows: list[ComparisonRowResponse]
    summary: Optional[FairnessSummaryResponse] = None
    reports: dict[str, FairnessReportResponse]


class AssignmentResponse(BaseModel):
    id: str
    workday_id: str
    employee_id: str
    assigned_by_id: Optional[str] = None
    type: Optional[str] = None
    workday_date: str


class GenerateResponse(BaseModel):
    algorithm: str
    week_start: date
    already_scheduled: bool
    created_count: int = Field(ge=0)
    created: list[AssignmentResponse]
    comparison: Optional[ComparisonResponse] = None


class AssignRequest(BaseModel):
    employee_id: str = Field(min_length=1)
    date: str = Field(min_length=1)


def _range_payload(date_range: DateRange) -> DateRangeResponse:
    return DateRangeResponse(
        from_date=date_range.from_date,
        to_date=date_range.to_date,
        week_start=date_range.week_start,
    )


def _report_payload(report: FairnessReport) -> FairnessReportResponse:
    return FairnessReportResponse(
        out_of_bounds=list(report.out_of_bounds),
        invalid_assignments=list(report.invalid_assignments),
        violations=[
            ViolationResponse(
                employee_id=violation.employee_id,
                rule=violation.rule.value,
                value=violation.value,
                detail=violation.detail,
            )
            for violation in report.violations
        ],
    )


def _assignment_payload(assignment: ScheduleAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        workday_id=assignment.workday_id,
        employee_id=assignment.employee_id,
        assigned_by_id=assignment.assigned_by_id,
        type=assignment.type,
        workday_date=assignment.workday_date.isoformat(),
    )


def _matrix_payload(
    view: dict[str, Any],
    bucketing: BucketingResult,
    employees_by_id: dict[str, Any],
) -> ScheduleMatrixResponse:
    dates = week_dates(bucketing.week)
    rows: list[MatrixRowResponse] = []
    for employee_id, cells in bucketing.matrix.items():
        employee = employees_by_id.get(employee_id)
        rows.append(
            MatrixRowResponse(
                employee_id=employee_id,
                full_name=employee.full_name if employee else None,
                email=employee.email if employee else None,
                position=employee.position if employee else None,
                cells={
                    weekday.value: (
                        CellResponse(
                            schedule_id=cells[weekday].id,
                            date=dates[weekday],
                            type=cells[weekday].type,
                        )
                        if cells[weekday] is not None
                        else None
                    )
                    for weekday in WORKWEEK
                },
            )
        )
    return ScheduleMatrixResponse(
        status=view["status"],
        error=view["error"],
        stale=view["stale"],
        week=_range_payload(bucketing.week),
        weekdays={weekday.value: day for weekday, day in dates.items()},
        rows=rows,
        anomalies=[
            AnomalyResponse(
                kind=anomaly.kind.value,
                assignment_id=anomaly.assignment_id,
                employee_id=anomaly.employee_id,
                local_date=anomaly.local_date,
                detail=anomaly.detail,
            )
            for anomaly in bucketing.anomalies
        ],
    )


def _row_payload(row: ComparisonRow) -> ComparisonRowResponse:
    return ComparisonRowResponse(
        algorithm=row.algorithm,
        name=row.name,
        fairness_index=row.fairness_index,
        average_score=row.average_score,
        total_penalty=row.total_penalty,
        total=row.total,
    )


def _comparison_payload(view: dict[str, Any]) -> ComparisonResponse:
    summary = view["summary"]
    return ComparisonResponse(
        status=view["status"],
        error=view["error"],
        stale=view["stale"],
        week=_range_payload(view["week"]),
        rows=[_row_payload(row) for row in view["rows"]],
        summary=(
            FairnessSummaryResponse(
                algorithm=summary["algorithm"],
                name=summary["name"],
                average_score=summary["average_score"],
                fairness_index=summary["fairness_index"],
                total_schedules=summary["total_schedules"],
                total_penalty=summary["total_penalty"],
                report=_report_payload(summary["report"]),
            )
            if summary is not None
            else None
        ),
        reports={
            algorithm: _report_payload(report)
            for algorithm, report in view["reports"].items()
        },
    )


def _remote_failure(exc: RemoteRequestError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/week", response_model=WeekResponse, status_code=status.HTTP_200_OK)
async def get_week(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> WeekResponse:
    return WeekResponse(
        selected=_range_payload(workflow_service.selected_range),
        week=_range_payload(workflow_service.week),
    )


@router.post("/week", response_model=WeekResponse, status_code=status.HTTP_200_OK)
async def select_week(
    payload: SelectWeekRequest,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> WeekResponse:
    try:
        week = workflow_service.select_date(payload.date)
    except InvalidDateError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return WeekResponse(selected=_range_payload(week), week=_range_payload(week))


@router.get(
    "/schedule_matrix",
    response_model=ScheduleMatrixResponse,
    status_code=status.HTTP_200_OK,
)
async def schedule_matrix(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ScheduleMatrixResponse:
    try:
        view = await workflow_service.schedule_matrix()
        employees_by_id = {employee.id: employee for employee in view["employees"]}
        return _matrix_payload(view, view["bucketing"], employees_by_id)
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected schedule matrix failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build schedule matrix",
        ) from exc


@router.get(
    "/my_schedule_matrix",
    response_model=ScheduleMatrixResponse,
    status_code=status.HTTP_200_OK,
)
async def my_schedule_matrix(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ScheduleMatrixResponse:
    try:
        view = await workflow_service.my_schedule_matrix()
        return _matrix_payload(view, view["bucketing"], {})
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected personal schedule matrix failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build personal schedule matrix",
        ) from exc


@router.get(
    "/schedule_summary",
    response_model=ScheduleSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def schedule_summary(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ScheduleSummaryResponse:
    view = await workflow_service.schedule_summary()
    summary = view["summary"]
    return ScheduleSummaryResponse(
        status=view["status"],
        error=view["error"],
        stale=view["stale"],
        week_start=summary.week_start,
        total_employees=summary.total_employees,
        total_schedules=summary.total_schedules,
        average_per_employee=summary.average_per_employee,
        day_counts={weekday.value: count for weekday, count in summary.day_counts.items()},
    )


@router.get("/comparison", response_model=ComparisonResponse, status_code=status.HTTP_200_OK)
async def get_comparison(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ComparisonResponse:
    return _comparison_payload(workflow_service.comparison_view())


@router.post("/compare", response_model=ComparisonResponse, status_code=status.HTTP_200_OK)
async def compare(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ComparisonResponse:
    return _comparison_payload(await workflow_service.compare())


@router.post(
    "/generate/{algorithm}",
    response_model=GenerateResponse,
    status_code=status.HTTP_200_OK,
)
async def generate(
    algorithm: str,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> GenerateResponse:
    try:
        result = await workflow_service.generate(algorithm)
    except DashboardValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RemoteRequestError as exc:
        raise _remote_failure(exc) from exc
    outcome = result["outcome"]
    comparison = result["comparison"]
    return GenerateResponse(
        algorithm=outcome.algorithm,
        week_start=outcome.week_start,
        already_scheduled=outcome.already_scheduled,
        created_count=len(outcome.created),
        created=[_assignment_payload(item) for item in outcome.created],
        comparison=_comparison_payload(comparison) if comparison is not None else None,
    )


@router.post("/assign", response_model=AssignmentResponse, status_code=status.HTTP_200_OK)
async def assign(
    payload: AssignRequest,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> AssignmentResponse:
    try:
        created = await workflow_service.assign(payload.employee_id, payload.date)
        return _assignment_payload(created)
    except (DashboardValidationError, InvalidDateError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RemoteRequestError as exc:
        raise _remote_failure(exc) from exc


@router.post(
    "/refresh",
    response_model=dict[str, FetchStateResponse],
    status_code=status.HTTP_200_OK,
)
async def refresh(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> dict[str, FetchStateResponse]:
    states = await workflow_service.refresh()
    return {resource: FetchStateResponse(**state) for resource, state in states.items()}


@router.get("/export", status_code=status.HTTP_200_OK)
async def export_schedule(
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> Response:
    csv_text = await workflow_service.export_csv()
    filename = f"schedule-{workflow_service.week.week_key}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
