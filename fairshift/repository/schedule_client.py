"""Repository layer responsible for all scheduling-service access."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

import httpx

from fairshift.domain.models import (
    ComparisonResult,
    DateRange,
    EmployeeRecord,
    ScheduleAssignment,
    ScheduleRef,
)
from fairshift.domain.week import InvalidDateError, parse_instant
from fairshift.services.comparison_service import ComparisonPayloadError, parse_comparison_result
from fairshift.utils.config import Settings, get_settings
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)


class RemoteRequestError(Exception):
    """Raised when the scheduling service fails or answers with an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


GENERATION_PATHS: dict[str, str] = {
    "fairGreedy": "/schedule/fair",
    "basicGreedy": "/schedule/basic",
    "roundRobin": "/schedule/round-robin",
    "random": "/schedule/random",
}


def _nested_date(record: Mapping[str, Any]) -> Any:
    workday = record.get("workday")
    if isinstance(workday, Mapping) and workday.get("date"):
        return workday["date"]
    return record.get("workdayDate")


def parse_schedule_ref(record: Mapping[str, Any]) -> ScheduleRef:
    raw_date = _nested_date(record)
    raw_created = record.get("createdAt")
    return ScheduleRef(
        id=str(record["id"]),
        workday_id=str(record.get("workdayId", "")),
        assigned_by_id=record.get("assignedById"),
        created_at=parse_instant(raw_created) if raw_created else None,
        workday_date=parse_instant(raw_date) if raw_date else None,
    )


def parse_employee(record: Mapping[str, Any]) -> EmployeeRecord:
    return EmployeeRecord(
        id=str(record["id"]),
        full_name=str(record.get("fullName", "")),
        email=str(record.get("email", "")),
        position=record.get("position"),
        schedules=tuple(parse_schedule_ref(item) for item in record.get("schedules") or ()),
    )


def parse_assignment(record: Mapping[str, Any]) -> ScheduleAssignment:
    raw_date = _nested_date(record)
    if not raw_date:
        raise KeyError("workday.date")
    raw_created = record.get("createdAt")
    return ScheduleAssignment(
        id=str(record["id"]),
        workday_id=str(record.get("workdayId", "")),
        employee_id=str(record["employeeId"]),
        assigned_by_id=record.get("assignedById"),
        type=record.get("type"),
        workday_date=parse_instant(raw_date),
        created_at=parse_instant(raw_created) if raw_created else None,
    )


class ScheduleServiceClient:
    """Async client for the remote scheduling and comparison service."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if self._settings.schedule_api_token:
            headers["Authorization"] = f"Bearer {self._settings.schedule_api_token}"
        self._client = httpx.AsyncClient(
            base_url=self._settings.schedule_api_base_url,
            timeout=self._settings.schedule_api_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        default_error: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            message = _service_message(exc.response) or default_error
            logger.warning(
                "%s %s failed with status %s: %s",
                method,
                path,
                exc.response.status_code,
                message,
            )
            raise RemoteRequestError(message, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteRequestError(f"{default_error}: {exc}") from exc
        except ValueError as exc:
            raise RemoteRequestError(f"{default_error}: response is not valid JSON") from exc

    async def list_employees(self) -> list[EmployeeRecord]:
        payload = await self._request(
            "GET", "/users/employees", default_error="Error fetching employees"
        )
        return _parse_list(payload, parse_employee, "Error fetching employees")

    async def list_schedules(self, week_start: date) -> list[ScheduleAssignment]:
        payload = await self._request(
            "GET",
            "/schedule",
            params={"weekStart": week_start.isoformat()},
            default_error="Error fetching schedules",
        )
        return _parse_list(payload, parse_assignment, "Error fetching schedules")

    async def list_my_schedules(self, week_start: date) -> list[ScheduleAssignment]:
        payload = await self._request(
            "GET",
            "/schedule/my",
            params={"weekStart": week_start.isoformat()},
            default_error="Error fetching my schedules",
        )
        return _parse_list(payload, parse_assignment, "Error fetching my schedules")

    async def compare(self, week_start: date) -> ComparisonResult:
        payload = await self._request(
            "GET",
            "/schedule/evaluate",
            params={"weekStart": week_start.isoformat()},
            default_error="Error comparing schedules",
        )
        try:
            return parse_comparison_result(payload, week_start)
        except ComparisonPayloadError as exc:
            raise RemoteRequestError(f"Error comparing schedules: {exc}") from exc

    async def generate(self, algorithm: str, week: DateRange) -> list[ScheduleAssignment]:
        path = GENERATION_PATHS.get(algorithm)
        if path is None:
            raise ValueError(f"Unknown scheduling algorithm: {algorithm}")
        default_error = f"Error generating {algorithm} schedule"
        payload = await self._request(
            "POST", path, json=week.to_api_dict(), default_error=default_error
        )
        result = payload.get("result") if isinstance(payload, Mapping) else payload
        return _parse_list(result or [], parse_assignment, default_error)

    async def assign(self, employee_id: str, day: date) -> ScheduleAssignment:
        payload = await self._request(
            "POST",
            "/schedule/assign",
            json={"employeeId": employee_id, "date": day.isoformat()},
            default_error="Error assigning schedule",
        )
        record = payload.get("schedule") if isinstance(payload, Mapping) else None
        if not isinstance(record, Mapping):
            raise RemoteRequestError("Error assigning schedule: response has no schedule")
        try:
            return parse_assignment(record)
        except (KeyError, TypeError, InvalidDateError) as exc:
            raise RemoteRequestError(f"Error assigning schedule: malformed record ({exc})") from exc


def _service_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, Mapping) and body.get("message"):
        return str(body["message"])
    return None


def _parse_list(payload: Any, parser, default_error: str) -> list:
    if not isinstance(payload, list):
        raise RemoteRequestError(f"{default_error}: expected a list")
    if not all(isinstance(item, Mapping) for item in payload):
        raise RemoteRequestError(f"{default_error}: expected a list of objects")
    try:
        return [parser(item) for item in payload]
    except (AttributeError, KeyError, TypeError, InvalidDateError) as exc:
        raise RemoteRequestError(f"{default_error}: malformed record ({exc})") from exc
