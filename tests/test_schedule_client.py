from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from datetime import date

import httpx
import pytest

from fairshift.domain.week import normalize_week
from fairshift.repository.schedule_client import RemoteRequestError, ScheduleServiceClient


def _run(settings, handler, call):
    async def scenario():
        client = ScheduleServiceClient(settings, transport=httpx.MockTransport(handler))
        try:
            return await call(client)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


def _assignment(record_id: str, employee_id: str, day: str) -> dict:
    return {
        "id": record_id,
        "workdayId": f"wd-{record_id}",
        "employeeId": employee_id,
        "assignedById": "manager-1",
        "type": "FAIR",
        "createdAt": "2025-06-01T09:00:00Z",
        "workday": {"date": f"{day}T00:00:00.000Z"},
    }


def test_list_schedules_sends_week_start(test_settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[_assignment("a1", "e1", "2025-06-16")])

    records = _run(test_settings, handler, lambda c: c.list_schedules(date(2025, 6, 16)))

    assert seen[0].url.path == "/api/schedule"
    assert seen[0].url.params["weekStart"] == "2025-06-16"
    assert records[0].id == "a1"
    assert records[0].workday_date.date() == date(2025, 6, 16)
    assert records[0].created_at is not None


def test_flat_workday_date_is_accepted(test_settings) -> None:
    record = _assignment("a1", "e1", "2025-06-16")
    del record["workday"]
    record["workdayDate"] = "2025-06-17"

    records = _run(
        test_settings,
        lambda request: httpx.Response(200, json=[record]),
        lambda c: c.list_my_schedules(date(2025, 6, 16)),
    )
    assert records[0].workday_date.date() == date(2025, 6, 17)


def test_employees_include_nested_schedules(test_settings) -> None:
    payload = [
        {
            "id": "e1",
            "fullName": "Ada Obi",
            "email": "ada@example.com",
            "position": "Nurse",
            "schedules": [
                {"id": "s1", "workdayId": "w1", "workday": {"date": "2025-06-16T00:00:00Z"}}
            ],
        },
        {"id": "e2", "fullName": "Tunde Bello", "email": "tunde@example.com"},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/users/employees"
        return httpx.Response(200, json=payload)

    employees = _run(test_settings, handler, lambda c: c.list_employees())

    assert [employee.full_name for employee in employees] == ["Ada Obi", "Tunde Bello"]
    assert employees[0].schedules[0].id == "s1"
    assert employees[1].schedules == ()


def test_service_message_becomes_error_text(test_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "Schedules already exist for this week"})

    with pytest.raises(RemoteRequestError) as excinfo:
        _run(test_settings, handler, lambda c: c.list_schedules(date(2025, 6, 16)))

    assert str(excinfo.value) == "Schedules already exist for this week"
    assert excinfo.value.status_code == 409


def test_error_without_message_uses_default_text(test_settings) -> None:
    with pytest.raises(RemoteRequestError) as excinfo:
        _run(
            test_settings,
            lambda request: httpx.Response(500, text="boom"),
            lambda c: c.list_employees(),
        )
    assert str(excinfo.value) == "Error fetching employees"
    assert excinfo.value.status_code == 500


def test_connection_failure_is_a_remote_error(test_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteRequestError) as excinfo:
        _run(test_settings, handler, lambda c: c.compare(date(2025, 6, 16)))
    assert excinfo.value.status_code is None
    assert "Error comparing schedules" in str(excinfo.value)


@pytest.mark.parametrize(
    "payload",
    [[{"id": "a1"}], [1, "x"], [None], {"items": []}],
)
def test_malformed_records_are_remote_errors(test_settings, payload) -> None:
    with pytest.raises(RemoteRequestError) as excinfo:
        _run(
            test_settings,
            lambda request: httpx.Response(200, json=payload),
            lambda c: c.list_schedules(date(2025, 6, 16)),
        )
    assert str(excinfo.value).startswith("Error fetching schedules")


def test_employee_with_malformed_nested_schedule_is_a_remote_error(test_settings) -> None:
    payload = [{"id": "e1", "fullName": "Ada Obi", "schedules": ["s1"]}]
    with pytest.raises(RemoteRequestError):
        _run(
            test_settings,
            lambda request: httpx.Response(200, json=payload),
            lambda c: c.list_employees(),
        )


def test_generate_posts_the_week_and_reads_result(test_settings) -> None:
    week = normalize_week("2025-06-18", "Africa/Lagos")
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/schedule/round-robin"
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"result": [_assignment("g1", "e1", "2025-06-16")]})

    created = _run(test_settings, handler, lambda c: c.generate("roundRobin", week))

    assert bodies == [{"from": "2025-06-16", "to": "2025-06-20", "weekStart": "2025-06-16"}]
    assert [record.id for record in created] == ["g1"]


def test_generate_with_nothing_created_returns_empty_list(test_settings) -> None:
    week = normalize_week("2025-06-16", "Africa/Lagos")
    created = _run(
        test_settings,
        lambda request: httpx.Response(200, json={"result": [], "message": "nothing to do"}),
        lambda c: c.generate("fairGreedy", week),
    )
    assert created == []


def test_generate_rejects_unknown_algorithm(test_settings) -> None:
    week = normalize_week("2025-06-16", "Africa/Lagos")
    with pytest.raises(ValueError):
        _run(
            test_settings,
            lambda request: httpx.Response(200, json={"result": []}),
            lambda c: c.generate("annealing", week),
        )


def test_assign_returns_created_schedule(test_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/schedule/assign"
        assert json.loads(request.content) == {"employeeId": "e2", "date": "2025-06-18"}
        return httpx.Response(201, json={"schedule": _assignment("m1", "e2", "2025-06-18")})

    record = _run(test_settings, handler, lambda c: c.assign("e2", date(2025, 6, 18)))
    assert record.id == "m1"
    assert record.employee_id == "e2"


def test_compare_parses_every_algorithm(test_settings) -> None:
    metric = {"total": 8, "fairnessIndex": 0.81, "scores": {"e1": 0.5}}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["weekStart"] == "2025-06-16"
        return httpx.Response(
            200,
            json={"fairGreedy": metric, "basicGreedy": metric, "roundRobin": metric},
        )

    result = _run(test_settings, handler, lambda c: c.compare(date(2025, 6, 16)))
    assert set(result.metrics) == {"fairGreedy", "basicGreedy", "roundRobin"}
    assert result.metrics["roundRobin"].fairness_index == 0.81


def test_bearer_token_is_sent_when_configured(test_settings) -> None:
    settings = replace(test_settings, schedule_api_token="secret-token")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer secret-token"
        return httpx.Response(200, json=[])

    assert _run(settings, handler, lambda c: c.list_employees()) == []
