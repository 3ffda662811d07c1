"""Dashboard orchestration service for the week-scoped scheduling workflow."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Optional, Union

from fairshift.domain.constraints import FairnessBounds, validate_fairness_metric
from fairshift.domain.models import DateRange, GenerationOutcome, ScheduleAssignment, Weekday
from fairshift.domain.week import (
    DateInput,
    current_week,
    normalize_week,
    parse_calendar_date,
)
from fairshift.repository.schedule_client import GENERATION_PATHS, ScheduleServiceClient
from fairshift.repository.session_repository import SessionStateRepository
from fairshift.services.bucketing_service import (
    bucketize_assignments,
    bucketize_employees,
    summarize_week,
)
from fairshift.services.comparison_service import aggregate_comparison, fairness_summary
from fairshift.services.export_service import export_week_csv
from fairshift.services.sync_service import (
    SCHEDULE_STATE_RESOURCES,
    EntrySnapshot,
    FetchSynchronizer,
    Resource,
)
from fairshift.utils.config import Settings, get_settings
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)

SUPPORTED_ALGORITHMS: tuple[str, ...] = tuple(GENERATION_PATHS)


class DashboardValidationError(Exception):
    """Raised when dashboard workflow inputs are invalid."""


class DashboardWorkflowService:
    """Coordinates select week -> fetch -> derive -> validate, plus mutations.

    This object is the context handle for the selected week and its cached
    results; nothing is kept in module globals.
    """

    def __init__(
        self,
        client: Optional[ScheduleServiceClient] = None,
        session_repository: Optional[SessionStateRepository] = None,
        synchronizer: Optional[FetchSynchronizer] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or ScheduleServiceClient(self._settings)
        self._session_repository = session_repository or SessionStateRepository(self._settings)
        self._synchronizer = synchronizer or FetchSynchronizer(self._build_loaders())
        self._bounds = FairnessBounds.from_settings(self._settings)
        self._timezone = self._settings.reference_timezone
        self._selected_range: DateRange | None = None

    def _build_loaders(self):
        client = self._client

        async def load_employees(week_key: str):
            return await client.list_employees()

        async def load_all_schedules(week_key: str):
            return await client.list_schedules(date.fromisoformat(week_key))

        async def load_my_schedules(week_key: str):
            return await client.list_my_schedules(date.fromisoformat(week_key))

        async def load_comparison(week_key: str):
            return await client.compare(date.fromisoformat(week_key))

        return {
            Resource.EMPLOYEES: load_employees,
            Resource.ALL_SCHEDULES: load_all_schedules,
            Resource.MY_SCHEDULES: load_my_schedules,
            Resource.COMPARISON: load_comparison,
        }

    @property
    def synchronizer(self) -> FetchSynchronizer:
        return self._synchronizer

    def restore_session(self) -> DateRange:
        """Load the last-used range verbatim, falling back to the current week."""
        saved = self._session_repository.load_date_range()
        selected = saved or current_week(self._timezone)
        self._selected_range = selected
        self._synchronizer.select_week(normalize_week(selected, self._timezone).week_key)
        return selected

    @property
    def selected_range(self) -> DateRange:
        if self._selected_range is None:
            return self.restore_session()
        return self._selected_range

    @property
    def week(self) -> DateRange:
        """The canonical week of the selected range, used for keys and API calls."""
        return normalize_week(self.selected_range, self._timezone)

    def select_date(self, value: DateInput) -> DateRange:
        week = normalize_week(value, self._timezone)
        self._selected_range = week
        self._synchronizer.select_week(week.week_key)
        self._session_repository.save_date_range(week)
        return week

    def release(self) -> None:
        self._synchronizer.release()

    @staticmethod
    def _entry_state(entry: EntrySnapshot) -> dict[str, Any]:
        return {"status": entry.status.value, "error": entry.error, "stale": entry.stale}

    async def load_week(self) -> dict[str, dict[str, Any]]:
        week = self.week
        entries = await asyncio.gather(
            self._synchronizer.ensure(Resource.EMPLOYEES, week.week_key),
            self._synchronizer.ensure(Resource.ALL_SCHEDULES, week.week_key),
        )
        return {entry.resource.value: self._entry_state(entry) for entry in entries}

    async def schedule_matrix(self) -> dict[str, Any]:
        week = self.week
        entry = await self._synchronizer.ensure(Resource.EMPLOYEES, week.week_key)
        employees = list(entry.value or [])
        bucketing = bucketize_employees(employees, week, self._timezone)
        return {
            "week": week,
            "employees": employees,
            "bucketing": bucketing,
            **self._entry_state(entry),
        }

    async def my_schedule_matrix(self) -> dict[str, Any]:
        week = self.week
        entry = await self._synchronizer.ensure(Resource.MY_SCHEDULES, week.week_key)
        bucketing = bucketize_assignments(entry.value or [], week, self._timezone)
        return {"week": week, "bucketing": bucketing, **self._entry_state(entry)}

    async def schedule_summary(self) -> dict[str, Any]:
        week = self.week
        employees_entry, schedules_entry = await asyncio.gather(
            self._synchronizer.ensure(Resource.EMPLOYEES, week.week_key),
            self._synchronizer.ensure(Resource.ALL_SCHEDULES, week.week_key),
        )
        summary = summarize_week(
            schedules_entry.value or [],
            len(employees_entry.value or []),
            week,
            self._timezone,
            assignment_type=self._settings.summary_assignment_type or None,
        )
        failed = next(
            (entry for entry in (employees_entry, schedules_entry) if entry.error),
            schedules_entry,
        )
        return {"week": week, "summary": summary, **self._entry_state(failed)}

    async def compare(self) -> dict[str, Any]:
        week = self.week
        key = week.week_key
        await self._synchronizer.run_action(
            "compare",
            key,
            lambda: self._synchronizer.fetch(Resource.COMPARISON, key),
        )
        return self.comparison_view(week)

    def comparison_view(self, week: Optional[DateRange] = None) -> dict[str, Any]:
        week = week or self.week
        entry = self._synchronizer.entry(Resource.COMPARISON, week.week_key)
        result = entry.value
        reports = {}
        if result is not None:
            reports = {
                algorithm: validate_fairness_metric(metric, self._bounds)
                for algorithm, metric in result.metrics.items()
            }
        return {
            "week": week,
            "rows": aggregate_comparison(result),
            "summary": fairness_summary(result, "fairGreedy", self._bounds),
            "reports": reports,
            **self._entry_state(entry),
        }

    async def generate(self, algorithm: str, compare_after: bool = True) -> dict[str, Any]:
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise DashboardValidationError(
                f"Unsupported algorithm '{algorithm}'. Expected one of {list(SUPPORTED_ALGORITHMS)}"
            )
        week = self.week
        key = week.week_key

        async def _generate() -> list[ScheduleAssignment]:
            created = await self._client.generate(algorithm, week)
            if created:
                self._synchronizer.invalidate(
                    key, SCHEDULE_STATE_RESOURCES + (Resource.COMPARISON,)
                )
            return created

        created = await self._synchronizer.run_action(f"generate:{algorithm}", key, _generate)
        outcome = GenerationOutcome(algorithm=algorithm, week_start=week.week_start, created=created)
        if outcome.already_scheduled:
            logger.info("Week %s already scheduled; %s generated nothing", key, algorithm)
        else:
            logger.info("Generated %d %s schedules for week %s", len(created), algorithm, key)

        comparison = await self.compare() if compare_after else None
        return {"outcome": outcome, "comparison": comparison}

    async def assign(self, employee_id: str, day: Union[str, date]) -> ScheduleAssignment:
        if not employee_id:
            raise DashboardValidationError("employee_id is required")
        target_day = parse_calendar_date(day) if isinstance(day, str) else day
        if Weekday.from_date(target_day) is None:
            raise DashboardValidationError(
                f"{target_day.isoformat()} is a weekend; only Monday-Friday can be assigned"
            )
        created = await self._client.assign(employee_id, target_day)
        week = normalize_week(target_day, self._timezone)
        self._synchronizer.invalidate(
            week.week_key, SCHEDULE_STATE_RESOURCES + (Resource.COMPARISON,)
        )
        return created

    async def refresh(self) -> dict[str, dict[str, Any]]:
        """User-triggered re-fetch of the selected week; failures keep the last good data."""
        key = self.week.week_key
        resources = list(SCHEDULE_STATE_RESOURCES)
        if self._synchronizer.entry(Resource.COMPARISON, key).has_value:
            resources.append(Resource.COMPARISON)
        await asyncio.gather(*(self._synchronizer.fetch(resource, key) for resource in resources))
        return {
            resource.value: self._entry_state(self._synchronizer.entry(resource, key))
            for resource in resources
        }

    async def export_csv(self) -> str:
        view = await self.schedule_matrix()
        return export_week_csv(view["bucketing"], view["employees"])
