"""Week-keyed fetch cache with last-initiated-wins request tokens.

Every remote read is cached under ``(resource, week_key)``. A fetch is tagged
with a monotonically increasing token when it starts; its result is applied
only if that token is still the newest one issued for the entry and the week
is still the selected one. Anything else is a stale result and is dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from fairshift.repository.schedule_client import RemoteRequestError
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)


class Resource(str, Enum):
    EMPLOYEES = "employees"
    ALL_SCHEDULES = "allSchedules"
    MY_SCHEDULES = "mySchedules"
    COMPARISON = "comparison"


# Resources whose content changes when server-side schedule state changes.
SCHEDULE_STATE_RESOURCES: tuple[Resource, ...] = (
    Resource.ALL_SCHEDULES,
    Resource.MY_SCHEDULES,
    Resource.EMPLOYEES,
)


class FetchStatus(str, Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    READY = "READY"
    FAILED = "FAILED"


class StaleResultDiscarded(Exception):
    """A response arrived for a request that is no longer of interest."""


Loader = Callable[[str], Awaitable[Any]]


@dataclass
class _CacheEntry:
    status: FetchStatus = FetchStatus.IDLE
    settled_status: FetchStatus = FetchStatus.IDLE
    value: Any = None
    has_value: bool = False
    error: str | None = None
    token: int = 0
    settled_token: int = 0
    invalidation_mark: int = 0

    @property
    def needs_fetch(self) -> bool:
        if self.status == FetchStatus.FETCHING:
            return False
        if self.status == FetchStatus.IDLE:
            return True
        return self.settled_token <= self.invalidation_mark


@dataclass(frozen=True)
class EntrySnapshot:
    resource: Resource
    week_key: str
    status: FetchStatus
    value: Any
    has_value: bool
    error: str | None
    stale: bool


@dataclass(frozen=True)
class WeekSnapshot:
    week_key: str
    entries: dict[Resource, EntrySnapshot] = field(default_factory=dict)

    def value(self, resource: Resource, default: Any = None) -> Any:
        entry = self.entries.get(resource)
        if entry is None or not entry.has_value:
            return default
        return entry.value

    def status(self, resource: Resource) -> FetchStatus:
        entry = self.entries.get(resource)
        return entry.status if entry is not None else FetchStatus.IDLE

    def error(self, resource: Resource) -> str | None:
        entry = self.entries.get(resource)
        return entry.error if entry is not None else None


class FetchSynchronizer:
    """Owns cached remote results per week key and decides which responses apply."""

    def __init__(self, loaders: Mapping[Resource, Loader]) -> None:
        self._loaders = dict(loaders)
        self._entries: dict[tuple[Resource, str], _CacheEntry] = {}
        self._current_week: str | None = None
        self._last_token = 0
        self._pending_actions: dict[tuple[str, str], asyncio.Future] = {}

    @property
    def current_week(self) -> str | None:
        return self._current_week

    def _issue_token(self) -> int:
        self._last_token += 1
        return self._last_token

    def _entry(self, resource: Resource, week_key: str) -> _CacheEntry:
        return self._entries.setdefault((resource, week_key), _CacheEntry())

    def _resolve_week(self, week_key: Optional[str]) -> str:
        resolved = week_key or self._current_week
        if resolved is None:
            raise ValueError("No week selected")
        return resolved

    def _abandon(self, week_key: str) -> None:
        for (resource, key), entry in self._entries.items():
            if key != week_key or entry.status != FetchStatus.FETCHING:
                continue
            # Token 0 is never issued, so the in-flight response cannot apply.
            entry.token = 0
            entry.status = entry.settled_status
            logger.debug("Abandoned in-flight %s fetch for week %s", resource.value, key)

    def select_week(self, week_key: str) -> bool:
        """Move interest to ``week_key``; returns True when the key changed."""
        previous = self._current_week
        if previous == week_key:
            return False
        if previous is not None:
            self._abandon(previous)
        self._current_week = week_key
        logger.info("Selected week changed from %s to %s", previous, week_key)
        return True

    def release(self) -> None:
        """Drop interest in every in-flight fetch, e.g. when navigating away."""
        if self._current_week is not None:
            self._abandon(self._current_week)
        self._current_week = None

    def entry(self, resource: Resource, week_key: Optional[str] = None) -> EntrySnapshot:
        key = self._resolve_week(week_key)
        entry = self._entry(resource, key)
        return EntrySnapshot(
            resource=resource,
            week_key=key,
            status=entry.status,
            value=entry.value,
            has_value=entry.has_value,
            error=entry.error,
            stale=entry.has_value and entry.settled_token <= entry.invalidation_mark,
        )

    def snapshot(self) -> WeekSnapshot:
        """Cached entries of the selected week only."""
        key = self._resolve_week(None)
        return WeekSnapshot(
            week_key=key,
            entries={resource: self.entry(resource, key) for resource in self._loaders},
        )

    def _check_applicable(self, resource: Resource, week_key: str, token: int) -> _CacheEntry:
        entry = self._entry(resource, week_key)
        if week_key != self._current_week:
            raise StaleResultDiscarded(
                f"{resource.value} for week {week_key} arrived after week changed to "
                f"{self._current_week}"
            )
        if entry.token != token:
            raise StaleResultDiscarded(
                f"{resource.value} for week {week_key} superseded by a newer request"
            )
        return entry

    async def fetch(
        self,
        resource: Resource,
        week_key: Optional[str] = None,
    ) -> EntrySnapshot | None:
        """Fetch one resource; returns None when the response was discarded as stale."""
        key = self._resolve_week(week_key)
        loader = self._loaders[resource]
        entry = self._entry(resource, key)
        token = self._issue_token()
        entry.token = token
        entry.status = FetchStatus.FETCHING

        try:
            value = await loader(key)
        except RemoteRequestError as exc:
            try:
                entry = self._check_applicable(resource, key, token)
            except StaleResultDiscarded as stale:
                logger.info("Discarded stale failure: %s", stale)
                return None
            entry.status = entry.settled_status = FetchStatus.FAILED
            entry.settled_token = token
            entry.error = str(exc)
            logger.warning("Fetching %s for week %s failed: %s", resource.value, key, exc)
            return self.entry(resource, key)
        except asyncio.CancelledError:
            # Return to the last settled state.
            if entry.token == token:
                entry.token = 0
                entry.status = entry.settled_status
                logger.debug("Cancelled %s fetch for week %s", resource.value, key)
            raise
        except Exception:
            if entry.token == token:
                entry.status = entry.settled_status = FetchStatus.FAILED
                entry.settled_token = token
                entry.error = "Unexpected error"
            raise

        try:
            entry = self._check_applicable(resource, key, token)
        except StaleResultDiscarded as stale:
            logger.info("Discarded stale result: %s", stale)
            return None
        entry.value = value
        entry.has_value = True
        entry.error = None
        entry.status = entry.settled_status = FetchStatus.READY
        entry.settled_token = token
        return self.entry(resource, key)

    async def ensure(
        self,
        resource: Resource,
        week_key: Optional[str] = None,
    ) -> EntrySnapshot:
        """Return the cached entry, fetching first when it was never loaded or invalidated.

        A failed entry is not fetched again until it is invalidated; retrying
        is an explicit caller action.
        """
        key = self._resolve_week(week_key)
        if self._entry(resource, key).needs_fetch:
            await self.fetch(resource, key)
        return self.entry(resource, key)

    def invalidate(self, week_key: str, resources: Iterable[Resource]) -> None:
        """Force a re-fetch of ``resources`` before they are next read for ``week_key``."""
        names = []
        for resource in resources:
            entry = self._entry(resource, week_key)
            # Responses to requests issued up to now may predate the mutation.
            entry.invalidation_mark = self._last_token
            names.append(resource.value)
        logger.info("Invalidated %s for week %s", ", ".join(names), week_key)

    def is_action_pending(self, name: str, week_key: str) -> bool:
        return (name, week_key) in self._pending_actions

    async def run_action(
        self,
        name: str,
        week_key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run an action once per (name, week) while it is pending.

        A repeated call while the first is still running shares its outcome
        instead of issuing another request.
        """
        action_key = (name, week_key)
        pending = self._pending_actions.get(action_key)
        if pending is not None:
            logger.info("Action %s for week %s already pending; joining it", name, week_key)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(factory())
        self._pending_actions[action_key] = task

        def _settle(done: asyncio.Future) -> None:
            if self._pending_actions.get(action_key) is done:
                del self._pending_actions[action_key]

        task.add_done_callback(_settle)
        return await asyncio.shield(task)
