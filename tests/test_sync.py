from __future__ import annotations

import asyncio

import pytest

from fairshift.repository.schedule_client import RemoteRequestError
from fairshift.services.sync_service import FetchStatus, FetchSynchronizer, Resource


class ControlledLoader:
    """Loader whose responses are released by the test, one per call."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._pending: list[asyncio.Future] = []

    async def __call__(self, week_key: str):
        self.calls.append(week_key)
        future = asyncio.get_running_loop().create_future()
        self._pending.append(future)
        return await future

    def resolve(self, index: int, value) -> None:
        self._pending[index].set_result(value)

    def fail(self, index: int, message: str) -> None:
        self._pending[index].set_exception(RemoteRequestError(message))


def _synchronizer(loader) -> FetchSynchronizer:
    return FetchSynchronizer({resource: loader for resource in Resource})


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_late_result_for_abandoned_week_is_discarded() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)

        sync.select_week("2025-06-09")
        first = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()
        assert sync.entry(Resource.ALL_SCHEDULES).status == FetchStatus.FETCHING

        sync.select_week("2025-06-16")
        second = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()

        loader.resolve(1, ["week-16"])
        assert (await second).value == ["week-16"]
        loader.resolve(0, ["week-09"])
        assert await first is None

        assert sync.entry(Resource.ALL_SCHEDULES).value == ["week-16"]
        abandoned = sync.entry(Resource.ALL_SCHEDULES, "2025-06-09")
        assert abandoned.has_value is False
        assert abandoned.status == FetchStatus.IDLE
        assert loader.calls == ["2025-06-09", "2025-06-16"]

    asyncio.run(scenario())


def test_late_result_arriving_first_is_still_discarded() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-09")
        first = asyncio.create_task(sync.fetch(Resource.COMPARISON))
        await _settle()
        sync.select_week("2025-06-16")
        second = asyncio.create_task(sync.fetch(Resource.COMPARISON))
        await _settle()

        loader.resolve(0, "old")
        assert await first is None
        assert sync.entry(Resource.COMPARISON).status == FetchStatus.FETCHING
        loader.resolve(1, "new")
        await second
        assert sync.snapshot().value(Resource.COMPARISON) == "new"

    asyncio.run(scenario())


def test_last_initiated_fetch_wins_for_the_same_week() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")

        older = asyncio.create_task(sync.fetch(Resource.EMPLOYEES))
        await _settle()
        newer = asyncio.create_task(sync.fetch(Resource.EMPLOYEES))
        await _settle()

        loader.resolve(1, "newer")
        await newer
        loader.resolve(0, "older")
        assert await older is None
        assert sync.entry(Resource.EMPLOYEES).value == "newer"

    asyncio.run(scenario())


def test_failure_keeps_last_good_value_and_exposes_message() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")

        first = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()
        loader.resolve(0, ["good"])
        await first

        retry = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()
        loader.fail(1, "Service unavailable")
        entry = await retry

        assert entry.status == FetchStatus.FAILED
        assert entry.error == "Service unavailable"
        assert entry.value == ["good"]

        # A failed entry is not retried automatically.
        again = await sync.ensure(Resource.ALL_SCHEDULES)
        assert again.status == FetchStatus.FAILED
        assert len(loader.calls) == 2

    asyncio.run(scenario())


def test_cancelled_fetch_does_not_leave_entry_fetching() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")

        first = asyncio.create_task(sync.ensure(Resource.EMPLOYEES))
        await _settle()
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        assert sync.entry(Resource.EMPLOYEES).status == FetchStatus.IDLE

        second = asyncio.create_task(sync.ensure(Resource.EMPLOYEES))
        await _settle()
        assert len(loader.calls) == 2
        loader.resolve(1, ["fresh"])
        entry = await second
        assert entry.status == FetchStatus.READY
        assert entry.value == ["fresh"]

    asyncio.run(scenario())


def test_cancelled_refetch_keeps_previous_value() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")

        first = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()
        loader.resolve(0, ["good"])
        await first

        retry = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()
        retry.cancel()
        with pytest.raises(asyncio.CancelledError):
            await retry

        entry = sync.entry(Resource.ALL_SCHEDULES)
        assert entry.status == FetchStatus.READY
        assert entry.value == ["good"]

    asyncio.run(scenario())


def test_invalidation_forces_refetch_on_next_read() -> None:
    async def scenario() -> None:
        values = iter(["v1", "v2"])
        calls: list[str] = []

        async def loader(week_key: str):
            calls.append(week_key)
            return next(values)

        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")
        assert (await sync.ensure(Resource.MY_SCHEDULES)).value == "v1"
        assert (await sync.ensure(Resource.MY_SCHEDULES)).value == "v1"
        assert len(calls) == 1

        sync.invalidate("2025-06-16", [Resource.MY_SCHEDULES])
        marked = sync.entry(Resource.MY_SCHEDULES)
        assert marked.stale is True
        assert marked.value == "v1"

        refreshed = await sync.ensure(Resource.MY_SCHEDULES)
        assert refreshed.value == "v2"
        assert refreshed.stale is False
        assert len(calls) == 2

    asyncio.run(scenario())


def test_invalidation_during_fetch_keeps_entry_stale() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")

        pending = asyncio.create_task(sync.fetch(Resource.ALL_SCHEDULES))
        await _settle()
        sync.invalidate("2025-06-16", [Resource.ALL_SCHEDULES])
        loader.resolve(0, "pre-mutation")
        await pending

        entry = sync.entry(Resource.ALL_SCHEDULES)
        assert entry.value == "pre-mutation"
        assert entry.stale is True

    asyncio.run(scenario())


def test_invalidation_of_failed_entry_allows_refetch() -> None:
    async def scenario() -> None:
        outcomes = iter([RemoteRequestError("down"), "recovered"])

        async def loader(week_key: str):
            outcome = next(outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")
        assert (await sync.ensure(Resource.COMPARISON)).status == FetchStatus.FAILED
        sync.invalidate("2025-06-16", [Resource.COMPARISON])
        entry = await sync.ensure(Resource.COMPARISON)
        assert entry.status == FetchStatus.READY
        assert entry.value == "recovered"
        assert entry.error is None

    asyncio.run(scenario())


def test_pending_action_is_deduplicated_then_released() -> None:
    async def scenario() -> None:
        sync = _synchronizer(ControlledLoader())
        gate = asyncio.Event()
        calls = 0

        async def action():
            nonlocal calls
            calls += 1
            await gate.wait()
            return calls

        first = asyncio.create_task(sync.run_action("compare", "2025-06-16", action))
        await _settle()
        second = asyncio.create_task(sync.run_action("compare", "2025-06-16", action))
        await _settle()
        assert sync.is_action_pending("compare", "2025-06-16")

        gate.set()
        assert await first == 1
        assert await second == 1
        assert calls == 1
        assert not sync.is_action_pending("compare", "2025-06-16")

        assert await sync.run_action("compare", "2025-06-16", action) == 2
        assert calls == 2

    asyncio.run(scenario())


def test_failed_action_is_shared_and_then_retryable() -> None:
    async def scenario() -> None:
        sync = _synchronizer(ControlledLoader())
        gate = asyncio.Event()
        attempts = 0

        async def action():
            nonlocal attempts
            attempts += 1
            await gate.wait()
            if attempts == 1:
                raise RemoteRequestError("generation failed")
            return "ok"

        first = asyncio.create_task(sync.run_action("generate:fairGreedy", "k", action))
        await _settle()
        second = asyncio.create_task(sync.run_action("generate:fairGreedy", "k", action))
        await _settle()
        gate.set()

        for task in (first, second):
            with pytest.raises(RemoteRequestError):
                await task
        assert attempts == 1
        assert await sync.run_action("generate:fairGreedy", "k", action) == "ok"
        assert attempts == 2

    asyncio.run(scenario())


def test_different_weeks_do_not_share_actions() -> None:
    async def scenario() -> None:
        sync = _synchronizer(ControlledLoader())
        calls: list[str] = []

        async def action_for(week_key: str):
            calls.append(week_key)
            return week_key

        results = await asyncio.gather(
            sync.run_action("compare", "2025-06-09", lambda: action_for("2025-06-09")),
            sync.run_action("compare", "2025-06-16", lambda: action_for("2025-06-16")),
        )
        assert results == ["2025-06-09", "2025-06-16"]
        assert sorted(calls) == ["2025-06-09", "2025-06-16"]

    asyncio.run(scenario())


def test_release_abandons_in_flight_fetches() -> None:
    async def scenario() -> None:
        loader = ControlledLoader()
        sync = _synchronizer(loader)
        sync.select_week("2025-06-16")
        pending = asyncio.create_task(sync.fetch(Resource.EMPLOYEES))
        await _settle()

        sync.release()
        loader.resolve(0, "late")
        assert await pending is None
        assert sync.current_week is None
        with pytest.raises(ValueError):
            sync.snapshot()

    asyncio.run(scenario())
