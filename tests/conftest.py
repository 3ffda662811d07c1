from __future__ import annotations

from dataclasses import replace

import pytest

from fairshift.utils.config import get_settings
from tests.factories import FakeScheduleClient


@pytest.fixture
def fake_client() -> FakeScheduleClient:
    return FakeScheduleClient()


@pytest.fixture
def test_settings(tmp_path):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        reference_timezone="Africa/Lagos",
        session_database_path=tmp_path / "session_state.db",
        schedule_api_base_url="http://scheduling.test/api",
    )
