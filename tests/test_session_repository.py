from __future__ import annotations

import sqlite3
from datetime import date

from fairshift.domain.models import DateRange
from fairshift.repository.session_repository import SessionStateRepository


def test_missing_range_loads_as_none(test_settings):
    repository = SessionStateRepository(test_settings)
    repository.initialize_database()
    assert repository.load_date_range() is None


def test_uninitialized_database_loads_as_none(test_settings):
    assert SessionStateRepository(test_settings).load_date_range() is None


def test_latest_saved_range_wins(test_settings):
    repository = SessionStateRepository(test_settings)
    repository.initialize_database()
    repository.initialize_database()

    first = DateRange(date(2025, 6, 9), date(2025, 6, 13), date(2025, 6, 9))
    second = DateRange(date(2025, 6, 16), date(2025, 6, 20), date(2025, 6, 16))
    repository.save_date_range(first)
    repository.save_date_range(second)

    assert repository.load_date_range() == second


def test_corrupt_row_is_ignored(test_settings):
    repository = SessionStateRepository(test_settings)
    repository.initialize_database()
    with sqlite3.connect(repository.database_path) as conn:
        conn.execute(
            "INSERT INTO SessionState (key, from_date, to_date, week_start) VALUES (?, ?, ?, ?);",
            ("dateRange", "not-a-date", "2025-06-20", "2025-06-16"),
        )
        conn.commit()

    assert repository.load_date_range() is None


def test_save_without_schema_reports_failure(test_settings):
    repository = SessionStateRepository(test_settings)
    week = DateRange(date(2025, 6, 16), date(2025, 6, 20), date(2025, 6, 16))

    assert repository.save_date_range(week) is False
    assert repository.load_date_range() is None
