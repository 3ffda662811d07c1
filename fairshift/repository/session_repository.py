"""Repository layer for the single piece of persisted session state."""

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path
from typing import Optional

from fairshift.domain.models import DateRange
from fairshift.utils.config import Settings, get_settings
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)

_DATE_RANGE_KEY = "dateRange"


class SessionStateRepository:
    """Keeps the last-used DateRange across dashboard sessions in SQLite."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.session_database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        return connection

    def initialize_database(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS SessionState (
                        key TEXT PRIMARY KEY,
                        from_date TEXT NOT NULL,
                        to_date TEXT NOT NULL,
                        week_start TEXT NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.commit()
            logger.info("Session database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Session database initialization failed: {exc}") from exc

    def save_date_range(self, date_range: DateRange) -> bool:
        """Persist the selected range; returns False when the write failed."""
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO SessionState (key, from_date, to_date, week_start)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        from_date = excluded.from_date,
                        to_date = excluded.to_date,
                        week_start = excluded.week_start,
                        updated_at = CURRENT_TIMESTAMP;
                    """,
                    (
                        _DATE_RANGE_KEY,
                        date_range.from_date.isoformat(),
                        date_range.to_date.isoformat(),
                        date_range.week_start.isoformat(),
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            logger.error("Failed to save date range: %s", exc)
            return False
        return True

    def load_date_range(self) -> DateRange | None:
        """Return the saved range exactly as stored, or None when absent or unreadable."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT from_date, to_date, week_start FROM SessionState WHERE key = ?;",
                    (_DATE_RANGE_KEY,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Failed to read saved date range: %s", exc)
            return None
        if row is None:
            return None
        try:
            return DateRange(
                from_date=date.fromisoformat(row["from_date"]),
                to_date=date.fromisoformat(row["to_date"]),
                week_start=date.fromisoformat(row["week_start"]),
            )
        except ValueError:
            logger.error("Saved date range is not parseable; ignoring it")
            return None
