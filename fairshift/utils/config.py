"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int_tuple(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a comma separated list of integers") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str = "Fairshift Scheduling Dashboard API"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # Calendar-day and weekday boundaries are decided in this zone.
    reference_timezone: str = "Africa/Lagos"

    schedule_api_base_url: str = "http://127.0.0.1:5000/api"
    schedule_api_token: str | None = None
    schedule_api_timeout_seconds: float = 10.0

    session_database_path: Path = PROJECT_ROOT / "data" / "session_state.db"

    fairness_score_min: float = -3.0
    fairness_score_max: float = 3.0
    fairness_allowed_day_counts: tuple[int, ...] = field(default=(2, 3))

    summary_assignment_type: str = "FAIR"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    defaults = Settings()
    database_path = os.getenv("SESSION_DATABASE_PATH")
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        reference_timezone=os.getenv("REFERENCE_TIMEZONE", defaults.reference_timezone),
        schedule_api_base_url=os.getenv(
            "SCHEDULE_API_BASE_URL",
            defaults.schedule_api_base_url,
        ).rstrip("/"),
        schedule_api_token=os.getenv("SCHEDULE_API_TOKEN") or None,
        schedule_api_timeout_seconds=_env_float(
            "SCHEDULE_API_TIMEOUT_SECONDS",
            defaults.schedule_api_timeout_seconds,
        ),
        session_database_path=(
            Path(database_path) if database_path else defaults.session_database_path
        ),
        fairness_score_min=_env_float("FAIRNESS_SCORE_MIN", defaults.fairness_score_min),
        fairness_score_max=_env_float("FAIRNESS_SCORE_MAX", defaults.fairness_score_max),
        fairness_allowed_day_counts=_env_int_tuple(
            "FAIRNESS_ALLOWED_DAY_COUNTS",
            defaults.fairness_allowed_day_counts,
        ),
        summary_assignment_type=os.getenv(
            "SUMMARY_ASSIGNMENT_TYPE",
            defaults.summary_assignment_type,
        ),
    )
