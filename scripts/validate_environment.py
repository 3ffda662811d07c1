#!/usr/bin/env python3
"""Validate local scheduling dashboard environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fairshift.domain.constraints import FairnessBounds
from fairshift.domain.week import normalize_week, resolve_timezone
from fairshift.repository.session_repository import SessionStateRepository
from fairshift.utils.config import get_settings

SEPARATOR_LINE = "=" * 44

REQUIRED_PACKAGES = (
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
    ("pydantic", "pydantic"),
    ("httpx", "httpx"),
    ("pandas", "pandas"),
    ("tzdata", "tzdata"),
)


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="fairshift-env-")
    settings = get_settings()

    # CHECK 1 - Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 - Runtime packages importable, reported with installed versions
    found: list[str] = []
    missing: list[str] = []
    for module_name, dist_name in REQUIRED_PACKAGES:
        try:
            importlib.import_module(module_name)
            found.append(f"{dist_name} {version(dist_name)}")
        except (ImportError, PackageNotFoundError) as exc:
            missing.append(f"{dist_name} ({exc})")
    if missing:
        ok, line = _print_result("Required packages", False, "; ".join(missing))
    else:
        ok, line = _print_result("Required packages", True, ": " + ", ".join(found))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 3 - Scheduling service URL is absolute http(s)
    try:
        base_url = httpx.URL(settings.schedule_api_base_url)
    except httpx.InvalidURL:
        base_url = None
    if base_url is not None and base_url.scheme in ("http", "https") and base_url.host:
        ok, line = _print_result("Scheduling service URL", True, f": {base_url}")
    else:
        ok, line = _print_result(
            "Scheduling service URL",
            False,
            f"expected an absolute http(s) URL, got {settings.schedule_api_base_url!r}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 4 - Reference timezone resolves and normalizes a known week
    try:
        resolve_timezone(settings.reference_timezone)
        week = normalize_week("2025-06-21", settings.reference_timezone)
        if week.week_start != date(2025, 6, 16) or week.to_date != date(2025, 6, 20):
            raise RuntimeError(f"unexpected week {week.to_api_dict()}")
        ok, line = _print_result(
            "Reference timezone",
            True,
            f": {settings.reference_timezone}",
        )
    except Exception as exc:
        ok, line = _print_result("Reference timezone", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 5 - Fairness bounds configuration
    try:
        bounds = FairnessBounds.from_settings(settings)
        ok, line = _print_result(
            "Fairness bounds",
            True,
            f": scores [{bounds.score_min}, {bounds.score_max}] "
            f"days {list(bounds.allowed_day_counts)}",
        )
    except Exception as exc:
        ok, line = _print_result("Fairness bounds", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            settings,
            session_database_path=Path(temp_dir) / "fairshift_validation.db",
        )
        repository = SessionStateRepository(validation_settings)

        # CHECK 6 - Session database round trip
        try:
            repository.initialize_database()
            saved = normalize_week(date(2025, 6, 18), settings.reference_timezone)
            repository.save_date_range(saved)
            if repository.load_date_range() != saved:
                raise RuntimeError("saved date range was not restored")
            ok, line = _print_result("Session database", True)
        except Exception as exc:
            ok, line = _print_result("Session database", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Fairshift Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
