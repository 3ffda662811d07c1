"""Domain-level fairness rules checked against the scheduling service output."""

from __future__ import annotations

import math
from dataclasses import dataclass

from fairshift.domain.models import (
    FairnessMetric,
    FairnessReport,
    FairnessRule,
    FairnessViolation,
)
from fairshift.utils.config import Settings
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class FairnessBounds:
    score_min: float = -3.0
    score_max: float = 3.0
    allowed_day_counts: tuple[int, ...] = (2, 3)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FairnessBounds":
        bounds = cls(
            score_min=settings.fairness_score_min,
            score_max=settings.fairness_score_max,
            allowed_day_counts=tuple(settings.fairness_allowed_day_counts),
        )
        validate_fairness_bounds(bounds)
        return bounds


def validate_fairness_bounds(bounds: FairnessBounds) -> None:
    if math.isnan(bounds.score_min) or math.isnan(bounds.score_max):
        raise ValueError("fairness score bounds must be numbers")
    if bounds.score_min > bounds.score_max:
        raise ValueError("fairness score_min must be <= score_max")
    if not bounds.allowed_day_counts:
        raise ValueError("allowed_day_counts must contain at least one value")
    if any(count < 0 for count in bounds.allowed_day_counts):
        raise ValueError("allowed_day_counts values must be >= 0")


def _score_in_bounds(score: float, bounds: FairnessBounds) -> bool:
    # NaN compares False both ways and lands out of bounds.
    return bounds.score_min <= score <= bounds.score_max


def validate_fairness_metric(
    metric: FairnessMetric,
    bounds: FairnessBounds | None = None,
) -> FairnessReport:
    """Check one algorithm's fairness summary against the scheduling contract.

    The report is advisory: violations are collected, never raised, and the
    metric itself is left untouched.
    """
    resolved = bounds or FairnessBounds()
    violations: list[FairnessViolation] = []

    out_of_bounds: list[str] = []
    for employee_id in sorted(metric.scores):
        score = float(metric.scores[employee_id])
        if _score_in_bounds(score, resolved):
            continue
        out_of_bounds.append(employee_id)
        violations.append(
            FairnessViolation(
                employee_id=employee_id,
                rule=FairnessRule.SCORE_OUT_OF_BOUNDS,
                value=score,
                detail=(
                    f"score {score} outside [{resolved.score_min}, {resolved.score_max}]"
                ),
            )
        )

    invalid_assignments: list[str] = []
    if metric.has_day_counts:
        allowed = set(resolved.allowed_day_counts)
        for employee_id in sorted(metric.total_days_count or {}):
            count = metric.total_days_count[employee_id]
            if count in allowed:
                continue
            invalid_assignments.append(employee_id)
            violations.append(
                FairnessViolation(
                    employee_id=employee_id,
                    rule=FairnessRule.INVALID_DAY_COUNT,
                    value=float(count),
                    detail=(
                        f"assigned {count} days, expected one of "
                        f"{sorted(allowed)}"
                    ),
                )
            )

    _log_upstream_disagreement(metric, out_of_bounds, invalid_assignments)
    return FairnessReport(
        out_of_bounds=out_of_bounds,
        invalid_assignments=invalid_assignments,
        violations=violations,
    )


def _log_upstream_disagreement(
    metric: FairnessMetric,
    out_of_bounds: list[str],
    invalid_assignments: list[str],
) -> None:
    if not metric.reports_violations:
        return
    if metric.out_of_bounds is not None and set(metric.out_of_bounds) != set(out_of_bounds):
        logger.warning(
            "Upstream outOfBounds %s disagrees with local check %s",
            sorted(metric.out_of_bounds),
            out_of_bounds,
        )
    if (
        metric.invalid_assignments is not None
        and metric.has_day_counts
        and set(metric.invalid_assignments) != set(invalid_assignments)
    ):
        logger.warning(
            "Upstream invalidAssignments %s disagrees with local check %s",
            sorted(metric.invalid_assignments),
            invalid_assignments,
        )
