"""Reshape multi-algorithm comparison results into chart-ready rows."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Mapping, Optional

from fairshift.domain.constraints import FairnessBounds, validate_fairness_metric
from fairshift.domain.models import ComparisonResult, ComparisonRow, FairnessMetric


class ComparisonPayloadError(ValueError):
    """Raised when a comparison response cannot be read as fairness metrics."""


# Chart legends depend on this order; new algorithms are appended after it.
ALGORITHM_ORDER: tuple[str, ...] = ("fairGreedy", "basicGreedy", "roundRobin")

ALGORITHM_NAMES: dict[str, str] = {
    "fairGreedy": "Fair Greedy",
    "basicGreedy": "Basic Greedy",
    "roundRobin": "Round Robin",
    "random": "Random",
}


def display_name(algorithm: str) -> str:
    known = ALGORITHM_NAMES.get(algorithm)
    if known is not None:
        return known
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", algorithm).replace("_", " ").split()
    return " ".join(word.capitalize() for word in words) or algorithm


def _float_map(raw: Any, field_name: str) -> dict[str, float]:
    if not isinstance(raw, Mapping):
        raise ComparisonPayloadError(f"{field_name} must be an object")
    try:
        return {str(key): float(value) for key, value in raw.items()}
    except (TypeError, ValueError) as exc:
        raise ComparisonPayloadError(f"{field_name} must map ids to numbers") from exc


def _optional_int_map(payload: Mapping[str, Any], field_name: str) -> dict[str, int] | None:
    if payload.get(field_name) is None:
        return None
    values = _float_map(payload[field_name], field_name)
    return {key: int(value) if float(value).is_integer() else value for key, value in values.items()}


def _optional_float(payload: Mapping[str, Any], field_name: str) -> float | None:
    raw = payload.get(field_name)
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ComparisonPayloadError(f"{field_name} must be a number") from exc


def _optional_ids(payload: Mapping[str, Any], field_name: str) -> tuple[str, ...] | None:
    raw = payload.get(field_name)
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)):
        raise ComparisonPayloadError(f"{field_name} must be a list of employee ids")
    return tuple(str(item) for item in raw)


def parse_fairness_metric(payload: Mapping[str, Any]) -> FairnessMetric:
    """Read any known comparison metric shape into one FairnessMetric.

    Narrow shapes (``total``, ``fairnessIndex``, ``scores`` only) leave the
    optional fields as ``None``.
    """
    if not isinstance(payload, Mapping):
        raise ComparisonPayloadError("fairness metric must be an object")
    for required in ("total", "fairnessIndex", "scores"):
        if required not in payload:
            raise ComparisonPayloadError(f"fairness metric is missing '{required}'")
    try:
        total = int(payload["total"])
        fairness_index = float(payload["fairnessIndex"])
    except (TypeError, ValueError) as exc:
        raise ComparisonPayloadError("total and fairnessIndex must be numbers") from exc

    return FairnessMetric(
        total=total,
        fairness_index=fairness_index,
        scores=_float_map(payload["scores"], "scores"),
        average_score=_optional_float(payload, "averageScore"),
        total_penalty=_optional_float(payload, "totalPenalty"),
        preferred_days_count=_optional_int_map(payload, "preferredDaysCount"),
        non_preferred_days_count=_optional_int_map(payload, "nonPreferredDaysCount"),
        total_days_count=_optional_int_map(payload, "totalDaysCount"),
        out_of_bounds=_optional_ids(payload, "outOfBounds"),
        invalid_assignments=_optional_ids(payload, "invalidAssignments"),
    )


def parse_comparison_result(payload: Mapping[str, Any], week_start: date) -> ComparisonResult:
    if not isinstance(payload, Mapping):
        raise ComparisonPayloadError("comparison response must be an object")
    metrics: dict[str, FairnessMetric] = {}
    for algorithm, raw_metric in payload.items():
        if not isinstance(raw_metric, Mapping):
            # Envelope fields such as "message" are not metrics.
            continue
        metrics[str(algorithm)] = parse_fairness_metric(raw_metric)
    return ComparisonResult(week_start=week_start, metrics=metrics)


def ordered_algorithms(result: ComparisonResult) -> list[str]:
    known = [algorithm for algorithm in ALGORITHM_ORDER if algorithm in result.metrics]
    extra = sorted(algorithm for algorithm in result.metrics if algorithm not in ALGORITHM_ORDER)
    return known + extra


def aggregate_comparison(result: Optional[ComparisonResult]) -> list[ComparisonRow]:
    if result is None:
        return []
    rows: list[ComparisonRow] = []
    for algorithm in ordered_algorithms(result):
        metric = result.metrics[algorithm]
        rows.append(
            ComparisonRow(
                algorithm=algorithm,
                name=display_name(algorithm),
                fairness_index=metric.fairness_index,
                average_score=metric.average_score,
                total_penalty=metric.total_penalty,
                total=metric.total,
            )
        )
    return rows


def fairness_summary(
    result: Optional[ComparisonResult],
    algorithm: str = "fairGreedy",
    bounds: FairnessBounds | None = None,
) -> dict[str, Any] | None:
    """Headline fairness card for one algorithm plus its validation report."""
    if result is None or algorithm not in result.metrics:
        return None
    metric = result.metrics[algorithm]
    report = validate_fairness_metric(metric, bounds)
    return {
        "algorithm": algorithm,
        "name": display_name(algorithm),
        "average_score": metric.average_score,
        "fairness_index": metric.fairness_index,
        "total_schedules": metric.total,
        "total_penalty": metric.total_penalty,
        "report": report,
    }
