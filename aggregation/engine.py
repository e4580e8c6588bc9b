"""
aggregation/engine.py

Group-by, totals and top-N over record snapshots.

All arithmetic runs in float64. Values that do not coerce to a number are
left out of sum/average/min/max; ``count`` always counts records.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Final

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aggregation.numeric import numeric_column
from matching.normalizer import stringify

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

AGGREGATION_OPERATIONS: Final[tuple[str, ...]] = ("count", "sum", "average", "min", "max")
UNKNOWN_GROUP_KEY: Final[str] = "Unknown"
TOTAL_KEY: Final[str] = "Total"


class AggregationSpec(BaseModel):
    """
    Aggregation request from the reasoning agent.

    ``operation`` stays a free string; unknown operations produce 0.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    field: str
    operation: str = "count"
    group_by: str | None = Field(default=None, alias="groupBy")

    @classmethod
    def from_untrusted(cls, raw: Any) -> "AggregationSpec | None":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            return None
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as exc:
            logger.warning("Discarding malformed aggregation spec: %s", exc.errors(include_url=False))
            return None


@dataclass(frozen=True)
class AggregationDataPoint:
    key: str
    value: float
    count: int


@dataclass(frozen=True)
class AggregationResult:
    """
    Output of one aggregation spec over one record set.
    """

    spec: AggregationSpec
    data_points: tuple[AggregationDataPoint, ...]
    total_records: int
    execution_time_ms: float
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Reductions
# ---------------------------------------------------------------------------


def _reduce(values: np.ndarray, operation: str, record_count: int) -> float:
    if operation == "count":
        return float(record_count)

    numeric = values[~np.isnan(values)]
    if operation == "sum":
        return float(numeric.sum()) if numeric.size else 0.0
    if operation == "average":
        return float(numeric.mean()) if numeric.size else 0.0
    if operation == "min":
        return float(numeric.min()) if numeric.size else 0.0
    if operation == "max":
        return float(numeric.max()) if numeric.size else 0.0
    return 0.0


def group_key(value: Any) -> str:
    """
    Stringified group label; missing, ``None`` and ``""`` become ``"Unknown"``.
    """

    if value is None:
        return UNKNOWN_GROUP_KEY
    text = stringify(value)
    return text if text != "" else UNKNOWN_GROUP_KEY


def group_by(
    records: Sequence[Record],
    group_field: str,
    value_field: str,
    operation: str,
) -> list[AggregationDataPoint]:
    """
    Partition *records* by *group_field* and reduce *value_field* per group.

    Output is sorted by value descending; ties keep first-seen group order.
    """

    values = numeric_column(records, value_field)
    partitions: dict[str, list[int]] = {}
    for index, record in enumerate(records):
        partitions.setdefault(group_key(record.get(group_field)), []).append(index)

    points = [
        AggregationDataPoint(
            key=key,
            value=_reduce(values[indices], operation, len(indices)),
            count=len(indices),
        )
        for key, indices in partitions.items()
    ]
    return sorted(points, key=lambda point: -point.value)


def compute_total(records: Sequence[Record], field: str, operation: str) -> AggregationDataPoint:
    """
    Reduce *field* over every record into one ``"Total"`` point.
    """

    values = numeric_column(records, field)
    return AggregationDataPoint(
        key=TOTAL_KEY,
        value=_reduce(values, operation, len(records)),
        count=len(records),
    )


def top_n(points: Sequence[AggregationDataPoint], n: int) -> list[AggregationDataPoint]:
    """
    First *n* points. Input is assumed already sorted; no re-sort happens here.
    """

    if n <= 0:
        return []
    return list(points[:n])


def compute_aggregation(records: Sequence[Record], spec: AggregationSpec) -> AggregationResult:
    started = time.perf_counter()
    if spec.group_by:
        points = group_by(records, spec.group_by, spec.field, spec.operation)
    else:
        points = [compute_total(records, spec.field, spec.operation)]

    return AggregationResult(
        spec=spec,
        data_points=tuple(points),
        total_records=len(records),
        execution_time_ms=(time.perf_counter() - started) * 1000.0,
    )


def compute_aggregations(
    records: Sequence[Record],
    specs: Sequence[AggregationSpec | Mapping[str, Any]],
) -> list[AggregationResult]:
    """
    Compute every valid spec; malformed specs are skipped.
    """

    results: list[AggregationResult] = []
    for raw_spec in specs:
        spec = AggregationSpec.from_untrusted(raw_spec)
        if spec is None:
            continue
        results.append(compute_aggregation(records, spec))
    return results
