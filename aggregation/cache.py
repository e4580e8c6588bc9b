"""
aggregation/cache.py

Precomputed aggregation snapshot for one working set.

A cache is a pure function of the record set it was built from. It is
never patched: when the working set changes the owner builds a new one.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Final

import numpy as np

from aggregation.engine import AggregationDataPoint, group_by, top_n
from aggregation.numeric import numeric_column
from app.logging_utils import log_event

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

CACHE_DIMENSIONS: Final[tuple[str, ...]] = ("company", "category", "country", "month")

_DATE_FORMATS: Final[tuple[str, ...]] = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y")


@dataclass(frozen=True)
class CacheFields:
    """
    Record field names the cache reads.
    """

    company: str = "companyName"
    category: str = "categoryName"
    country: str = "importCountry"
    value: str = "totalValueUSD"
    date: str = "date"


@dataclass(frozen=True)
class AggregationCache:
    by_company: Mapping[str, AggregationDataPoint]
    by_category: Mapping[str, AggregationDataPoint]
    by_country: Mapping[str, AggregationDataPoint]
    by_month: Mapping[str, AggregationDataPoint]
    total_value: float
    total_count: int
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def dimension(self, name: str) -> Mapping[str, AggregationDataPoint] | None:
        return {
            "company": self.by_company,
            "category": self.by_category,
            "country": self.by_country,
            "month": self.by_month,
        }.get(name)


def parse_record_date(value: Any) -> datetime | None:
    """
    Parse a record date value; returns None when unparseable.

    Accepts ``date``/``datetime`` objects, ISO 8601 strings (with an optional
    trailing ``Z``) and the day-first formats common in customs exports.
    """

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def month_key(value: Any) -> str | None:
    parsed = parse_record_date(value)
    if parsed is None:
        return None
    return f"{parsed.year:04d}-{parsed.month:02d}"


def _freeze(points: Sequence[AggregationDataPoint]) -> Mapping[str, AggregationDataPoint]:
    return MappingProxyType({point.key: point for point in points})


def _sum_by_month(records: Sequence[Record], fields: CacheFields) -> list[AggregationDataPoint]:
    values = numeric_column(records, fields.value)
    months: dict[str, list[int]] = {}
    for index, record in enumerate(records):
        key = month_key(record.get(fields.date))
        if key is None:
            continue
        months.setdefault(key, []).append(index)

    points = []
    for key, indices in months.items():
        month_values = values[indices]
        points.append(
            AggregationDataPoint(
                key=key,
                value=float(np.nansum(month_values)),
                count=len(indices),
            )
        )
    return sorted(points, key=lambda point: -point.value)


def build_cache(records: Sequence[Record], fields: CacheFields | None = None) -> AggregationCache:
    """
    Compute sums of the monetary field by company, category, country and month.

    Records with an unparseable date are left out of the monthly buckets
    only; they still count everywhere else.
    """

    resolved = fields or CacheFields()
    started = time.perf_counter()

    cache = AggregationCache(
        by_company=_freeze(group_by(records, resolved.company, resolved.value, "sum")),
        by_category=_freeze(group_by(records, resolved.category, resolved.value, "sum")),
        by_country=_freeze(group_by(records, resolved.country, resolved.value, "sum")),
        by_month=_freeze(_sum_by_month(records, resolved)),
        total_value=float(np.nansum(numeric_column(records, resolved.value))),
        total_count=len(records),
    )
    log_event(
        logger,
        logging.DEBUG,
        "aggregation_cache_built",
        record_count=cache.total_count,
        companies=len(cache.by_company),
        categories=len(cache.by_category),
        countries=len(cache.by_country),
        months=len(cache.by_month),
        elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
    )
    return cache


def query_cache_top_n(cache: AggregationCache, dimension: str, n: int) -> list[AggregationDataPoint]:
    """
    Top *n* points of one cached dimension; unknown dimensions yield nothing.
    """

    points = cache.dimension(dimension)
    if points is None:
        logger.warning("Unknown cache dimension %r; expected one of %s", dimension, CACHE_DIMENSIONS)
        return []
    ordered = sorted(points.values(), key=lambda point: -point.value)
    return top_n(ordered, n)
