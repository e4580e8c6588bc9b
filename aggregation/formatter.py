"""
aggregation/formatter.py

Compact text renderings handed to the reasoning agent.

Aggregation output stays in the tens-to-hundreds of bytes even when the
underlying set holds thousands of records.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Final

import numpy as np

from aggregation.cache import CacheFields, parse_record_date
from aggregation.engine import AggregationResult
from aggregation.numeric import numeric_column
from matching.normalizer import stringify

MAX_FORMATTED_POINTS: Final[int] = 20
MONETARY_FIELD: Final[str] = "totalValueUSD"

_OPERATION_LABELS: Final[dict[str, str]] = {
    "count": "Count",
    "sum": "Total",
    "average": "Average",
    "min": "Min",
    "max": "Max",
}

DEFAULT_DETAIL_COLUMNS: Final[tuple[str, ...]] = (
    "declarationNumber",
    "date",
    "importCompanyName",
    "importCountry",
    "goodsName",
    "categoryName",
    "quantity",
    "unit",
    "unitPriceUSD",
    "totalValueUSD",
)

DETAIL_SUMMARY_FIELDS: Final[CacheFields] = CacheFields(company="importCompanyName")


def format_money(value: float) -> str:
    return f"${value:,.0f}"


def format_for_agent(
    result: AggregationResult,
    *,
    max_points: int = MAX_FORMATTED_POINTS,
    monetary_field: str = MONETARY_FIELD,
) -> str:
    """
    Render an aggregation result as a short, deterministic text block.

    Example::

        Total by companyName
          XYZ Ltd: $165,000 (2 records)
          ABC Corp: $80,000 (2 records)
        Total records: 5
    """

    spec = result.spec
    label = _OPERATION_LABELS.get(spec.operation, "Max")
    header = f"{label} by {spec.group_by or 'Overall'}"

    as_money = spec.field == monetary_field or spec.operation == "sum"
    lines = []
    for point in result.data_points[:max_points]:
        value_text = format_money(point.value) if as_money else f"{point.value:.2f}"
        count_text = f" ({point.count} records)" if point.count else ""
        lines.append(f"  {point.key}: {value_text}{count_text}")

    footer = f"Total records: {result.total_records}"
    if len(result.data_points) > max_points:
        footer += f", showing top {max_points} of {len(result.data_points)}"

    return "\n".join([header, *lines, footer])


def format_records_for_agent(
    records: Sequence[Mapping[str, Any]],
    *,
    columns: Sequence[str] = DEFAULT_DETAIL_COLUMNS,
    limit: int | None = None,
    fields: CacheFields = DETAIL_SUMMARY_FIELDS,
) -> str:
    """
    Render records as a numbered pipe-separated table with a summary header.

    Row numbers are 1-based so answers can cite "Transaction N".
    """

    shown = records if limit is None or limit <= 0 else records[:limit]
    values = numeric_column(records, fields.value)
    dates = [parsed for parsed in (parse_record_date(r.get(fields.date)) for r in records) if parsed]

    def _distinct(name: str) -> int:
        return len({stringify(r.get(name)) for r in records if r.get(name) not in (None, "")})

    date_range = "n/a"
    if dates:
        earliest = min(dates, key=lambda d: d.replace(tzinfo=None))
        latest = max(dates, key=lambda d: d.replace(tzinfo=None))
        date_range = f"{earliest.date().isoformat()} to {latest.date().isoformat()}"

    summary = [
        "DATA SUMMARY:",
        f"- Records: {len(records)}",
        f"- Total value: ${float(np.nansum(values)):,.2f}",
        f"- Companies: {_distinct(fields.company)}",
        f"- Categories: {_distinct(fields.category)}",
        f"- Countries: {_distinct(fields.country)}",
        f"- Date range: {date_range}",
        "",
        "FORMAT: #|" + "|".join(columns),
        "",
        "RECORDS:",
    ]
    rows = [
        f"{index}|" + "|".join("" if r.get(c) is None else stringify(r.get(c)) for c in columns)
        for index, r in enumerate(shown, start=1)
    ]
    if len(shown) < len(records):
        rows.append(f"... {len(records) - len(shown)} more records not shown")
    return "\n".join(summary + rows)
