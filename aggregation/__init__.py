"""
aggregation package exports.
"""

from aggregation.cache import (
    CACHE_DIMENSIONS,
    AggregationCache,
    CacheFields,
    build_cache,
    month_key,
    parse_record_date,
    query_cache_top_n,
)
from aggregation.engine import (
    AGGREGATION_OPERATIONS,
    AggregationDataPoint,
    AggregationResult,
    AggregationSpec,
    compute_aggregation,
    compute_aggregations,
    compute_total,
    group_by,
    top_n,
)
from aggregation.formatter import format_for_agent, format_records_for_agent
from aggregation.numeric import coerce_number, is_number

__all__ = [
    "AGGREGATION_OPERATIONS",
    "AggregationCache",
    "AggregationDataPoint",
    "AggregationResult",
    "AggregationSpec",
    "CACHE_DIMENSIONS",
    "CacheFields",
    "build_cache",
    "coerce_number",
    "compute_aggregation",
    "compute_aggregations",
    "compute_total",
    "format_for_agent",
    "format_records_for_agent",
    "group_by",
    "is_number",
    "month_key",
    "parse_record_date",
    "query_cache_top_n",
    "top_n",
]
