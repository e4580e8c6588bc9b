"""
filtering package exports.
"""

from filtering.engine import (
    FilterExecution,
    FilterLog,
    FilterOptions,
    apply_filter,
    execute_filters,
    matches_filter_expression,
    run_filters,
)
from filtering.schema import FILTER_MATCH_STRATEGIES, FILTER_OPERATORS, FilterExpression, coerce_filters

__all__ = [
    "FILTER_MATCH_STRATEGIES",
    "FILTER_OPERATORS",
    "FilterExecution",
    "FilterExpression",
    "FilterLog",
    "FilterOptions",
    "apply_filter",
    "coerce_filters",
    "execute_filters",
    "matches_filter_expression",
    "run_filters",
]
