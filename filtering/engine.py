"""
filtering/engine.py

In-memory filter execution over record snapshots.

Clauses are folded left to right. Each clause's own ``logical_operator``
decides how the *next* clause is folded into the running result:

    result, op = True, "AND"
    for clause in clauses:
        result = (result and match) if op == "AND" else (result or match)
        op = clause.logical_operator
        if not result and op == "AND":
            break

A record survives iff the final folded result is true. Records are never
mutated and the input order is preserved.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
from typing import Any

from aggregation.numeric import coerce_number, is_number
from app.logging_utils import log_event
from filtering.schema import FilterExpression, coerce_filters
from matching.matcher import matches_value
from matching.normalizer import normalize_text, stringify
from matching.synonyms import SynonymTable, build_synonym_table

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

_STRATEGY_TO_MATCH_MODE: dict[str, str] = {
    "normalized": "contains",
    "case-insensitive": "contains",
}


@dataclass(frozen=True)
class FilterOptions:
    """
    Execution options shared by every clause of one evaluation.
    """

    remove_diacritics: bool = False
    synonyms: Mapping[str, Sequence[str]] | None = None
    log_execution: bool = False

    @cached_property
    def synonym_table(self) -> SynonymTable:
        return build_synonym_table(self.synonyms)


@dataclass(frozen=True)
class FilterLog:
    """
    Execution metadata for one filter evaluation.
    """

    matched_count: int
    total_count: int
    execution_time_ms: float
    applied_filters: tuple[FilterExpression, ...]
    logged_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class FilterExecution:
    records: list[Record]
    log: FilterLog


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def execute_filters(
    records: Sequence[Record],
    filters: Iterable[FilterExpression | Mapping[str, Any]] | None,
    options: FilterOptions | None = None,
) -> list[Record]:
    """
    Return the records matching *filters*, in input order.

    An empty clause list returns a new list with every input record.
    """

    return run_filters(records, filters, options).records


def run_filters(
    records: Sequence[Record],
    filters: Iterable[FilterExpression | Mapping[str, Any]] | None,
    options: FilterOptions | None = None,
) -> FilterExecution:
    """
    Execute *filters* and return the matched records with execution metadata.
    """

    resolved_options = options or FilterOptions()
    clauses = coerce_filters(filters)
    started = time.perf_counter()

    if not clauses:
        matched = list(records)
    else:
        table = resolved_options.synonym_table
        matched = [
            record
            for record in records
            if _fold_clauses(record, clauses, resolved_options, table)
        ]

    execution_log = FilterLog(
        matched_count=len(matched),
        total_count=len(records),
        execution_time_ms=(time.perf_counter() - started) * 1000.0,
        applied_filters=tuple(clauses),
    )
    if resolved_options.log_execution:
        log_event(
            logger,
            logging.INFO,
            "filters_executed",
            matched_count=execution_log.matched_count,
            total_count=execution_log.total_count,
            execution_time_ms=round(execution_log.execution_time_ms, 3),
            filters=[clause.model_dump(by_alias=True) for clause in clauses],
        )
    return FilterExecution(records=matched, log=execution_log)


def apply_filter(
    records: Sequence[Record],
    filter_expression: FilterExpression | Mapping[str, Any],
    options: FilterOptions | None = None,
) -> list[Record]:
    """
    Apply a single clause, ignoring its logical operator.
    """

    resolved_options = options or FilterOptions()
    clause = FilterExpression.from_untrusted(filter_expression)
    table = resolved_options.synonym_table
    return [
        record
        for record in records
        if matches_filter_expression(record, clause, resolved_options, table)
    ]


def _fold_clauses(
    record: Record,
    clauses: Sequence[FilterExpression],
    options: FilterOptions,
    table: SynonymTable,
) -> bool:
    result = True
    current_operator = "AND"
    for clause in clauses:
        matched = matches_filter_expression(record, clause, options, table)
        if current_operator == "AND":
            result = result and matched
        else:
            result = result or matched

        current_operator = clause.logical_operator
        if not result and current_operator == "AND":
            return False
    return result


# ---------------------------------------------------------------------------
# Clause evaluation
# ---------------------------------------------------------------------------


def matches_filter_expression(
    record: Record,
    clause: FilterExpression,
    options: FilterOptions | None = None,
    table: SynonymTable | None = None,
) -> bool:
    """
    Evaluate one clause against one record.

    Absent fields, ``None`` values, malformed clauses and unknown operators
    all evaluate to False.
    """

    if clause.is_malformed or not isinstance(record, Mapping):
        return False
    field_value = record.get(clause.field)
    if field_value is None:
        return False

    resolved_options = options or FilterOptions()
    synonyms = table if table is not None else resolved_options.synonym_table
    strip = resolved_options.remove_diacritics
    value = clause.value
    match_mode = _STRATEGY_TO_MATCH_MODE.get(clause.match_strategy, clause.match_strategy)

    operator = clause.operator
    if operator == "equals":
        if isinstance(value, str) and isinstance(field_value, str):
            if synonyms.same_group(field_value, value):
                return True
            return normalize_text(field_value, strip_diacritics=strip) == normalize_text(
                value, strip_diacritics=strip
            )
        return _strict_equals(field_value, value)

    if operator == "contains":
        field_text = stringify(field_value)
        if isinstance(value, str):
            if synonyms.same_group(field_text, value):
                return True
            return matches_value(
                field_text,
                value,
                match_strategy=match_mode,
                fuzzy_threshold=clause.fuzzy_threshold,
                strip_diacritics=strip,
            )
        return value is not None and stringify(value) in field_text

    if operator == "startsWith":
        field_text = stringify(field_value)
        if isinstance(value, str):
            return matches_value(
                field_text,
                value,
                match_strategy="startsWith",
                fuzzy_threshold=clause.fuzzy_threshold,
                strip_diacritics=strip,
            )
        return value is not None and field_text.startswith(stringify(value))

    if operator == "greaterThan":
        return _compare_numbers(field_value, value, lambda left, right: left > right)

    if operator == "lessThan":
        return _compare_numbers(field_value, value, lambda left, right: left < right)

    if operator == "between":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            return False
        number = coerce_number(field_value)
        lower = coerce_number(value[0])
        upper = coerce_number(value[1])
        if number is None or lower is None or upper is None:
            return False
        return lower <= number <= upper

    if operator == "in":
        if not isinstance(value, (list, tuple)):
            return False
        return any(_in_element_matches(field_value, element, synonyms, strip) for element in value)

    return False


def _in_element_matches(field_value: Any, element: Any, synonyms: SynonymTable, strip: bool) -> bool:
    if isinstance(element, str) and isinstance(field_value, str):
        if synonyms.same_group(field_value, element):
            return True
        return normalize_text(field_value, strip_diacritics=strip) == normalize_text(
            element, strip_diacritics=strip
        )
    return _strict_equals(field_value, element)


def _strict_equals(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return float(left) == float(right)
    return type(left) is type(right) and left == right


def _compare_numbers(field_value: Any, value: Any, compare) -> bool:
    left = coerce_number(field_value)
    right = coerce_number(value)
    if left is None or right is None:
        return False
    return compare(left, right)
