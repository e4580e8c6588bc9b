"""
filtering/schema.py

Contracts for filter clauses supplied by the external reasoning agent.

Clauses are untrusted input. Operator and match strategy are kept as free
strings so an unknown operator evaluates to "no match" at execution time
instead of failing validation for the whole clause list.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

FILTER_OPERATORS: Final[frozenset[str]] = frozenset(
    {"equals", "contains", "startsWith", "greaterThan", "lessThan", "between", "in"}
)
FILTER_MATCH_STRATEGIES: Final[frozenset[str]] = frozenset(
    {"exact", "fuzzy", "case-insensitive", "normalized"}
)

MALFORMED_OPERATOR: Final[str] = "__malformed__"
MAX_FUZZY_THRESHOLD: Final[int] = 5


class FilterExpression(BaseModel):
    """
    One filter clause.

    ``logical_operator`` joins this clause to the *next* one in a list.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    field: str
    operator: str
    value: Any = None
    match_strategy: str = Field(default="normalized", alias="matchStrategy")
    fuzzy_threshold: int = Field(default=2, alias="fuzzyThreshold")
    logical_operator: Literal["AND", "OR"] = Field(default="AND", alias="logicalOperator")

    @field_validator("fuzzy_threshold", mode="before")
    @classmethod
    def _clamp_fuzzy_threshold(cls, value: Any) -> int:
        if value is None:
            return 2
        try:
            threshold = int(value)
        except (TypeError, ValueError):
            return 2
        return max(0, min(MAX_FUZZY_THRESHOLD, threshold))

    @field_validator("logical_operator", mode="before")
    @classmethod
    def _fold_logical_operator(cls, value: Any) -> str:
        return _read_logical_operator(value)

    @field_validator("match_strategy", mode="before")
    @classmethod
    def _default_match_strategy(cls, value: Any) -> str:
        if value is None:
            return "normalized"
        return str(value)

    @property
    def is_malformed(self) -> bool:
        return self.operator == MALFORMED_OPERATOR

    @classmethod
    def malformed(cls, logical_operator: Any = None) -> "FilterExpression":
        """
        Placeholder for a clause that failed validation; it never matches.
        """

        return cls(
            field="",
            operator=MALFORMED_OPERATOR,
            logical_operator=_read_logical_operator(logical_operator),
        )

    @classmethod
    def from_untrusted(cls, raw: Any) -> "FilterExpression":
        """
        Coerce *raw* into a clause.

        Returns a malformed placeholder (keeping the readable logical
        operator, if any) when *raw* cannot be validated.
        """

        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            logger.warning("Discarding non-mapping filter clause of type %s", type(raw).__name__)
            return cls.malformed()
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as exc:
            logger.warning("Discarding malformed filter clause: %s", exc.errors(include_url=False))
            return cls.malformed(raw.get("logicalOperator", raw.get("logical_operator")))


def _read_logical_operator(value: Any) -> str:
    if isinstance(value, str) and value.strip().upper() == "OR":
        return "OR"
    return "AND"


def coerce_filters(raw_filters: Any) -> list[FilterExpression]:
    """
    Coerce an untrusted clause list. A non-list input yields no clauses.
    """

    if raw_filters is None or isinstance(raw_filters, (str, bytes)):
        return []
    if isinstance(raw_filters, (FilterExpression, Mapping)):
        raw_filters = [raw_filters]
    try:
        items = list(raw_filters)
    except TypeError:
        return []
    return [FilterExpression.from_untrusted(item) for item in items]
