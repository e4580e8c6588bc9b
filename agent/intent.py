"""
agent/intent.py

Query intent contract and parsing of the reasoning agent's raw output.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from aggregation.engine import AggregationSpec
from filtering.schema import FilterExpression, coerce_filters

logger = logging.getLogger(__name__)

IntentType = Literal["aggregation", "detail", "trend", "comparison", "recommendation", "ranking"]

FALLBACK_INTENT_CONFIDENCE = 0.3

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class OrderBy(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    field: str
    direction: Literal["asc", "desc"] = "desc"


class QueryIntent(BaseModel):
    """
    Structured request for one round.

    Malformed filter clauses become never-matching placeholders and
    malformed aggregation specs are dropped, so one bad clause does not
    invalidate the whole intent.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    type: IntentType = "detail"
    filters: List[FilterExpression] = Field(default_factory=list)
    aggregations: List[AggregationSpec] = Field(default_factory=list)
    limit: Optional[int] = None
    order_by: Optional[Union[str, OrderBy]] = Field(default=None, alias="orderBy")
    confidence: float = 0.5

    @field_validator("filters", mode="before")
    @classmethod
    def _coerce_filters(cls, value: Any) -> list[FilterExpression]:
        return coerce_filters(value)

    @field_validator("aggregations", mode="before")
    @classmethod
    def _coerce_aggregations(cls, value: Any) -> list[AggregationSpec]:
        if value is None or isinstance(value, (str, bytes)):
            return []
        if isinstance(value, Mapping):
            value = [value]
        specs = (AggregationSpec.from_untrusted(item) for item in value)
        return [spec for spec in specs if spec is not None]

    @field_validator("limit", mode="before")
    @classmethod
    def _coerce_limit(cls, value: Any) -> int | None:
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return None
        return limit if limit > 0 else None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return 0.5
        return max(0.0, min(1.0, confidence))

    def as_log_payload(self) -> dict[str, Any]:
        """Plain-dict form stored in the round log."""

        order_by = self.order_by.model_dump() if isinstance(self.order_by, OrderBy) else self.order_by
        return {
            "type": self.type,
            "filters": [clause.model_dump(by_alias=True) for clause in self.filters],
            "aggregations": [spec.model_dump(by_alias=True) for spec in self.aggregations],
            "limit": self.limit,
            "orderBy": order_by,
            "confidence": self.confidence,
        }


def fallback_intent() -> QueryIntent:
    return QueryIntent(type="detail", filters=[], confidence=FALLBACK_INTENT_CONFIDENCE)


class QueryIntentParseError(Exception):
    """Raised when agent output cannot be turned into a :class:`QueryIntent`.

    Attributes:
        stage: Which step failed ("extract", "json_parse" or "schema").
        errors: Human-readable error descriptions.
        raw_response: The original payload.
    """

    def __init__(self, stage: str, errors: list[str], raw_response: Any) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        super().__init__(f"Query intent parsing failed at stage '{stage}': " + "; ".join(errors))


def _strip_markdown_fences(text: str) -> str:
    stripped = text.strip()
    match = re.match(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", stripped, re.DOTALL)
    if match:
        return match.group(1).strip()
    return stripped


def validate_query_intent(raw: Any) -> QueryIntent:
    """Validate agent output strictly.

    Accepts a :class:`QueryIntent`, a mapping, or text containing one JSON
    object (optionally fenced, optionally surrounded by prose).

    Raises:
        QueryIntentParseError: If no object can be extracted or it fails
            schema validation.
    """
    if isinstance(raw, QueryIntent):
        return raw

    if isinstance(raw, Mapping):
        data: Any = dict(raw)
    elif isinstance(raw, str):
        cleaned = _strip_markdown_fences(raw)
        match = _JSON_OBJECT.search(cleaned)
        if match is None:
            raise QueryIntentParseError(stage="extract", errors=["no JSON object found"], raw_response=raw)
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise QueryIntentParseError(stage="json_parse", errors=[str(exc)], raw_response=raw) from exc
    else:
        raise QueryIntentParseError(
            stage="extract",
            errors=[f"unsupported payload type {type(raw).__name__}"],
            raw_response=raw,
        )

    if not isinstance(data, dict):
        raise QueryIntentParseError(stage="schema", errors=["top-level JSON must be an object"], raw_response=raw)

    try:
        return QueryIntent.model_validate(data)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in exc.errors()]
        raise QueryIntentParseError(stage="schema", errors=errors, raw_response=raw) from exc


def parse_query_intent(raw: Any) -> QueryIntent:
    """Lenient variant of :func:`validate_query_intent`.

    Any failure yields a ``detail`` intent with no filters and confidence 0.3.
    """
    try:
        return validate_query_intent(raw)
    except QueryIntentParseError as exc:
        logger.warning("Falling back to detail intent: %s", exc)
        return fallback_intent()
