"""
agent/context.py

Turns a query intent into the compact context handed to the answer
provider, and scores the answer text that comes back.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from agent.intent import OrderBy, QueryIntent
from aggregation.engine import compute_aggregations
from aggregation.formatter import format_for_agent, format_records_for_agent
from aggregation.numeric import is_number
from filtering.engine import FilterOptions, execute_filters
from matching.normalizer import stringify
from session.models import Confidence

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

MAX_QUESTION_LENGTH: Final[int] = 1000
DEFAULT_EXPECTED_FIELDS: Final[tuple[str, ...]] = ("totalValueUSD", "importCompanyName", "categoryName")

_DESCENDING_HINT: Final[re.Pattern[str]] = re.compile(r"most|highest|top|max", re.IGNORECASE)

_CITATION_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"Transaction (\d+)", re.IGNORECASE),
    re.compile(r"giao dịch (\d+)", re.IGNORECASE),
    re.compile(r"tờ khai số (\d+)", re.IGNORECASE),
)
_UNCERTAIN: Final[re.Pattern[str]] = re.compile(r"không chắc|maybe|might|possibly|uncertain", re.IGNORECASE)
_NOT_FOUND: Final[re.Pattern[str]] = re.compile(
    r"không tìm thấy|cannot find|không có thông tin|no information", re.IGNORECASE
)


class QuestionValidationError(ValueError):
    """
    Raised when a question is empty or longer than :data:`MAX_QUESTION_LENGTH`.
    """


def validate_question(question: str) -> str:
    if not question or not question.strip():
        raise QuestionValidationError("Question must not be empty")
    if len(question) > MAX_QUESTION_LENGTH:
        raise QuestionValidationError(f"Question is too long (maximum {MAX_QUESTION_LENGTH} characters)")
    return question


# ---------------------------------------------------------------------------
# Round data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoundData:
    records: list[Record]
    context: str


def sort_direction(intent: QueryIntent, question: str) -> str:
    if isinstance(intent.order_by, OrderBy):
        return intent.order_by.direction
    if intent.type == "ranking" or _DESCENDING_HINT.search(question):
        return "desc"
    return "asc"


def order_records(records: Sequence[Record], field: str, direction: str) -> list[Record]:
    """
    Stable sort on *field*. Two numbers compare numerically; anything else
    compares as text, with falsy values treated as empty text.
    """

    def _compare(left: Record, right: Record) -> int:
        left_value = left.get(field)
        right_value = right.get(field)
        if is_number(left_value) and is_number(right_value):
            result = (left_value > right_value) - (left_value < right_value)
        else:
            left_text = stringify(left_value) if left_value else ""
            right_text = stringify(right_value) if right_value else ""
            result = (left_text > right_text) - (left_text < right_text)
        return -result if direction == "desc" else result

    return sorted(records, key=functools.cmp_to_key(_compare))


def apply_query_intent(
    records: Sequence[Record],
    intent: QueryIntent,
    question: str,
    *,
    filter_options: FilterOptions | None = None,
) -> RoundData:
    """
    Filter, order, limit, then render context for one round.

    Aggregation intents with at least one spec render aggregation blocks;
    every other intent renders the matching records as a table.
    """

    selected: list[Record] = list(records)
    if intent.filters:
        selected = execute_filters(selected, intent.filters, filter_options)
        logger.debug("Filtered %d -> %d records", len(records), len(selected))

    if intent.order_by:
        order_field = intent.order_by.field if isinstance(intent.order_by, OrderBy) else intent.order_by
        selected = order_records(selected, order_field, sort_direction(intent, question))

    if intent.limit:
        selected = selected[: intent.limit]

    if intent.type == "aggregation" and intent.aggregations:
        results = compute_aggregations(selected, intent.aggregations)
        blocks = "\n\n".join(format_for_agent(result) for result in results)
        context = f"AGGREGATED DATA ({len(selected)} records):\n{blocks}"
    else:
        context = format_records_for_agent(selected)

    return RoundData(records=selected, context=context)


def expected_fields(intent: QueryIntent) -> list[str]:
    if intent.aggregations:
        return [spec.field for spec in intent.aggregations]
    return list(DEFAULT_EXPECTED_FIELDS)


# ---------------------------------------------------------------------------
# Answer scoring
# ---------------------------------------------------------------------------


def extract_citations(answer: str) -> list[str]:
    """
    Record references such as "Transaction 5" in order of first appearance.
    """

    citations: list[str] = []
    for pattern in _CITATION_PATTERNS:
        for match in pattern.finditer(answer):
            if match.group(0) not in citations:
                citations.append(match.group(0))
    return citations


def estimate_confidence(answer: str, citations: Sequence[str]) -> Confidence:
    if len(citations) >= 3 and re.search(r"\d", answer) and not _UNCERTAIN.search(answer):
        return "high"
    if not citations or _NOT_FOUND.search(answer):
        return "low"
    return "medium"
