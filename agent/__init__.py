"""
agent package exports.
"""

from agent.context import (
    QuestionValidationError,
    apply_query_intent,
    estimate_confidence,
    extract_citations,
    order_records,
    validate_question,
)
from agent.graph import IterationError, IterativeQueryResponse, IterativeQueryRunner, build_round_graph
from agent.intent import (
    OrderBy,
    QueryIntent,
    QueryIntentParseError,
    fallback_intent,
    parse_query_intent,
    validate_query_intent,
)
from agent.providers import (
    AnswerProvider,
    IntentProvider,
    RoundRecord,
    StaticIntentProvider,
    SummaryAnswerProvider,
)

__all__ = [
    "AnswerProvider",
    "IntentProvider",
    "IterationError",
    "IterativeQueryResponse",
    "IterativeQueryRunner",
    "OrderBy",
    "QueryIntent",
    "QueryIntentParseError",
    "QuestionValidationError",
    "RoundRecord",
    "StaticIntentProvider",
    "SummaryAnswerProvider",
    "apply_query_intent",
    "build_round_graph",
    "estimate_confidence",
    "extract_citations",
    "fallback_intent",
    "order_records",
    "parse_query_intent",
    "validate_query_intent",
    "validate_question",
]
