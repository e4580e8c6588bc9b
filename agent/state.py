"""
agent/state.py

LangGraph state schema for the iterative question pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from typing_extensions import TypedDict

from agent.intent import QueryIntent
from agent.providers import AnswerProvider, IntentProvider, RoundRecord
from app.config import IterationConfig
from filtering.engine import FilterOptions
from session.controller import IterativeSessionController
from session.models import ContinueDecision, DataValidationResult, QueryResult
from session.validator import DataValidator


class RoundState(TypedDict, total=False):
    """State passed between the nodes of one question's round loop."""

    question: str
    session_id: str
    records: List[Mapping[str, Any]]

    round_started: float
    intent: Optional[QueryIntent]
    round_records: List[Mapping[str, Any]]
    context: str
    result: Optional[QueryResult]
    validation: DataValidationResult
    decision: Optional[ContinueDecision]

    history: List[RoundRecord]
    final_answer: Optional[str]


@dataclass(frozen=True)
class RoundDependencies:
    """Collaborators shared by every node of one runner."""

    intent_provider: IntentProvider
    answer_provider: AnswerProvider
    controller: IterativeSessionController
    validator: DataValidator
    config: IterationConfig
    filter_options: FilterOptions = field(default_factory=FilterOptions)
