"""Providers for the external reasoning agent.

The round pipeline asks an :class:`IntentProvider` what data to look at
next and an :class:`AnswerProvider` to answer from the compact context.
Model-backed implementations live outside this package; the classes here
are deterministic and need no network access.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from agent.intent import QueryIntent
from session.models import DataValidationResult, QueryResult


@dataclass(frozen=True)
class RoundRecord:
    """What one completed round produced, as seen by the providers."""

    iteration: int
    intent: QueryIntent
    result: QueryResult
    validation: DataValidationResult


class IntentProvider(ABC):
    """Abstract source of query intents."""

    @abstractmethod
    def next_intent(self, question: str, history: Sequence[RoundRecord]) -> QueryIntent | Mapping[str, Any] | str:
        """Choose the data to request for the next round.

        Args:
            question: The user's question.
            history: Rounds completed so far, oldest first.

        Returns:
            A QueryIntent, a mapping, or raw model text containing a JSON
            object. Anything unparseable falls back to a detail intent.
        """


class AnswerProvider(ABC):
    """Abstract answer generator."""

    @abstractmethod
    def answer(self, question: str, intent: QueryIntent, context: str) -> str:
        """Answer *question* from one round's *context*."""

    @abstractmethod
    def final_answer(self, question: str, history: Sequence[RoundRecord]) -> str:
        """Compose the answer returned once iteration stops."""


class StaticIntentProvider(IntentProvider):
    """Replays a fixed list of intents.

    Once the script is exhausted the last entry is repeated. An empty
    script behaves like an agent that never produces usable output.
    """

    def __init__(self, intents: Sequence[QueryIntent | Mapping[str, Any] | str]) -> None:
        self._intents = list(intents)

    def next_intent(self, question: str, history: Sequence[RoundRecord]) -> QueryIntent | Mapping[str, Any] | str:
        if not self._intents:
            return ""
        index = min(len(history), len(self._intents) - 1)
        return self._intents[index]


class SummaryAnswerProvider(AnswerProvider):
    """Answers with the context itself.

    Useful when the caller renders the context directly, and as a
    deterministic stand-in for a model in tests.
    """

    def answer(self, question: str, intent: QueryIntent, context: str) -> str:
        lines = [context]
        if intent.aggregations:
            specs = [spec.model_dump(by_alias=True, exclude_none=True) for spec in intent.aggregations]
            lines.append(f"Aggregations computed: {json.dumps(specs, ensure_ascii=False)}")
        return "\n\n".join(lines)

    def final_answer(self, question: str, history: Sequence[RoundRecord]) -> str:
        if not history:
            return "No data was retrieved for this question."
        return history[-1].result.answer
