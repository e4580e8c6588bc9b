"""
agent/nodes/answer_node.py

Answer node: asks the answer provider for a round answer and scores it
(citations, confidence).
"""

from __future__ import annotations

import time
from typing import Callable

from agent.context import estimate_confidence, extract_citations
from agent.state import RoundDependencies, RoundState
from session.models import QueryResult


def build_answer_node(deps: RoundDependencies) -> Callable[[RoundState], RoundState]:
    def answer_node(state: RoundState) -> RoundState:
        answer = deps.answer_provider.answer(state["question"], state["intent"], state["context"])
        citations = extract_citations(answer)
        result = QueryResult(
            answer=answer,
            citations=tuple(citations),
            confidence=estimate_confidence(answer, citations),
            processing_time_ms=(time.perf_counter() - state["round_started"]) * 1000.0,
        )
        return {"result": result}

    return answer_node
