"""
agent/nodes/intent_node.py

Intent node: asks the intent provider what data the next round should
look at and parses its output into a QueryIntent. Unusable output falls
back to a low-confidence detail intent.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from agent.intent import parse_query_intent
from agent.state import RoundDependencies, RoundState

logger = logging.getLogger(__name__)


def build_intent_node(deps: RoundDependencies) -> Callable[[RoundState], RoundState]:
    def intent_node(state: RoundState) -> RoundState:
        started = time.perf_counter()
        history = state.get("history") or []
        raw_intent = deps.intent_provider.next_intent(state["question"], list(history))
        intent = parse_query_intent(raw_intent)
        logger.debug(
            "Round %d intent type=%s filters=%d aggregations=%d",
            len(history) + 1,
            intent.type,
            len(intent.filters),
            len(intent.aggregations),
        )
        return {"round_started": started, "intent": intent}

    return intent_node
