"""
agent/nodes/data_node.py

Data node: applies the round's intent to the record snapshot and renders
the compact context for the answer provider.
"""

from __future__ import annotations

import logging
from typing import Callable

from agent.context import apply_query_intent
from agent.state import RoundDependencies, RoundState

logger = logging.getLogger(__name__)


def build_data_node(deps: RoundDependencies) -> Callable[[RoundState], RoundState]:
    def data_node(state: RoundState) -> RoundState:
        intent = state["intent"]
        round_data = apply_query_intent(
            state["records"],
            intent,
            state["question"],
            filter_options=deps.filter_options,
        )
        logger.debug(
            "Round context: %d records, %d characters",
            len(round_data.records),
            len(round_data.context),
        )
        return {"round_records": round_data.records, "context": round_data.context}

    return data_node
