"""
agent/nodes/decide_node.py

Decide node: asks the controller whether another round is needed. On a
stop it composes the final answer and moves the session to its terminal
state:

    success / iteration cap / loop / validation -> completed
    wall-clock cap                              -> timeout
"""

from __future__ import annotations

import logging
from typing import Callable

from langgraph.graph import END

from agent.state import RoundDependencies, RoundState
from app.logging_utils import log_event
from session.models import IterationErrorKind

logger = logging.getLogger(__name__)

INTENT_NODE = "request_intent"


def build_decide_node(deps: RoundDependencies) -> Callable[[RoundState], RoundState]:
    def decide_node(state: RoundState) -> RoundState:
        session_id = state["session_id"]
        decision = deps.controller.should_continue(session_id, state["validation"], deps.config)
        log_event(
            logger,
            logging.INFO,
            "iterative_round_decided",
            session_id=session_id,
            should_continue=decision.should_continue,
            reason=decision.reason,
            error_kind=decision.error_kind.value if decision.error_kind else None,
        )
        if decision.should_continue:
            return {"decision": decision}

        final_answer = deps.answer_provider.final_answer(state["question"], list(state.get("history") or []))
        if decision.error_kind is IterationErrorKind.SESSION_TIMEOUT:
            deps.controller.timeout_session(session_id, decision.reason, result=final_answer)
        else:
            deps.controller.complete_session(session_id, final_answer, decision.reason, decision.error_kind)
        return {"decision": decision, "final_answer": final_answer}

    return decide_node


def route_after_decide(state: RoundState) -> str:
    decision = state.get("decision")
    if decision is not None and decision.should_continue:
        return INTENT_NODE
    return END
