"""
agent/graph.py

LangGraph workflow for answering one question in bounded rounds.

    START -> request_intent -> apply_intent -> answer -> validate -> decide
                  ^                                                   |
                  +-------------------- continue ---------------------+
                                                                      |
                                                                 stop -> END
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from langgraph.graph import END, START, StateGraph

from agent.context import validate_question
from agent.nodes.answer_node import build_answer_node
from agent.nodes.data_node import build_data_node
from agent.nodes.decide_node import INTENT_NODE, build_decide_node, route_after_decide
from agent.nodes.intent_node import build_intent_node
from agent.nodes.validate_node import build_validate_node
from agent.providers import AnswerProvider, IntentProvider, SummaryAnswerProvider
from agent.state import RoundDependencies, RoundState
from app.config import IterationConfig, get_iteration_config, get_matching_settings
from app.logging_utils import log_event
from filtering.engine import FilterOptions
from session.controller import IterativeSessionController
from session.errors import SessionError
from session.models import DataValidationResult, IterationErrorKind, IterativeQuerySession
from session.validator import DataValidator
from session.workspace import AnalysisSessionStore

logger = logging.getLogger(__name__)

NODES_PER_ROUND = 5


@dataclass(frozen=True)
class IterationError:
    kind: IterationErrorKind
    message: str


@dataclass(frozen=True)
class IterativeQueryResponse:
    """
    Outcome of one question.

    ``success`` is True only when iteration stopped because the data was
    judged sufficient. Other stops still carry the final answer together
    with the machine-checkable ``error``.
    """

    success: bool
    session: IterativeQuerySession
    validation: DataValidationResult
    answer: str | None = None
    error: IterationError | None = None


def build_round_graph(deps: RoundDependencies):
    """
    Build and compile the round loop for one set of collaborators.
    """
    graph = StateGraph(RoundState)

    graph.add_node(INTENT_NODE, build_intent_node(deps))
    graph.add_node("apply_intent", build_data_node(deps))
    graph.add_node("answer", build_answer_node(deps))
    graph.add_node("validate", build_validate_node(deps))
    graph.add_node("decide", build_decide_node(deps))

    graph.add_edge(START, INTENT_NODE)
    graph.add_edge(INTENT_NODE, "apply_intent")
    graph.add_edge("apply_intent", "answer")
    graph.add_edge("answer", "validate")
    graph.add_edge("validate", "decide")
    graph.add_conditional_edges(
        "decide",
        route_after_decide,
        {INTENT_NODE: INTENT_NODE, END: END},
    )

    return graph.compile()


class IterativeQueryRunner:
    """
    Drives the round loop for questions against in-memory record snapshots.
    """

    def __init__(
        self,
        intent_provider: IntentProvider,
        answer_provider: AnswerProvider | None = None,
        *,
        controller: IterativeSessionController | None = None,
        validator: DataValidator | None = None,
        config: IterationConfig | None = None,
        filter_options: FilterOptions | None = None,
    ) -> None:
        self._config = config or get_iteration_config()
        self._controller = controller if controller is not None else IterativeSessionController(config=self._config)
        self._intent_provider = intent_provider
        self._answer_provider = answer_provider or SummaryAnswerProvider()
        self._validator = validator or DataValidator()
        self._filter_options = filter_options or FilterOptions(
            remove_diacritics=get_matching_settings().remove_diacritics
        )

    @property
    def controller(self) -> IterativeSessionController:
        return self._controller

    def run(
        self,
        records: Sequence[Mapping[str, Any]],
        question: str,
        config: IterationConfig | None = None,
    ) -> IterativeQueryResponse:
        """
        Answer *question* over *records*.

        Raises:
            QuestionValidationError: The question is empty or too long.
        """
        validate_question(question)
        resolved = config or self._config
        if resolved.min_record_threshold != self._validator.settings.min_record_threshold:
            validator = DataValidator(
                replace(self._validator.settings, min_record_threshold=resolved.min_record_threshold)
            )
        else:
            validator = self._validator

        deps = RoundDependencies(
            intent_provider=self._intent_provider,
            answer_provider=self._answer_provider,
            controller=self._controller,
            validator=validator,
            config=resolved,
            filter_options=self._filter_options,
        )
        session = self._controller.create_session(question, resolved)
        state: RoundState = {
            "question": question,
            "session_id": session.session_id,
            "records": list(records),
            "history": [],
            "validation": DataValidationResult.empty(),
            "final_answer": None,
        }

        try:
            final_state = build_round_graph(deps).invoke(
                state,
                config={"recursion_limit": resolved.max_iterations * NODES_PER_ROUND + NODES_PER_ROUND},
            )
        except Exception as exc:
            logger.exception("Round loop failed for session %s", session.session_id)
            return self._failed_response(session, exc)

        decision = final_state.get("decision")
        validation = final_state.get("validation") or DataValidationResult.empty()
        error = None
        if decision is not None and decision.error_kind is not None:
            error = IterationError(kind=decision.error_kind, message=decision.reason)

        return IterativeQueryResponse(
            success=decision is not None and decision.is_success,
            session=self._controller.get_session(session.session_id) or session,
            validation=validation,
            answer=final_state.get("final_answer"),
            error=error,
        )

    def run_in_workspace(
        self,
        store: AnalysisSessionStore,
        session_id: str,
        question: str,
        config: IterationConfig | None = None,
    ) -> IterativeQueryResponse:
        """
        Answer *question* over a working-set session's records.

        The question and answer are appended to the session's conversation
        history and its status moves ``querying -> ready`` (``error`` on
        failure).

        Raises:
            SessionNotFoundError: Unknown or expired working-set session.
            QuestionValidationError: The question is empty or too long.
        """
        validate_question(question)
        workspace = store.update_status(session_id, "querying")
        store.add_message(session_id, "user", question)

        response = self.run(workspace.records, question, config)

        if response.answer is not None:
            store.add_message(session_id, "assistant", response.answer)
        failed = response.error is not None and response.error.kind is IterationErrorKind.APPLICATION_ERROR
        store.update_status(session_id, "error" if failed else "ready")
        return response

    def _failed_response(self, session: IterativeQuerySession, exc: Exception) -> IterativeQueryResponse:
        try:
            failed_session = self._controller.fail_session(session.session_id, str(exc), "Processing error")
        except SessionError:
            log_event(logger, logging.ERROR, "iterative_session_fail_skipped", session_id=session.session_id)
            failed_session = session

        latest = failed_session.request_log[-1].validation if failed_session.request_log else None
        return IterativeQueryResponse(
            success=False,
            session=failed_session,
            validation=latest or DataValidationResult.empty(),
            error=IterationError(kind=IterationErrorKind.APPLICATION_ERROR, message=str(exc)),
        )
