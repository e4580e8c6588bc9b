"""
agent/nodes/validate_node.py

Validate node: scores the round answer, then appends the round to the
session log. The real number of records behind the round replaces any
count mined from the answer text.
"""

from __future__ import annotations

from typing import Callable

from agent.context import expected_fields
from agent.providers import RoundRecord
from agent.state import RoundDependencies, RoundState
from session.models import DataValidationResult


def build_validate_node(deps: RoundDependencies) -> Callable[[RoundState], RoundState]:
    def validate_node(state: RoundState) -> RoundState:
        intent = state["intent"]
        result = state["result"]
        record_count = len(state["round_records"])

        if deps.config.enable_data_validation:
            validation = deps.validator.validate_data_quality(
                result,
                expected_fields(intent),
                record_count=record_count,
            )
        else:
            validation = DataValidationResult(
                is_sufficient=record_count > 0,
                is_complete=True,
                is_valid=True,
                record_count=record_count,
                confidence=1.0,
            )

        session = deps.controller.track_request(
            state["session_id"],
            intent.as_log_payload(),
            result,
            validation,
            f"Iteration {len(state.get('history') or []) + 1}: Exploring {intent.type} data",
            result.processing_time_ms,
        )
        history = list(state.get("history") or [])
        history.append(
            RoundRecord(
                iteration=session.iteration_count,
                intent=intent,
                result=result,
                validation=validation,
            )
        )
        return {"validation": validation, "history": history}

    return validate_node
