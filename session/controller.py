"""
session/controller.py

Iteration controller for question sessions.

State machine
-------------
``active -> completed | failed | timeout``. Terminal states are final; a
terminal transition requested on a terminal session is refused with a
warning and the session is returned unchanged.

Decision priority (:meth:`IterativeSessionController.should_continue`)
---------------------------------------------------------------------
1. unknown session            -> stop, ``application_error``
2. iteration cap reached      -> stop, ``max_iterations_reached``
3. wall-clock cap reached     -> stop, ``session_timeout``
4. sufficient and confident   -> stop, success
5. repeated round pattern     -> stop, ``infinite_loop_detected``
6. empty result disallowed    -> stop, ``data_validation_failed``
7. otherwise                  -> continue
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any, Final

from app.config import IterationConfig, get_iteration_config
from app.logging_utils import log_event
from session.errors import SessionClosedError, SessionNotFoundError
from session.models import (
    ContinueDecision,
    DataRequestLog,
    DataValidationResult,
    IterationErrorKind,
    IterativeQuerySession,
    QueryResult,
    SessionStatus,
    utc_now,
)
from session.registry import SessionRegistry

logger = logging.getLogger(__name__)

LOOP_WINDOW: Final[int] = 5
LOOP_MIN_ROUNDS: Final[int] = 3
LOOP_DUPLICATE_RATIO: Final[float] = 0.5
DEFAULT_CLEANUP_AGE_MS: Final[int] = 60 * 60 * 1000


def round_key(query_intent: Mapping[str, Any]) -> str:
    """
    Canonical comparison key of a round: its type, filters and aggregations.
    """

    return json.dumps(
        {
            "type": query_intent.get("type"),
            "filters": query_intent.get("filters"),
            "aggregations": query_intent.get("aggregations"),
        },
        sort_keys=True,
        default=str,
        ensure_ascii=False,
    )


def detect_loop(session: IterativeQuerySession) -> bool:
    """
    True when the last rounds repeat.

    Looks at up to the last five rounds (at least three required). Fires when
    more than half of them are duplicates, or when four or more of them
    alternate strictly between two keys (``A B A B``).
    """

    recent = session.request_log[-LOOP_WINDOW:]
    if len(recent) < LOOP_MIN_ROUNDS:
        return False

    keys = [round_key(entry.query_intent) for entry in recent]
    duplicate_ratio = 1 - len(set(keys)) / len(keys)
    if duplicate_ratio > LOOP_DUPLICATE_RATIO:
        return True

    if len(keys) >= 4:
        pattern = keys[:2]
        if all(key == pattern[index % 2] for index, key in enumerate(keys)):
            return True
    return False


class IterativeSessionController:
    """
    Owns the lifecycle of :class:`IterativeQuerySession` objects.

    Low-level mutators raise :class:`SessionNotFoundError` or
    :class:`SessionClosedError`. :meth:`should_continue` never raises; every
    outcome is a :class:`ContinueDecision`.
    """

    def __init__(
        self,
        *,
        config: IterationConfig | None = None,
        registry: SessionRegistry[IterativeQuerySession] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config or get_iteration_config()
        self._registry = registry if registry is not None else SessionRegistry(name="iterative_sessions")
        self._clock = clock

    @property
    def config(self) -> IterationConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_session(self, question: str, config: IterationConfig | None = None) -> IterativeQuerySession:
        resolved = config or self._config
        session = IterativeQuerySession(
            session_id=str(uuid.uuid4()),
            question=question,
            max_iterations=resolved.max_iterations,
            start_time=self._clock(),
        )
        self._registry.create(session.session_id, session)
        log_event(
            logger,
            logging.INFO,
            "iterative_session_created",
            session_id=session.session_id,
            max_iterations=session.max_iterations,
            max_session_time_ms=resolved.max_session_time_ms,
        )
        return session

    def get_session(self, session_id: str) -> IterativeQuerySession | None:
        return self._registry.get(session_id)

    def track_request(
        self,
        session_id: str,
        query_intent: Mapping[str, Any],
        response: QueryResult,
        validation: DataValidationResult,
        reasoning: str,
        processing_time_ms: float,
        error: str | None = None,
    ) -> IterativeQuerySession:
        """
        Append one round to the session log.

        Raises:
            SessionNotFoundError: Unknown session id.
            SessionClosedError: The session is already terminal.
        """

        with self._registry.locked(session_id) as session:
            if session.is_terminal:
                raise SessionClosedError(session_id, session.status.value)

            entry = DataRequestLog(
                request_id=str(uuid.uuid4()),
                timestamp=self._clock(),
                query_intent=dict(query_intent),
                response=response,
                validation=validation,
                reasoning=reasoning,
                processing_time_ms=processing_time_ms,
                error=error,
            )
            session.append_round(entry)

            if self._config.enable_request_logging:
                log_event(
                    logger,
                    logging.INFO,
                    "iterative_round_tracked",
                    session_id=session_id,
                    request_id=entry.request_id,
                    iteration=session.iteration_count,
                    intent_type=query_intent.get("type"),
                    record_count=validation.record_count,
                    confidence=round(validation.confidence, 3),
                    processing_time_ms=round(processing_time_ms, 3),
                )
            return session

    def should_continue(
        self,
        session_id: str,
        validation: DataValidationResult,
        config: IterationConfig | None = None,
    ) -> ContinueDecision:
        resolved = config or self._config
        try:
            with self._registry.locked(session_id) as session:
                return self._decide(session, validation, resolved)
        except SessionNotFoundError:
            return ContinueDecision(
                should_continue=False,
                reason=f"Session {session_id} not found",
                error_kind=IterationErrorKind.APPLICATION_ERROR,
            )

    def _decide(
        self,
        session: IterativeQuerySession,
        validation: DataValidationResult,
        resolved: IterationConfig,
    ) -> ContinueDecision:
        if session.iteration_count >= resolved.max_iterations:
            return ContinueDecision(
                should_continue=False,
                reason=f"Maximum iterations reached ({resolved.max_iterations})",
                error_kind=IterationErrorKind.MAX_ITERATIONS_REACHED,
            )

        if session.elapsed_ms(self._clock()) >= resolved.max_session_time_ms:
            return ContinueDecision(
                should_continue=False,
                reason=f"Session timeout reached ({resolved.max_session_time_ms}ms)",
                error_kind=IterationErrorKind.SESSION_TIMEOUT,
            )

        if validation.is_sufficient and validation.confidence >= resolved.min_validation_confidence:
            return ContinueDecision(
                should_continue=False,
                reason="Data is sufficient and meets confidence threshold",
            )

        if resolved.enable_loop_detection and detect_loop(session):
            log_event(
                logger,
                logging.WARNING,
                "iterative_loop_detected",
                session_id=session.session_id,
                iteration=session.iteration_count,
            )
            return ContinueDecision(
                should_continue=False,
                reason="Infinite loop detected - similar queries repeated",
                error_kind=IterationErrorKind.INFINITE_LOOP_DETECTED,
            )

        if not resolved.allow_empty_results and validation.record_count == 0:
            return ContinueDecision(
                should_continue=False,
                reason="Empty results not allowed by configuration",
                error_kind=IterationErrorKind.DATA_VALIDATION_FAILED,
            )

        return ContinueDecision(should_continue=True, reason="Data insufficient - need more information")

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def complete_session(
        self,
        session_id: str,
        result: str,
        reason: str,
        error_kind: IterationErrorKind | None = None,
    ) -> IterativeQuerySession:
        """
        Mark a session completed with its final answer.

        ``error_kind`` records a non-success stop (iteration cap, loop,
        validation) on a session that still produced an answer.
        """

        return self._finish(
            session_id,
            SessionStatus.COMPLETED,
            reason=reason,
            result=result,
            error_kind=error_kind,
        )

    def fail_session(self, session_id: str, error: str, reason: str) -> IterativeQuerySession:
        return self._finish(
            session_id,
            SessionStatus.FAILED,
            reason=f"{reason}: {error}",
            error_kind=IterationErrorKind.APPLICATION_ERROR,
        )

    def timeout_session(self, session_id: str, reason: str, result: str | None = None) -> IterativeQuerySession:
        return self._finish(
            session_id,
            SessionStatus.TIMEOUT,
            reason=reason,
            result=result,
            error_kind=IterationErrorKind.SESSION_TIMEOUT,
        )

    def _finish(
        self,
        session_id: str,
        status: SessionStatus,
        *,
        reason: str,
        result: str | None = None,
        error_kind: IterationErrorKind | None = None,
    ) -> IterativeQuerySession:
        with self._registry.locked(session_id) as session:
            if session.is_terminal:
                logger.warning(
                    "Refusing %s transition for session %s already in %s",
                    status.value,
                    session_id,
                    session.status.value,
                )
                return session

            session.status = status
            session.end_time = self._clock()
            session.completion_reason = reason
            session.error_kind = error_kind
            if result is not None:
                session.result = result

            log_event(
                logger,
                logging.INFO,
                "iterative_session_finished",
                session_id=session_id,
                status=status.value,
                reason=reason,
                error_kind=error_kind.value if error_kind else None,
                iterations=session.iteration_count,
                total_processing_time_ms=round(session.total_processing_time_ms, 3),
            )
            return session

    # ------------------------------------------------------------------
    # Monitoring and housekeeping
    # ------------------------------------------------------------------

    def active_sessions(self) -> list[IterativeQuerySession]:
        return [session for session in self._registry.values() if not session.is_terminal]

    def session_stats(self) -> dict[str, float]:
        sessions = self._registry.values()
        total = len(sessions)
        by_status = {status: 0 for status in SessionStatus}
        for session in sessions:
            by_status[session.status] += 1

        return {
            "total_sessions": total,
            "active_sessions": by_status[SessionStatus.ACTIVE],
            "completed_sessions": by_status[SessionStatus.COMPLETED],
            "failed_sessions": by_status[SessionStatus.FAILED],
            "timeout_sessions": by_status[SessionStatus.TIMEOUT],
            "average_iterations": sum(s.iteration_count for s in sessions) / total if total else 0.0,
            "average_processing_time_ms": (
                sum(s.total_processing_time_ms for s in sessions) / total if total else 0.0
            ),
        }

    def iteration_summary(self, session_id: str) -> str | None:
        session = self._registry.get(session_id, touch=False)
        if session is None:
            return None

        lines = [
            f"Session: {session.session_id}",
            f"Question: {session.question}",
            f"Status: {session.status.value}",
            f"Iterations: {session.iteration_count}/{session.max_iterations}",
            f"Total Processing: {session.total_processing_time_ms:.0f}ms",
            "Requests:",
        ]
        for index, entry in enumerate(session.request_log, start=1):
            lines.append(
                f"  {index}. {entry.query_intent.get('type')} ({entry.processing_time_ms:.0f}ms)"
                f" - {entry.validation.record_count} records - {entry.reasoning}"
            )
        if session.completion_reason:
            lines.append(f"Completion: {session.completion_reason}")
        return "\n".join(lines)

    def cleanup_sessions(self, older_than_ms: float = DEFAULT_CLEANUP_AGE_MS) -> int:
        """
        Drop terminal sessions that ended more than *older_than_ms* ago.

        Active sessions are never removed.
        """

        cutoff = self._clock() - timedelta(milliseconds=older_than_ms)
        removed = self._registry.remove_where(
            lambda session: session.is_terminal
            and session.end_time is not None
            and session.end_time < cutoff
        )
        log_event(logger, logging.DEBUG, "iterative_sessions_cleaned", removed=removed, remaining=len(self._registry))
        return removed
