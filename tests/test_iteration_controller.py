"""
tests/test_iteration_controller.py

Pytest unit tests for the iterative session controller.

Coverage
--------
- Session creation, round tracking and the append-only log
- should_continue decision priority (cap, timeout, success, loop, empty)
- Loop detection over duplicate and alternating round keys
- Terminal transitions and refusal of terminal -> terminal moves
- Stats, summaries and retention cleanup
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.config import IterationConfig
from session.controller import IterativeSessionController, detect_loop, round_key
from session.errors import SessionClosedError, SessionNotFoundError
from session.models import DataValidationResult, IterationErrorKind, QueryResult, SessionStatus
from session.registry import SessionRegistry


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


INSUFFICIENT = DataValidationResult(
    is_sufficient=False, is_complete=True, is_valid=True, record_count=3, confidence=0.4
)
SUFFICIENT = DataValidationResult(
    is_sufficient=True, is_complete=True, is_valid=True, record_count=25, confidence=0.9
)
EMPTY = DataValidationResult(is_sufficient=False, is_complete=True, is_valid=True, record_count=0, confidence=0.4)
ANSWER = QueryResult(answer="Found 3 records", confidence="medium", processing_time_ms=12.0)


def _intent(index: int | str = 0, kind: str = "detail") -> dict:
    return {
        "type": kind,
        "filters": [{"field": "importCountry", "operator": "contains", "value": f"c{index}"}],
        "aggregations": [],
        "limit": None,
    }


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def controller(clock: FakeClock) -> IterativeSessionController:
    return IterativeSessionController(config=IterationConfig(), clock=clock)


def _track(controller: IterativeSessionController, session_id: str, intent: dict, validation=INSUFFICIENT) -> None:
    controller.track_request(session_id, intent, ANSWER, validation, "exploring", 12.0)


# ---------------------------------------------------------------------------
# Lifecycle and tracking
# ---------------------------------------------------------------------------


class TestTracking:
    def test_new_session(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("Top importers?")
        assert session.status is SessionStatus.ACTIVE
        assert session.iteration_count == 0
        assert session.max_iterations == 20
        assert controller.get_session(session.session_id) is session

    def test_track_request_appends(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        _track(controller, session.session_id, _intent(1))
        _track(controller, session.session_id, _intent(2))
        assert session.iteration_count == 2
        assert len(session.request_log) == 2
        assert session.total_processing_time_ms == 24.0
        assert session.request_log[0].query_intent == _intent(1)

    def test_request_log_is_read_only_view(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        _track(controller, session.session_id, _intent(1))
        assert isinstance(session.request_log, tuple)

    def test_track_unknown_session(self, controller: IterativeSessionController) -> None:
        with pytest.raises(SessionNotFoundError):
            _track(controller, "missing", _intent())

    def test_track_after_completion_is_rejected(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        controller.complete_session(session.session_id, "done", "finished")
        with pytest.raises(SessionClosedError):
            _track(controller, session.session_id, _intent())


# ---------------------------------------------------------------------------
# should_continue
# ---------------------------------------------------------------------------


class TestShouldContinue:
    def test_unknown_session_is_application_error(self, controller: IterativeSessionController) -> None:
        decision = controller.should_continue("missing", INSUFFICIENT)
        assert decision.should_continue is False
        assert decision.error_kind is IterationErrorKind.APPLICATION_ERROR

    def test_insufficient_data_continues(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        _track(controller, session.session_id, _intent(1))
        decision = controller.should_continue(session.session_id, INSUFFICIENT)
        assert decision.should_continue is True
        assert decision.error_kind is None

    def test_sufficient_and_confident_stops_successfully(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        _track(controller, session.session_id, _intent(1), SUFFICIENT)
        decision = controller.should_continue(session.session_id, SUFFICIENT)
        assert decision.should_continue is False
        assert decision.is_success

    def test_sufficient_but_unconfident_continues(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        weak = DataValidationResult(
            is_sufficient=True, is_complete=True, is_valid=True, record_count=25, confidence=0.69
        )
        _track(controller, session.session_id, _intent(1), weak)
        assert controller.should_continue(session.session_id, weak).should_continue is True

    def test_iteration_cap_beats_loop_and_success(self, controller: IterativeSessionController) -> None:
        config = IterationConfig(max_iterations=3)
        session = controller.create_session("q", config)
        for _ in range(3):
            _track(controller, session.session_id, _intent(0), SUFFICIENT)
        decision = controller.should_continue(session.session_id, SUFFICIENT, config)
        assert decision.error_kind is IterationErrorKind.MAX_ITERATIONS_REACHED

    def test_timeout_beats_success(self, controller: IterativeSessionController, clock: FakeClock) -> None:
        session = controller.create_session("q")
        _track(controller, session.session_id, _intent(1), SUFFICIENT)
        clock.advance(seconds=31)
        decision = controller.should_continue(session.session_id, SUFFICIENT)
        assert decision.error_kind is IterationErrorKind.SESSION_TIMEOUT

    def test_success_beats_loop(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        for _ in range(4):
            _track(controller, session.session_id, _intent(0), SUFFICIENT)
        assert controller.should_continue(session.session_id, SUFFICIENT).is_success

    def test_repeated_rounds_stop_as_loop(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        for _ in range(5):
            _track(controller, session.session_id, _intent(0))
        decision = controller.should_continue(session.session_id, INSUFFICIENT)
        assert decision.error_kind is IterationErrorKind.INFINITE_LOOP_DETECTED

    def test_loop_detection_can_be_disabled(self, controller: IterativeSessionController) -> None:
        config = IterationConfig(enable_loop_detection=False)
        session = controller.create_session("q", config)
        for _ in range(5):
            _track(controller, session.session_id, _intent(0))
        assert controller.should_continue(session.session_id, INSUFFICIENT, config).should_continue is True

    def test_empty_results_disallowed(self, controller: IterativeSessionController) -> None:
        config = IterationConfig(allow_empty_results=False)
        session = controller.create_session("q", config)
        _track(controller, session.session_id, _intent(1), EMPTY)
        decision = controller.should_continue(session.session_id, EMPTY, config)
        assert decision.error_kind is IterationErrorKind.DATA_VALIDATION_FAILED

    def test_empty_results_allowed_by_default(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        _track(controller, session.session_id, _intent(1), EMPTY)
        assert controller.should_continue(session.session_id, EMPTY).should_continue is True

    def test_waits_for_round_in_progress(self, clock: FakeClock) -> None:
        registry: SessionRegistry = SessionRegistry(name="shared")
        controller = IterativeSessionController(config=IterationConfig(max_iterations=2), registry=registry, clock=clock)
        session_id = controller.create_session("q").session_id
        _track(controller, session_id, _intent(1))

        decisions: list = []
        with registry.locked(session_id):
            checker = threading.Thread(
                target=lambda: decisions.append(controller.should_continue(session_id, INSUFFICIENT))
            )
            checker.start()
            checker.join(timeout=0.2)
            assert checker.is_alive()
            _track(controller, session_id, _intent(2))
        checker.join(timeout=5)

        assert decisions[0].error_kind is IterationErrorKind.MAX_ITERATIONS_REACHED


# ---------------------------------------------------------------------------
# Loop detection
# ---------------------------------------------------------------------------


class TestLoopDetection:
    def _session_with(self, controller: IterativeSessionController, intents: list[dict]):
        session = controller.create_session("q")
        for intent in intents:
            _track(controller, session.session_id, intent)
        return session

    def test_needs_three_rounds(self, controller: IterativeSessionController) -> None:
        assert detect_loop(self._session_with(controller, [_intent(0), _intent(0)])) is False

    def test_three_identical_rounds(self, controller: IterativeSessionController) -> None:
        assert detect_loop(self._session_with(controller, [_intent(0)] * 3)) is True

    def test_distinct_rounds(self, controller: IterativeSessionController) -> None:
        assert detect_loop(self._session_with(controller, [_intent(i) for i in range(5)])) is False

    def test_alternating_pattern(self, controller: IterativeSessionController) -> None:
        intents = [_intent("a"), _intent("b"), _intent("a"), _intent("b")]
        assert detect_loop(self._session_with(controller, intents)) is True

    def test_only_last_five_rounds_count(self, controller: IterativeSessionController) -> None:
        intents = [_intent(0)] * 4 + [_intent(i) for i in range(1, 6)]
        assert detect_loop(self._session_with(controller, intents)) is False

    def test_limit_and_order_do_not_affect_round_key(self) -> None:
        first = {**_intent(0), "limit": 5, "orderBy": "date"}
        second = {**_intent(0), "limit": 50}
        assert round_key(first) == round_key(second)


# ---------------------------------------------------------------------------
# Terminal transitions and housekeeping
# ---------------------------------------------------------------------------


class TestTerminalTransitions:
    def test_complete(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        controller.complete_session(session.session_id, "answer", "Data is sufficient")
        assert session.status is SessionStatus.COMPLETED
        assert session.result == "answer"
        assert session.end_time is not None
        assert session.error_kind is None

    def test_complete_with_error_kind(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        controller.complete_session(session.session_id, "partial", "cap", IterationErrorKind.MAX_ITERATIONS_REACHED)
        assert session.status is SessionStatus.COMPLETED
        assert session.error_kind is IterationErrorKind.MAX_ITERATIONS_REACHED

    def test_fail(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        controller.fail_session(session.session_id, "boom", "Processing error")
        assert session.status is SessionStatus.FAILED
        assert session.completion_reason == "Processing error: boom"
        assert session.error_kind is IterationErrorKind.APPLICATION_ERROR

    def test_timeout(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("q")
        controller.timeout_session(session.session_id, "too slow")
        assert session.status is SessionStatus.TIMEOUT
        assert session.error_kind is IterationErrorKind.SESSION_TIMEOUT

    def test_terminal_to_terminal_is_refused(self, controller: IterativeSessionController, caplog) -> None:
        session = controller.create_session("q")
        controller.complete_session(session.session_id, "answer", "done")
        controller.fail_session(session.session_id, "late error", "Processing error")
        assert session.status is SessionStatus.COMPLETED
        assert session.result == "answer"
        assert any("Refusing" in message for message in caplog.messages)

    def test_unknown_session_transition_raises(self, controller: IterativeSessionController) -> None:
        with pytest.raises(SessionNotFoundError):
            controller.complete_session("missing", "x", "y")


class TestHousekeeping:
    def test_stats(self, controller: IterativeSessionController) -> None:
        first = controller.create_session("a")
        _track(controller, first.session_id, _intent(1))
        _track(controller, first.session_id, _intent(2))
        controller.complete_session(first.session_id, "done", "ok")
        controller.create_session("b")

        stats = controller.session_stats()
        assert stats["total_sessions"] == 2
        assert stats["active_sessions"] == 1
        assert stats["completed_sessions"] == 1
        assert stats["average_iterations"] == 1.0
        assert len(controller.active_sessions()) == 1

    def test_iteration_summary(self, controller: IterativeSessionController) -> None:
        session = controller.create_session("Top importers?")
        _track(controller, session.session_id, _intent(1))
        summary = controller.iteration_summary(session.session_id)
        assert "Question: Top importers?" in summary
        assert "Iterations: 1/20" in summary
        assert "  1. detail (12ms) - 3 records - exploring" in summary
        assert controller.iteration_summary("missing") is None

    def test_cleanup_keeps_active_and_recent(self, controller: IterativeSessionController, clock: FakeClock) -> None:
        old = controller.create_session("old")
        controller.complete_session(old.session_id, "x", "done")
        active = controller.create_session("active")
        clock.advance(hours=2)
        recent = controller.create_session("recent")
        controller.complete_session(recent.session_id, "y", "done")

        assert controller.cleanup_sessions() == 1
        assert controller.get_session(old.session_id) is None
        assert controller.get_session(active.session_id) is active
        assert controller.get_session(recent.session_id) is recent

    def test_uses_supplied_empty_registry(self) -> None:
        shared: SessionRegistry = SessionRegistry(name="shared")
        controller = IterativeSessionController(config=IterationConfig(), registry=shared)
        session = controller.create_session("q")
        assert len(shared) == 1
        assert shared.get(session.session_id) is session
