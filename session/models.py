"""
session/models.py

Data model for iterative question sessions and their round audit trail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IterationErrorKind(str, Enum):
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    SESSION_TIMEOUT = "session_timeout"
    DATA_VALIDATION_FAILED = "data_validation_failed"
    APPLICATION_ERROR = "application_error"
    INFINITE_LOOP_DETECTED = "infinite_loop_detected"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


Confidence = Literal["high", "medium", "low"]


@dataclass(frozen=True)
class QueryResult:
    """
    Answer produced for one round.
    """

    answer: str
    citations: tuple[str, ...] = ()
    confidence: Confidence = "low"
    processing_time_ms: float = 0.0


@dataclass(frozen=True)
class DataValidationResult:
    """
    Heuristic quality signal for one round's answer.

    ``confidence`` is a soft score in [0, 1], not a verdict.
    """

    is_sufficient: bool
    is_complete: bool
    is_valid: bool
    record_count: int
    missing_fields: tuple[str, ...] = ()
    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    confidence: float = 0.0

    @classmethod
    def empty(cls) -> "DataValidationResult":
        return cls(is_sufficient=False, is_complete=False, is_valid=False, record_count=0)


@dataclass(frozen=True)
class DataRequestLog:
    """
    One logged round. Entries are appended and never rewritten.
    """

    request_id: str
    timestamp: datetime
    query_intent: dict[str, Any]
    response: QueryResult
    validation: DataValidationResult
    reasoning: str
    processing_time_ms: float
    error: str | None = None


@dataclass
class IterativeQuerySession:
    """
    Mutable state of one question; only the controller mutates it.
    """

    session_id: str
    question: str
    max_iterations: int
    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    iteration_count: int = 0
    status: SessionStatus = SessionStatus.ACTIVE
    result: str | None = None
    completion_reason: str | None = None
    error_kind: IterationErrorKind | None = None
    total_processing_time_ms: float = 0.0
    _request_log: list[DataRequestLog] = field(default_factory=list, repr=False)

    @property
    def request_log(self) -> tuple[DataRequestLog, ...]:
        return tuple(self._request_log)

    @property
    def is_terminal(self) -> bool:
        return self.status is not SessionStatus.ACTIVE

    def append_round(self, entry: DataRequestLog) -> None:
        self._request_log.append(entry)
        self.iteration_count += 1
        self.total_processing_time_ms += entry.processing_time_ms

    def elapsed_ms(self, now: datetime | None = None) -> float:
        reference = now or utc_now()
        return (reference - self.start_time).total_seconds() * 1000.0


@dataclass(frozen=True)
class ContinueDecision:
    should_continue: bool
    reason: str
    error_kind: IterationErrorKind | None = None

    @property
    def is_success(self) -> bool:
        return not self.should_continue and self.error_kind is None
