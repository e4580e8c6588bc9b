"""
session package exports.
"""

from session.controller import IterativeSessionController, detect_loop, round_key
from session.errors import SessionClosedError, SessionError, SessionNotFoundError
from session.models import (
    ContinueDecision,
    DataRequestLog,
    DataValidationResult,
    IterationErrorKind,
    IterativeQuerySession,
    QueryResult,
    SessionStatus,
)
from session.registry import SessionRegistry
from session.validator import (
    DataValidator,
    calculate_validation_confidence,
    extract_record_count,
    find_contradictions,
    has_inconsistent_date_formats,
)
from session.workspace import AnalysisSession, AnalysisSessionStore, ConversationMessage, WorkspaceMetadata

__all__ = [
    "AnalysisSession",
    "AnalysisSessionStore",
    "ContinueDecision",
    "ConversationMessage",
    "DataRequestLog",
    "DataValidationResult",
    "DataValidator",
    "IterationErrorKind",
    "IterativeQuerySession",
    "IterativeSessionController",
    "QueryResult",
    "SessionClosedError",
    "SessionError",
    "SessionNotFoundError",
    "SessionRegistry",
    "SessionStatus",
    "WorkspaceMetadata",
    "calculate_validation_confidence",
    "detect_loop",
    "extract_record_count",
    "find_contradictions",
    "has_inconsistent_date_formats",
    "round_key",
]
