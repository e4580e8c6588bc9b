"""
Session-layer exceptions.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base exception for session registry and controller failures."""


class SessionNotFoundError(SessionError, KeyError):
    """Raised when a session id is not present in its registry."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class SessionClosedError(SessionError):
    """Raised when a round is tracked against a session that is already terminal."""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(f"Session {session_id} is {status}; no further rounds are accepted")
        self.session_id = session_id
        self.status = status
