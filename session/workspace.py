"""
session/workspace.py

Working-set sessions: the record snapshot a user is analysing, its
conversation history and its aggregation cache.

The cache belongs to exactly one session and is rebuilt from scratch,
under the session lock, every time the record set is replaced.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from aggregation.cache import AggregationCache, CacheFields, build_cache
from app.config import SessionStoreSettings, get_session_store_settings
from app.logging_utils import log_event
from session.models import utc_now
from session.registry import SessionRegistry

logger = logging.getLogger(__name__)

WorkspaceStatus = Literal["idle", "feeding", "ready", "querying", "error"]
MessageRole = Literal["user", "assistant", "system"]

_WORKSPACE_STATUSES: frozenset[str] = frozenset({"idle", "feeding", "ready", "querying", "error"})


@dataclass(frozen=True)
class ConversationMessage:
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class WorkspaceMetadata:
    record_count: int = 0
    data_size_bytes: int = 0
    source_filters: Mapping[str, Any] | None = None


@dataclass
class AnalysisSession:
    session_id: str
    created_at: datetime = field(default_factory=utc_now)
    records: tuple[Mapping[str, Any], ...] = ()
    conversation_history: list[ConversationMessage] = field(default_factory=list)
    status: WorkspaceStatus = "idle"
    metadata: WorkspaceMetadata = field(default_factory=WorkspaceMetadata)
    cache: AggregationCache | None = None


def _estimate_size(records: Sequence[Mapping[str, Any]]) -> int:
    return len(json.dumps(list(records), default=str, ensure_ascii=False).encode("utf-8"))


class AnalysisSessionStore:
    """
    TTL-bound store of :class:`AnalysisSession` objects.

    Every successful lookup extends the session's lifetime. Expired sessions
    are removed by :meth:`cleanup_expired`, which the scheduler calls.
    """

    def __init__(
        self,
        *,
        settings: SessionStoreSettings | None = None,
        registry: SessionRegistry[AnalysisSession] | None = None,
        cache_fields: CacheFields | None = None,
    ) -> None:
        resolved = settings or get_session_store_settings()
        if registry is None:
            registry = SessionRegistry(name="analysis_sessions", ttl_seconds=resolved.ttl_seconds)
        self._registry = registry
        self._cache_fields = cache_fields or CacheFields()

    def create_session(self) -> AnalysisSession:
        session = AnalysisSession(session_id=f"analysis-{uuid.uuid4()}")
        self._registry.create(session.session_id, session)
        log_event(logger, logging.INFO, "analysis_session_created", session_id=session.session_id)
        return session

    def get_session(self, session_id: str) -> AnalysisSession | None:
        return self._registry.get(session_id)

    def load_records(
        self,
        session_id: str,
        records: Sequence[Mapping[str, Any]],
        source_filters: Mapping[str, Any] | None = None,
    ) -> AnalysisSession:
        """
        Replace the working set and rebuild the aggregation cache.

        Raises:
            SessionNotFoundError: Unknown or expired session id.
        """

        with self._registry.locked(session_id) as session:
            session.status = "feeding"
            snapshot = tuple(records)
            session.records = snapshot
            session.cache = build_cache(snapshot, self._cache_fields)
            session.metadata = WorkspaceMetadata(
                record_count=len(snapshot),
                data_size_bytes=_estimate_size(snapshot),
                source_filters=dict(source_filters) if source_filters else None,
            )
            session.status = "ready"
            log_event(
                logger,
                logging.INFO,
                "analysis_records_loaded",
                session_id=session_id,
                record_count=session.metadata.record_count,
                data_size_bytes=session.metadata.data_size_bytes,
            )
            return session

    def add_message(self, session_id: str, role: MessageRole, content: str) -> AnalysisSession:
        with self._registry.locked(session_id) as session:
            session.conversation_history.append(ConversationMessage(role=role, content=content))
            return session

    def update_status(self, session_id: str, status: WorkspaceStatus) -> AnalysisSession:
        if status not in _WORKSPACE_STATUSES:
            raise ValueError(f"Unknown workspace status: {status!r}")
        with self._registry.locked(session_id) as session:
            session.status = status
            return session

    def delete_session(self, session_id: str) -> bool:
        return self._registry.delete(session_id)

    def cleanup_expired(self) -> int:
        return self._registry.expire()

    def session_count(self) -> int:
        return len(self._registry)
