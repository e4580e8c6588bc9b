"""
app/scheduler/jobs.py

APScheduler-based housekeeping for the in-memory session stores.

Jobs
----
  workspace_cleanup: every ``SESSION_CLEANUP_INTERVAL_SECONDS``; drops
                     working-set sessions idle past their TTL.
  iteration_cleanup: same interval; drops finished question sessions
                     that ended more than ``SESSION_RETENTION_SECONDS`` ago.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
The host process starts it on boot and shuts it down with
``.shutdown(wait=True)``. Nothing here starts threads on import.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import SessionStoreSettings, get_session_store_settings
from session.controller import IterativeSessionController
from session.workspace import AnalysisSessionStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job functions
# ---------------------------------------------------------------------------


def run_workspace_cleanup(store: AnalysisSessionStore) -> int:
    removed = store.cleanup_expired()
    if removed:
        logger.info("Scheduler: workspace_cleanup removed=%d remaining=%d", removed, store.session_count())
    return removed


def run_iteration_cleanup(controller: IterativeSessionController, retention_seconds: int) -> int:
    """
    Drop terminal question sessions past the retention window.
    Active sessions are left alone by the controller.
    """
    removed = controller.cleanup_sessions(older_than_ms=retention_seconds * 1000)
    if removed:
        logger.info("Scheduler: iteration_cleanup removed=%d", removed)
    return removed


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(
    store: AnalysisSessionStore | None = None,
    controller: IterativeSessionController | None = None,
    settings: SessionStoreSettings | None = None,
) -> BackgroundScheduler:
    """
    Build and register the cleanup jobs for whichever stores are given.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    resolved = settings or get_session_store_settings()
    grace_seconds = max(1, int(resolved.cleanup_interval_seconds))
    scheduler = BackgroundScheduler(timezone="UTC")

    if store is not None:
        scheduler.add_job(
            run_workspace_cleanup,
            trigger="interval",
            seconds=resolved.cleanup_interval_seconds,
            args=[store],
            id="workspace_cleanup",
            name="Working-set session expiry",
            replace_existing=True,
            misfire_grace_time=grace_seconds,
        )
    if controller is not None:
        scheduler.add_job(
            run_iteration_cleanup,
            trigger="interval",
            seconds=resolved.cleanup_interval_seconds,
            args=[controller, resolved.retention_seconds],
            id="iteration_cleanup",
            name="Finished question session cleanup",
            replace_existing=True,
            misfire_grace_time=grace_seconds,
        )

    logger.debug("Scheduler: registered jobs=%s", [job.id for job in scheduler.get_jobs()])
    return scheduler
