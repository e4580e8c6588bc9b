"""
tests/test_scheduler.py

Tests for the housekeeping scheduler. The scheduler is never started;
job registration and the job functions are checked directly.
"""

from __future__ import annotations

from app.config import IterationConfig, SessionStoreSettings
from app.scheduler.jobs import build_scheduler, run_iteration_cleanup, run_workspace_cleanup
from session.controller import IterativeSessionController
from session.registry import SessionRegistry
from session.workspace import AnalysisSessionStore

SETTINGS = SessionStoreSettings(ttl_seconds=60, cleanup_interval_seconds=15, retention_seconds=0)


def test_registers_one_job_per_store() -> None:
    scheduler = build_scheduler(
        store=AnalysisSessionStore(settings=SETTINGS),
        controller=IterativeSessionController(config=IterationConfig()),
        settings=SETTINGS,
    )
    assert sorted(job.id for job in scheduler.get_jobs()) == ["iteration_cleanup", "workspace_cleanup"]
    assert scheduler.running is False


def test_no_stores_means_no_jobs() -> None:
    assert build_scheduler(settings=SETTINGS).get_jobs() == []


def test_workspace_cleanup_job() -> None:
    now = [0.0]
    registry = SessionRegistry(name="analysis_sessions", ttl_seconds=60, clock=lambda: now[0])
    store = AnalysisSessionStore(settings=SETTINGS, registry=registry)
    store.create_session()
    now[0] = 120.0
    assert run_workspace_cleanup(store) == 1
    assert store.session_count() == 0


def test_iteration_cleanup_job_keeps_active_sessions() -> None:
    controller = IterativeSessionController(config=IterationConfig())
    finished = controller.create_session("done")
    controller.complete_session(finished.session_id, "answer", "ok")
    active = controller.create_session("running")

    assert run_iteration_cleanup(controller, retention_seconds=-1) == 1
    assert controller.get_session(active.session_id) is active
