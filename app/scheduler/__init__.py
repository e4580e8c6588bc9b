from app.scheduler.jobs import build_scheduler, run_iteration_cleanup, run_workspace_cleanup

__all__ = ["build_scheduler", "run_iteration_cleanup", "run_workspace_cleanup"]
