"""
Download/installation task lifecycle.

Provides:
- Task: one download-then-install attempt
- TaskStore / TaskLog / DownloadLog: in-memory records and their JSON logs
- TaskCoordinator: phase operations driven by head-unit calls
- Task lifecycle API
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import Task, format_utc_z, utc_now
from .store import DownloadLog, InstallIdConflict, TaskLog, TaskStore
from .coordinator import InstallIdGenerator, TaskCoordinator, completion_estimated

if TYPE_CHECKING:
    from fastapi import APIRouter  # pragma: no cover


def create_task_router(*, coordinator: TaskCoordinator) -> "APIRouter":
    """
    Lazily import FastAPI router to keep non-web imports lightweight.
    """
    from .api import create_task_router as _create_task_router

    return _create_task_router(coordinator=coordinator)

__all__ = [
    "Task",
    "format_utc_z",
    "utc_now",
    "DownloadLog",
    "InstallIdConflict",
    "TaskLog",
    "TaskStore",
    "InstallIdGenerator",
    "TaskCoordinator",
    "completion_estimated",
    "create_task_router",
]
