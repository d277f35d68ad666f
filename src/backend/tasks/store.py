"""
Task records: the in-memory store and its flat JSON logs.

The in-memory store is authoritative. ``tasks.json`` mirrors it on selected
transitions (creation, download completion, install completion) and is used
to restore the store on startup.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from src.backend.fs.json_file import JsonDocument
from src.shared.envelope import NotFound

from .models import Task

logger = logging.getLogger(__name__)


class InstallIdConflict(RuntimeError):
    pass


class TaskStore:
    """Process-wide ``task_id -> Task`` map with an install-id index."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._by_install_id: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def add(self, task: Task) -> None:
        if task.task_id in self._tasks:
            raise KeyError(f"duplicate task_id {task.task_id}")
        self._tasks[task.task_id] = task
        if task.install_task_id:
            self._by_install_id[task.install_task_id] = task.task_id

    def get(self, task_id: Optional[str]) -> Optional[Task]:
        if not task_id:
            return None
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def get_by_install_id(self, install_task_id: Optional[str]) -> Optional[Task]:
        if not install_task_id:
            return None
        task_id = self._by_install_id.get(install_task_id)
        return self._tasks.get(task_id) if task_id else None

    def bind_install_id(self, task: Task, install_task_id: str) -> None:
        """Attach an install id to a task; an id is bound at most once."""
        if task.install_task_id and task.install_task_id != install_task_id:
            raise InstallIdConflict(f"task {task.task_id} already has install id {task.install_task_id}")
        owner = self._by_install_id.get(install_task_id)
        if owner is not None and owner != task.task_id:
            raise InstallIdConflict(f"install id {install_task_id} already belongs to {owner}")
        task.install_task_id = install_task_id
        self._by_install_id[install_task_id] = task.task_id


class TaskLog:
    """``tasks.json``: ``{"tasks": [record, ...]}``."""

    def __init__(self, *, path: Path) -> None:
        self._doc = JsonDocument(path=path, default=lambda: {"tasks": []})

    @property
    def path(self) -> Path:
        return self._doc.path

    async def load(self) -> list[dict[str, Any]]:
        data = await self._doc.read()
        tasks = data.get("tasks")
        if not isinstance(tasks, list):
            return []
        return [t for t in tasks if isinstance(t, dict)]

    async def append(self, record: dict[str, Any]) -> bool:
        def mutate(data: dict[str, Any]) -> bool:
            tasks = data.get("tasks")
            if not isinstance(tasks, list):
                tasks = []
                data["tasks"] = tasks
            tasks.append(record)
            return True

        written = await self._doc.mutate(mutate)
        if not written:
            logger.warning("Task %s was not appended to %s", record.get("task_id"), self.path)
        return written

    async def update(self, task_id: Optional[str], mutator: Callable[[dict[str, Any]], None]) -> bool:
        """
        Edit the persisted record of ``task_id``.

        Returns:
            True if the record was found and written. A missing record (or
            missing file) makes this a no-op.
        """
        if not task_id:
            return False

        def mutate(data: dict[str, Any]) -> bool:
            tasks = data.get("tasks")
            if not isinstance(tasks, list):
                return False
            for record in tasks:
                if isinstance(record, dict) and record.get("task_id") == task_id:
                    mutator(record)
                    return True
            return False

        written = await self._doc.mutate(mutate, create=False)
        if not written:
            logger.info("Task %s not present in %s, persisted log left unchanged", task_id, self.path)
        return written


class DownloadLog:
    """``downloads.json``: ``{"downloads": [record, ...]}``."""

    def __init__(self, *, path: Path) -> None:
        self._doc = JsonDocument(path=path, default=lambda: {"downloads": []})

    async def load(self) -> list[dict[str, Any]]:
        data = await self._doc.read()
        downloads = data.get("downloads")
        if not isinstance(downloads, list):
            return []
        return [d for d in downloads if isinstance(d, dict)]

    async def append(self, record: dict[str, Any]) -> bool:
        def mutate(data: dict[str, Any]) -> bool:
            downloads = data.get("downloads")
            if not isinstance(downloads, list):
                downloads = []
                data["downloads"] = downloads
            downloads.append(record)
            return True

        return await self._doc.mutate(mutate)
