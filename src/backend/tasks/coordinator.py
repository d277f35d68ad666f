"""
Download/installation task lifecycle.

Phases, each driven by a separate call from the head unit:
    create -> update progress -> complete -> verify -> start install
    -> install progress -> complete install

Transitions are caller-driven: the caller supplies the target status and the
coordinator stores it. With ``strict_transitions`` enabled, moves that are
not in ALLOWED_TRANSITIONS are rejected instead.

Persistence to ``tasks.json`` is best-effort: a failed or skipped write is
logged and the in-memory state is still returned to the caller.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from src.backend.catalog.formatters import apk_url
from src.backend.catalog.scanner import AppScanner
from src.backend.settings.models import ServerConfig
from src.shared.envelope import InvalidRequest, NotFound
from src.shared.task_status import TaskStatus

from .models import Progress, Task, format_utc_z, utc_now
from .store import DownloadLog, InstallIdConflict, TaskLog, TaskStore

logger = logging.getLogger(__name__)

COMPLETION_ESTIMATE_THRESHOLD = 90
INSTALL_ID_PREFIX = "INSTALL_"
INSTALLABLE_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.VERIFIED, TaskStatus.INSTALL_PENDING})


def completion_estimated(progress: Any) -> bool:
    try:
        return float(progress) >= COMPLETION_ESTIMATE_THRESHOLD
    except (TypeError, ValueError):
        return False


def new_task_id() -> str:
    return f"TASK_{uuid.uuid4().hex.upper()}"


class InstallIdGenerator:
    """
    ``INSTALL_<ms>_<last 8 chars of task_id>``.

    The millisecond component is strictly increasing within the process, so
    two calls in the same millisecond still get distinct ids.
    """

    def __init__(self, *, clock_ms: Callable[[], int] = lambda: time.time_ns() // 1_000_000) -> None:
        self._clock_ms = clock_ms
        self._last_ms = 0

    def next_id(self, task_id: str) -> str:
        now_ms = self._clock_ms()
        if now_ms <= self._last_ms:
            now_ms = self._last_ms + 1
        self._last_ms = now_ms
        suffix = task_id[-8:] if task_id else "UNKNOWN"
        return f"{INSTALL_ID_PREFIX}{now_ms}_{suffix}"


def _require(value: Any, name: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRequest(f"{name} is required")
    return str(value)


class TaskCoordinator:
    def __init__(
        self,
        *,
        store: TaskStore,
        task_log: TaskLog,
        download_log: DownloadLog,
        config: ServerConfig,
        catalog: Optional[AppScanner] = None,
        install_ids: Optional[InstallIdGenerator] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._task_log = task_log
        self._download_log = download_log
        self._config = config
        self._catalog = catalog
        self._install_ids = install_ids or InstallIdGenerator()
        self._clock = clock

    @property
    def store(self) -> TaskStore:
        return self._store

    async def restore(self) -> int:
        """Reload tasks persisted by earlier runs. Returns the number restored."""
        restored = 0
        for record in await self._task_log.load():
            task = Task.from_record(record)
            if task is None or task.task_id in self._store:
                continue
            try:
                self._store.add(task)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Skipping persisted task %s: %s", task.task_id, exc)
                continue
            restored += 1
        if restored:
            logger.info("Restored %d tasks from %s", restored, self._task_log.path)
        return restored

    # ---------------------------------------------------------------------
    # Download phase
    # ---------------------------------------------------------------------

    async def create(self, *, app_id: Any, package_name: Any, extra: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        app_id = _require(app_id, "app_id")
        package_name = _require(package_name, "package_name")

        now = self._clock()
        task = Task(
            task_id=new_task_id(),
            app_id=app_id,
            package_name=package_name,
            status=TaskStatus.CREATED.value,
            created_at=now,
            updated_at=now,
            progress=0,
            extra=dict(extra or {}),
        )
        self._store.add(task)
        logger.info("Download task created: %s (%s / %s)", task.task_id, app_id, package_name)

        await self._task_log.append(task.to_record())

        return {
            "task_id": task.task_id,
            "download_url": self._download_url(app_id),
            "status": task.status,
        }

    async def update_progress(
        self,
        *,
        task_id: Any,
        progress: Optional[Progress],
        status: Optional[str],
        downloaded_bytes: Optional[int] = None,
        total_bytes: Optional[int] = None,
    ) -> dict[str, Any]:
        task = self._store.require(_require(task_id, "task_id"))
        target = status or TaskStatus.DOWNLOADING.value
        self._check_transition(task, target)

        task.progress = progress if progress is not None else 0
        task.status = target
        if downloaded_bytes is not None:
            task.downloaded_bytes = downloaded_bytes
        if total_bytes is not None:
            task.total_bytes = total_bytes
        task.updated_at = self._clock()
        logger.info("Download progress %s: %s%% (%s)", task.task_id, task.progress, task.status)

        return {
            "task_id": task.task_id,
            "current_progress": task.progress,
            "status": task.status,
            "completion_estimated": completion_estimated(task.progress),
        }

    async def complete(self, *, task_id: Any, status: Optional[str]) -> dict[str, Any]:
        task = self._store.require(_require(task_id, "task_id"))
        target = status or TaskStatus.COMPLETED.value
        self._check_transition(task, target)

        now = self._clock()
        first_completion = task.completed_at is None
        task.status = target
        if target == TaskStatus.COMPLETED.value:
            task.progress = 100
        if first_completion:
            task.completed_at = now
        task.updated_at = now
        logger.info("Download task %s finished with status %s", task.task_id, target)

        snapshot = task.to_record()
        await self._task_log.update(task.task_id, lambda record: _merge_download_fields(record, snapshot))

        if first_completion and target == TaskStatus.COMPLETED.value:
            await self._record_download(task)

        return {
            "task_id": task.task_id,
            "final_status": task.status,
            "completion_time": format_utc_z(task.completed_at or now),
        }

    async def verify_file(self, *, task_id: Any, file_hash: Any = None, file_size: Any = None) -> dict[str, Any]:
        """
        Always reports a verified file. No comparison against the catalog
        hash happens; head units only need the go-ahead to install.
        """
        logger.info("File verification requested - task %s (hash %s, size %s)", task_id, file_hash, file_size)
        return {
            "task_id": task_id,
            "verification_status": "verified",
            "file_integrity": "ok",
            "hash_match": True,
            "ready_for_installation": True,
        }

    # ---------------------------------------------------------------------
    # Install phase
    # ---------------------------------------------------------------------

    async def start_install(self, *, task_id: Any, package_name: Any = None, app_id: Any = None) -> dict[str, Any]:
        task = self._store.require(_require(task_id, "task_id"))

        if self._config.tasks.strict_transitions and task.known_status not in INSTALLABLE_STATUSES:
            raise InvalidRequest(f"Task {task.task_id} is not ready for installation (status {task.status})")

        if task.install_task_id is None:
            self._store.bind_install_id(task, self._install_ids.next_id(task.task_id))
        else:
            logger.info("Install already started for %s, reusing %s", task.task_id, task.install_task_id)

        task.status = TaskStatus.INSTALLING.value
        task.install_status = TaskStatus.INSTALLING.value
        task.progress = 0
        task.install_progress = 0
        task.updated_at = self._clock()
        logger.info("Installation started - %s -> %s (%s)", task.task_id, task.install_task_id, package_name or task.package_name)

        return {
            "original_task_id": task.task_id,
            "install_task_id": task.install_task_id,
            "install_status": task.install_status,
            "progress": 0,
            "estimated_time": self._config.tasks.install_estimated_time_s,
        }

    async def update_install_progress(
        self, *, install_task_id: Any, progress: Optional[Progress], status: Optional[str]
    ) -> dict[str, Any]:
        install_task_id = _require(install_task_id, "install_task_id")
        task = self._store.get_by_install_id(install_task_id)
        if task is None:
            raise NotFound("Install task not found")

        target = status or TaskStatus.INSTALLING.value
        self._check_transition(task, target)

        task.progress = progress if progress is not None else 0
        task.install_progress = task.progress
        task.status = target
        task.install_status = target
        task.updated_at = self._clock()
        logger.info("Installation progress %s: %s%%", install_task_id, task.progress)

        return {
            "install_task_id": install_task_id,
            "install_progress": task.install_progress,
            "install_status": task.install_status,
            "completion_estimated": completion_estimated(task.install_progress),
        }

    async def complete_install(
        self,
        *,
        install_task_id: Any,
        original_task_id: Any = None,
        status: Optional[str] = None,
        package_name: Any = None,
    ) -> dict[str, Any]:
        """
        Finish the install phase.

        Unknown ids are not an error: the reply is computed from the request
        alone and the persisted log is left untouched.
        """
        if not install_task_id and not original_task_id:
            raise InvalidRequest("install_task_id is required")

        final_status = status or TaskStatus.INSTALLED.value
        now = self._clock()

        task = self._store.get(original_task_id) or self._store.get_by_install_id(install_task_id)
        if task is not None:
            self._check_transition(task, final_status)
            if install_task_id and task.install_task_id is None:
                try:
                    self._store.bind_install_id(task, str(install_task_id))
                except InstallIdConflict as exc:
                    logger.warning("Not binding install id: %s", exc)
            task.status = final_status
            task.install_status = final_status
            if task.install_completed_at is None:
                task.install_completed_at = now
            task.updated_at = now
        else:
            logger.info("complete-install for unknown task %s / %s", original_task_id, install_task_id)

        completed_at = format_utc_z(now)
        persisted_id = original_task_id or (task.task_id if task is not None else None)

        def mutate(record: dict[str, Any]) -> None:
            record["install_status"] = final_status
            record["status"] = final_status
            if not record.get("install_completed_at"):
                record["install_completed_at"] = completed_at
            if install_task_id and not record.get("install_task_id"):
                record["install_task_id"] = install_task_id

        if await self._task_log.update(persisted_id, mutate):
            logger.info("Installation completed for package %s", package_name)

        return {
            "install_task_id": install_task_id,
            "original_task_id": original_task_id,
            "final_status": final_status,
            "completion_time": completed_at,
            "app_ready": True,
            "launch_available": True,
        }

    def initial_params(self) -> dict[str, Any]:
        download = self._config.download
        return {
            "max_concurrent_downloads": download.max_concurrent_downloads,
            "retry_attempts": download.retry_attempts,
            "timeout_seconds": download.timeout_seconds,
            "server_time": int(self._clock().timestamp() * 1000),
        }

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _check_transition(self, task: Task, target: str) -> None:
        if not self._config.tasks.strict_transitions:
            return

        new = TaskStatus.parse(target)
        if new is None:
            raise InvalidRequest(f"Unknown status: {target}")

        current = task.known_status
        if current is not None and not current.can_move_to(new):
            raise InvalidRequest(f"Illegal status transition {current.value} -> {new.value}")

    def _download_url(self, app_id: str) -> str:
        app = self._catalog.get_app(app_id) if self._catalog is not None else None
        if app is not None:
            return apk_url(app, self._config.asset_base_url())
        return f"{self._config.public_base_url()}/static/apks/{app_id}/app.apk"

    async def _record_download(self, task: Task) -> None:
        app = self._catalog.get_app(task.app_id) if self._catalog is not None else None
        record = {
            "task_id": task.task_id,
            "app_id": task.app_id,
            "app_name": app.name if app is not None else task.extra.get("appName"),
            "package_name": task.package_name,
            "timestamp": format_utc_z(task.completed_at or self._clock()),
        }
        if not await self._download_log.append(record):
            logger.warning("Download of %s not recorded", task.task_id)


def _merge_download_fields(record: dict[str, Any], snapshot: dict[str, Any]) -> None:
    for key in ("status", "progress", "downloaded_bytes", "total_bytes", "updated_at"):
        record[key] = snapshot[key]
    if not record.get("completed_at"):
        record["completed_at"] = snapshot["completed_at"]
