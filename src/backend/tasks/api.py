"""
API routes for the download/installation task lifecycle.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from fastapi import APIRouter, Depends

from src.backend.request_body import LooseBody, body_of
from src.shared.envelope import ok

from .coordinator import TaskCoordinator

TASK_PREFIX = "/hu-apigw/appstore/api/v1/task"

Number = Union[int, float]


class TaskCreateIn(LooseBody):
    app_id: Optional[str] = None
    package_name: Optional[str] = None


class DownloadProgressIn(LooseBody):
    task_id: Optional[str] = None
    progress: Optional[Number] = None
    status: Optional[str] = None
    downloaded_bytes: Optional[int] = None
    total_bytes: Optional[int] = None


class TaskCompleteIn(LooseBody):
    task_id: Optional[str] = None
    status: Optional[str] = None


class VerifyFileIn(LooseBody):
    task_id: Optional[str] = None
    file_hash: Optional[str] = None
    file_size: Optional[Number] = None


class StartInstallIn(LooseBody):
    task_id: Optional[str] = None
    package_name: Optional[str] = None
    app_id: Optional[str] = None


class InstallProgressIn(LooseBody):
    install_task_id: Optional[str] = None
    progress: Optional[Number] = None
    status: Optional[str] = None


class CompleteInstallIn(LooseBody):
    install_task_id: Optional[str] = None
    original_task_id: Optional[str] = None
    status: Optional[str] = None
    package_name: Optional[str] = None


def create_task_router(*, coordinator: TaskCoordinator) -> APIRouter:
    router = APIRouter(prefix=TASK_PREFIX, tags=["tasks"])

    @router.post("/create")
    async def create_task(body: TaskCreateIn = Depends(body_of(TaskCreateIn))) -> dict[str, Any]:
        data = await coordinator.create(
            app_id=body.app_id,
            package_name=body.package_name,
            extra=dict(body.model_extra or {}),
        )
        return ok(data)

    @router.post("/update-download-process")
    async def update_download_process(body: DownloadProgressIn = Depends(body_of(DownloadProgressIn))) -> dict[str, Any]:
        data = await coordinator.update_progress(
            task_id=body.task_id,
            progress=body.progress,
            status=body.status,
            downloaded_bytes=body.downloaded_bytes,
            total_bytes=body.total_bytes,
        )
        return ok(data)

    @router.post("/update-process")
    async def update_process(body: TaskCompleteIn = Depends(body_of(TaskCompleteIn))) -> dict[str, Any]:
        return ok(await coordinator.complete(task_id=body.task_id, status=body.status))

    @router.post("/verify-file")
    async def verify_file(body: VerifyFileIn = Depends(body_of(VerifyFileIn))) -> dict[str, Any]:
        data = await coordinator.verify_file(task_id=body.task_id, file_hash=body.file_hash, file_size=body.file_size)
        return ok(data)

    @router.post("/start-install")
    async def start_install(body: StartInstallIn = Depends(body_of(StartInstallIn))) -> dict[str, Any]:
        data = await coordinator.start_install(task_id=body.task_id, package_name=body.package_name, app_id=body.app_id)
        return ok(data)

    @router.post("/update-install-process")
    async def update_install_process(body: InstallProgressIn = Depends(body_of(InstallProgressIn))) -> dict[str, Any]:
        data = await coordinator.update_install_progress(
            install_task_id=body.install_task_id,
            progress=body.progress,
            status=body.status,
        )
        return ok(data)

    @router.post("/complete-install")
    async def complete_install(body: CompleteInstallIn = Depends(body_of(CompleteInstallIn))) -> dict[str, Any]:
        data = await coordinator.complete_install(
            install_task_id=body.install_task_id,
            original_task_id=body.original_task_id,
            status=body.status,
            package_name=body.package_name,
        )
        return ok(data)

    @router.get("/initial-params")
    async def initial_params() -> dict[str, Any]:
        return ok(coordinator.initial_params())

    return router
