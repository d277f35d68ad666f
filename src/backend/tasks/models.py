from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from src.shared.task_status import TaskStatus

Progress = Union[int, float]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_utc_z(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_utc_z(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _fmt(dt: Optional[datetime]) -> Optional[str]:
    return format_utc_z(dt) if dt is not None else None


def _progress(value: Any) -> Progress:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class Task:
    """
    One download-then-install attempt.

    ``status`` holds the caller supplied string; known values are the
    members of TaskStatus. ``progress`` refers to the current phase
    (download progress before install-start, install progress after).
    """
    task_id: str
    app_id: str
    package_name: str
    status: str
    created_at: datetime
    updated_at: datetime
    progress: Progress = 0
    downloaded_bytes: Optional[int] = None
    total_bytes: Optional[int] = None
    completed_at: Optional[datetime] = None
    install_task_id: Optional[str] = None
    install_status: Optional[str] = None
    install_progress: Progress = 0
    install_completed_at: Optional[datetime] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def known_status(self) -> Optional[TaskStatus]:
        return TaskStatus.parse(self.status)

    def to_record(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "app_id": self.app_id,
            "package_name": self.package_name,
            "status": self.status,
            "progress": self.progress,
            "downloaded_bytes": self.downloaded_bytes,
            "total_bytes": self.total_bytes,
            "created_at": format_utc_z(self.created_at),
            "updated_at": format_utc_z(self.updated_at),
            "completed_at": _fmt(self.completed_at),
            "install_task_id": self.install_task_id,
            "install_status": self.install_status,
            "install_progress": self.install_progress,
            "install_completed_at": _fmt(self.install_completed_at),
            "extra": self.extra,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Optional["Task"]:
        task_id = data.get("task_id")
        if not isinstance(task_id, str) or not task_id:
            return None

        created_at = parse_utc_z(data.get("created_at")) or utc_now()
        extra = data.get("extra")
        return cls(
            task_id=task_id,
            app_id=str(data.get("app_id") or ""),
            package_name=str(data.get("package_name") or ""),
            status=str(data.get("status") or TaskStatus.CREATED.value),
            created_at=created_at,
            updated_at=parse_utc_z(data.get("updated_at")) or created_at,
            progress=_progress(data.get("progress")),
            downloaded_bytes=data.get("downloaded_bytes"),
            total_bytes=data.get("total_bytes"),
            completed_at=parse_utc_z(data.get("completed_at")),
            install_task_id=data.get("install_task_id") or None,
            install_status=data.get("install_status") or None,
            install_progress=_progress(data.get("install_progress")),
            install_completed_at=parse_utc_z(data.get("install_completed_at")),
            extra=dict(extra) if isinstance(extra, dict) else {},
        )
