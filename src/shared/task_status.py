"""
Task status enum shared across backend modules and tests.

Download phase:
    created -> downloading -> completed -> verified
Install phase:
    install_pending -> installing -> installed
Any state may move to failed.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    CREATED = "created"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    VERIFIED = "verified"
    INSTALL_PENDING = "install_pending"
    INSTALLING = "installing"
    INSTALLED = "installed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: object) -> Optional["TaskStatus"]:
        """Map a caller supplied status string to a known status, or None."""
        if isinstance(value, TaskStatus):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def can_move_to(self, target: "TaskStatus") -> bool:
        if target == self or target == TaskStatus.FAILED:
            return True
        return target in ALLOWED_TRANSITIONS.get(self, frozenset())


ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.CREATED: frozenset({TaskStatus.DOWNLOADING, TaskStatus.COMPLETED}),
    TaskStatus.DOWNLOADING: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.VERIFIED, TaskStatus.INSTALL_PENDING, TaskStatus.INSTALLING}),
    TaskStatus.VERIFIED: frozenset({TaskStatus.INSTALL_PENDING, TaskStatus.INSTALLING}),
    TaskStatus.INSTALL_PENDING: frozenset({TaskStatus.INSTALLING}),
    TaskStatus.INSTALLING: frozenset({TaskStatus.INSTALLED}),
    TaskStatus.INSTALLED: frozenset(),
    # Retry after failure restarts the download.
    TaskStatus.FAILED: frozenset({TaskStatus.CREATED, TaskStatus.DOWNLOADING}),
}
