"""
Data root directory structure.

Directory structure:
    <data_root>/config/server-config.json
    <data_root>/config/categories.json
    <data_root>/store/<app folder>/metadata.json
    <data_root>/store/<app folder>/releases/<version>/info.json
    <data_root>/logs/{tasks,downloads,user-behavior}.json
"""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple


class DataPaths(NamedTuple):
    """Resolved paths below the data root."""
    root: Path
    config: Path
    store: Path
    logs: Path

    @property
    def server_config(self) -> Path:
        return self.config / "server-config.json"

    @property
    def categories(self) -> Path:
        return self.config / "categories.json"

    @property
    def tasks_log(self) -> Path:
        return self.logs / "tasks.json"

    @property
    def downloads_log(self) -> Path:
        return self.logs / "downloads.json"

    @property
    def behavior_log(self) -> Path:
        return self.logs / "user-behavior.json"


def resolve_data_paths(data_root: Path) -> DataPaths:
    root = Path(data_root).resolve()
    return DataPaths(root=root, config=root / "config", store=root / "store", logs=root / "logs")


def ensure_data_dirs(paths: DataPaths) -> DataPaths:
    """
    Create the store and logs directories if missing.

    Raises:
        OSError: If directories cannot be created.
    """
    paths.store.mkdir(parents=True, exist_ok=True)
    paths.logs.mkdir(parents=True, exist_ok=True)
    return paths
