"""
Catalog scanner for ``<data_root>/store``.

Each app folder holds ``metadata.json`` and ``releases/<version>/info.json``;
the newest release is the first folder in descending name order.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from src.backend.fs.hashing import resolve_apk_hash

from .models import AppRecord, Category

logger = logging.getLogger(__name__)

SCREENSHOT_SUFFIXES = {".png", ".jpg", ".jpeg"}
MAX_SCREENSHOTS = 5


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _latest_release(app_dir: Path) -> tuple[Optional[dict[str, Any]], Optional[Path]]:
    releases = app_dir / "releases"
    if not releases.is_dir():
        return None, None

    versions = sorted((p for p in releases.iterdir() if p.is_dir()), key=lambda p: p.name, reverse=True)
    if not versions:
        return None, None

    info_path = versions[0] / "info.json"
    if not info_path.is_file():
        return None, versions[0]

    info = _read_json(info_path)
    return (info if isinstance(info, dict) else None), versions[0]


def _screenshots(app_dir: Path) -> list[str]:
    shots = app_dir / "screenshots"
    if not shots.is_dir():
        return []
    names = sorted(p.name for p in shots.iterdir() if p.is_file() and p.suffix.lower() in SCREENSHOT_SUFFIXES)
    return names[:MAX_SCREENSHOTS]


def load_app(app_dir: Path, *, scanned_at: Optional[datetime] = None) -> Optional[AppRecord]:
    """
    Load one app folder.

    Returns:
        The record, or None when the folder has no metadata.json.

    Raises:
        ValueError: Invalid JSON or missing required fields.
        OSError: Unreadable files.
    """
    metadata_path = app_dir / "metadata.json"
    if not metadata_path.is_file():
        return None

    metadata = _read_json(metadata_path)
    if not isinstance(metadata, dict):
        raise ValueError("metadata.json is not a JSON object")

    for key in ("app_id", "name", "package_name"):
        if not metadata.get(key):
            raise ValueError(f"metadata.json is missing {key}")

    version_info, release_dir = _latest_release(app_dir)
    app_id = str(metadata["app_id"])

    hash_code = ""
    if version_info and version_info.get("hash_code"):
        hash_code = str(version_info["hash_code"])
    else:
        apk_path = None
        if release_dir is not None:
            apk_name = (version_info or {}).get("apk_filename") or "app.apk"
            apk_path = release_dir / str(apk_name)
        hash_code = resolve_apk_hash(app_id, apk_path)

    return AppRecord(
        app_id=app_id,
        name=str(metadata["name"]),
        package_name=str(metadata["package_name"]),
        folder_name=app_dir.name,
        app_dir=app_dir,
        metadata=metadata,
        version_info=version_info,
        last_scanned=scanned_at or datetime.now(timezone.utc),
        hash_code=hash_code,
        screenshots=_screenshots(app_dir),
    )


class AppScanner:
    def __init__(self, *, store_dir: Path) -> None:
        self._store_dir = Path(store_dir)
        self._apps: dict[str, AppRecord] = {}
        self._last_scan: Optional[datetime] = None

    @property
    def last_scan(self) -> Optional[datetime]:
        return self._last_scan

    def __len__(self) -> int:
        return len(self._apps)

    def scan(self) -> int:
        """
        Rescan the store directory, replacing the cached catalog.

        Broken app folders are logged and skipped.

        Returns:
            Number of apps loaded.
        """
        logger.info("Scanning apps directory %s", self._store_dir)
        if not self._store_dir.is_dir():
            logger.warning("Store directory not found, creating %s", self._store_dir)
            self._store_dir.mkdir(parents=True, exist_ok=True)

        now = datetime.now(timezone.utc)
        apps: dict[str, AppRecord] = {}
        folders = sorted(p for p in self._store_dir.iterdir() if p.is_dir())
        logger.info("Found %d app folders", len(folders))

        for folder in folders:
            try:
                record = load_app(folder, scanned_at=now)
            except (OSError, ValueError) as exc:
                logger.error("Error loading app %s: %s", folder.name, exc)
                continue

            if record is None:
                logger.warning("No metadata.json found for app: %s", folder.name)
                continue

            if record.app_id in apps:
                logger.warning("Duplicate app_id %s in %s, keeping %s", record.app_id, folder.name, apps[record.app_id].folder_name)
                continue

            apps[record.app_id] = record
            logger.info("Loaded app: %s (%s)", record.name, record.app_id)

        self._apps = apps
        self._last_scan = now
        logger.info("Total apps loaded: %d", len(apps))
        return len(apps)

    def list_apps(self, *, search_content: str = "", app_type: str = "") -> list[AppRecord]:
        return [a for a in self._apps.values() if a.matches(search_content=search_content, app_type=app_type)]

    def get_app(self, app_id: Optional[str]) -> Optional[AppRecord]:
        if not app_id:
            return None
        return self._apps.get(app_id)


def load_categories(path: Path) -> list[Category]:
    """Read ``categories.json``; a missing or broken file yields no categories."""
    if not path.is_file():
        logger.warning("Categories file not found: %s", path)
        return []
    try:
        raw = _read_json(path)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read categories %s: %s", path, exc)
        return []

    items = raw.get("categories") if isinstance(raw, dict) else None
    if not isinstance(items, list):
        return []

    categories = []
    for item in items:
        if not isinstance(item, dict) or "dictValue" not in item:
            continue
        categories.append(Category(dict_label=str(item.get("dictLabel", "")), dict_value=str(item["dictValue"])))
    return categories
