"""
Catalog records rendered in the head-unit wire format.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .models import AppRecord

DEFAULT_VERSION = "1.0.0"
DEFAULT_VERSION_NUMBER = 100000
DEFAULT_UPDATE_AT = "2025.07.03"


def icon_url(app: AppRecord, asset_base: str) -> str:
    return f"{asset_base}/{app.folder_name}/png.png"


def apk_url(app: AppRecord, asset_base: str) -> str:
    return f"{asset_base}/{app.folder_name}/apk.apk"


def screenshot_urls(app: AppRecord, public_base: str) -> list[str]:
    return [f"{public_base}/static/screenshots/{app.folder_name}/{name}" for name in app.screenshots]


def _apk_info(app: AppRecord, asset_base: str) -> dict[str, Any]:
    return {
        "apk_name": app.version_value("apk_filename", "app.apk"),
        "file_size": str(app.version_value("file_size", 0)),
        "hash_code": app.hash_code,
        "hash_type": "md5",
        "url": apk_url(app, asset_base),
    }


def _update_at(app: AppRecord) -> str:
    raw = app.metadata.get("updated_at")
    if not isinstance(raw, str) or not raw.strip():
        return DEFAULT_UPDATE_AT
    try:
        dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return DEFAULT_UPDATE_AT
    return dt.strftime("%Y.%m.%d")


def format_app_for_list(app: AppRecord, *, asset_base: str) -> dict[str, Any]:
    version_number = app.version_value("version_number", DEFAULT_VERSION_NUMBER)
    return {
        "app_id": app.app_id,
        "name": app.name,
        "package_name": app.package_name,
        "icon": icon_url(app, asset_base),
        "slogan": app.metadata.get("slogan") or f"{app.name} - great app",
        "version": app.version_value("version", DEFAULT_VERSION),
        "version_id": str(version_number),
        "version_number": version_number,
        "type": app.category,
        "tid": app.app_id,
        "restricted_state": app.metadata.get("restricted_state", 0),
        "uninstall": app.metadata.get("uninstall", True),
        "apk_info": _apk_info(app, asset_base),
        "pay_info": {
            "discount": 100.0,
            "order_source": "APPSTORE",
            "original_price": 0.0,
            "pay_ways": [],
            "price": 0.0,
            "is_purchase": False,
        },
        "statics": {"downloads": "0", "installs": "0", "uninstalls": "0", "updates": "0"},
        "tags": [{"tag_code": "yes", "type_code": "tuijian"}] if app.metadata.get("featured") else [],
    }


def format_app_for_details(app: AppRecord, *, asset_base: str, public_base: str) -> dict[str, Any]:
    version_number = app.version_value("version_number", DEFAULT_VERSION_NUMBER)
    screenshots = screenshot_urls(app, public_base)
    return {
        "app_id": app.app_id,
        "name": app.name,
        "package_name": app.package_name,
        "developer": app.metadata.get("developer") or "Unknown Developer",
        "icon": icon_url(app, asset_base),
        "introduction": app.metadata.get("description") or "No description",
        "notes": app.version_value("release_notes", "No release notes"),
        "update_at": _update_at(app),
        "version": app.version_value("version", DEFAULT_VERSION),
        "version_id": str(version_number),
        "version_number": version_number,
        "tid": app.app_id,
        "uninstall": app.metadata.get("uninstall", True),
        "images": {"horizontal": screenshots, "vertical": list(screenshots)},
        "apk_info": _apk_info(app, asset_base),
        "pay_info": {
            "discount": 100.0,
            "is_purchase": False,
            "order_source": "APPSTORE",
            "original_price": 0.0,
            "pay_ways": [],
            "price": 0.0,
        },
        "statics": {"downloads": "2", "installs": "2", "uninstalls": "0", "updates": "0"},
    }
