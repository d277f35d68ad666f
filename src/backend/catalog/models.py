from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional


@dataclass
class AppRecord:
    """
    One app bundle from ``store/<folder>``.

    Attributes:
        metadata: Raw ``metadata.json`` contents.
        version_info: Raw ``info.json`` of the newest release, if any.
        hash_code: MD5 of the newest APK (precomputed, hashed, or mock).
        screenshots: File names under ``screenshots/``.
    """
    app_id: str
    name: str
    package_name: str
    folder_name: str
    app_dir: Path
    metadata: dict[str, Any]
    last_scanned: datetime
    hash_code: str
    version_info: Optional[dict[str, Any]] = None
    screenshots: list[str] = field(default_factory=list)

    @property
    def category(self) -> str:
        return str(self.metadata.get("category") or self.metadata.get("type") or "99")

    def version_value(self, key: str, default: Any = None) -> Any:
        if not self.version_info:
            return default
        value = self.version_info.get(key)
        return default if value is None else value

    def matches(self, *, search_content: str = "", app_type: str = "") -> bool:
        if search_content:
            needle = search_content.lower()
            if needle not in self.name.lower() and needle not in self.package_name.lower():
                return False
        if app_type and app_type != self.category:
            return False
        return True


@dataclass(frozen=True)
class Category:
    dict_label: str
    dict_value: str

    def to_public_dict(self) -> dict[str, str]:
        return {"dictLabel": self.dict_label, "dictValue": self.dict_value}
