"""
Whole-document JSON files used as flat logs.

Each document is read fully and rewritten fully. All writes of one document
go through a single asyncio lock, so concurrent read-modify-write cycles of
the same file cannot lose each other's updates. Persistence is best-effort:
failures are logged and reported as ``False``, never raised.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Mutator = Callable[[dict[str, Any]], bool]


class JsonDocument:
    def __init__(self, *, path: Path, default: Callable[[], dict[str, Any]]) -> None:
        self._path = Path(path)
        self._default = default
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> dict[str, Any]:
        """Current document, or the default document if missing or unreadable."""
        data = await asyncio.to_thread(self._read_sync)
        return data if data is not None else self._default()

    async def mutate(self, mutator: Mutator, *, create: bool = True) -> bool:
        """
        Apply ``mutator`` to the document and write it back.

        Args:
            mutator: Edits the document in place; returns False to skip the write.
            create: Start from the default document when the file is missing.

        Returns:
            True if the document was written.
        """
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._read_sync, strict=True)
            except (OSError, ValueError) as exc:
                logger.error("Cannot read %s: %s", self._path, exc)
                return False

            if data is None:
                if not create:
                    return False
                data = self._default()

            try:
                if not mutator(data):
                    return False
            except Exception:
                logger.exception("Updating %s failed", self._path)
                return False

            try:
                await asyncio.to_thread(self._write_sync, data)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Cannot write %s: %s", self._path, exc)
                return False
            return True

    def _read_sync(self, strict: bool = False) -> Optional[dict[str, Any]]:
        if not self._path.exists():
            return None
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            if strict:
                raise
            return None
        if not isinstance(raw, dict):
            if strict:
                raise ValueError(f"{self._path.name} is not a JSON object")
            return None
        return raw

    def _write_sync(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(self._path)
