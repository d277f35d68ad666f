from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from src.backend.fs.json_file import JsonDocument
from src.backend.tasks.models import format_utc_z, utc_now

logger = logging.getLogger(__name__)


def _empty_document() -> dict[str, Any]:
    return {"user_behaviors": [], "analytics": {"total_events": 0, "last_updated": None}}


def behavior_codes(behavior_detail: Any) -> list[str]:
    """
    Extract ``behaviorCode`` values from the JSON string head units send as
    ``behavior_detail`` (``[{"data": [{"behaviorCode": ...}, ...]}]``).
    """
    if not isinstance(behavior_detail, str):
        return []
    try:
        parsed = json.loads(behavior_detail)
    except ValueError:
        return []
    if not isinstance(parsed, list) or not parsed or not isinstance(parsed[0], dict):
        return []
    items = parsed[0].get("data")
    if not isinstance(items, list):
        return []
    return [str(i["behaviorCode"]) for i in items if isinstance(i, dict) and "behaviorCode" in i]


class BehaviorLog:
    """``user-behavior.json``; writes are best-effort."""

    def __init__(self, *, path: Path) -> None:
        self._doc = JsonDocument(path=path, default=_empty_document)

    async def load(self) -> dict[str, Any]:
        return await self._doc.read()

    async def record(self, *, access_token: Optional[str], behavior_detail: Any, source: str) -> bool:
        now = format_utc_z(utc_now())

        def mutate(data: dict[str, Any]) -> bool:
            behaviors = data.get("user_behaviors")
            if not isinstance(behaviors, list):
                behaviors = []
                data["user_behaviors"] = behaviors
            behaviors.append(
                {
                    "timestamp": now,
                    "access_token": access_token,
                    "behavior_detail": behavior_detail,
                    "source": source,
                }
            )
            analytics = data.get("analytics")
            if not isinstance(analytics, dict):
                analytics = {}
                data["analytics"] = analytics
            analytics["total_events"] = int(analytics.get("total_events") or 0) + 1
            analytics["last_updated"] = now
            return True

        written = await self._doc.mutate(mutate)
        if not written:
            logger.error("User behavior event from %s was not saved", source)
        return written
