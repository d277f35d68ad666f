from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends

from src.backend.request_body import LooseBody, body_of

from .store import BehaviorLog, behavior_codes

logger = logging.getLogger(__name__)


class UserBehaviorIn(LooseBody):
    access_token: Optional[str] = None
    timestamp: Optional[Any] = None
    behavior_detail: Optional[Any] = None


def _accepted() -> dict[str, Any]:
    # Analytics endpoints use their own envelope.
    return {"data": None, "error_msg": None, "status_code": 0}


def create_analytics_router(*, behavior_log: BehaviorLog) -> APIRouter:
    router = APIRouter(tags=["analytics"])

    @router.post("/appserver/api/hu/2.0/userBehavior")
    async def user_behavior_appserver(body: UserBehaviorIn = Depends(body_of(UserBehaviorIn))) -> dict[str, Any]:
        logger.info("User behavior event (/appserver)")
        await behavior_log.record(access_token=body.access_token, behavior_detail=body.behavior_detail, source="appserver")
        return _accepted()

    @router.post("/dt/api/hu/2.0/userBehavior")
    async def user_behavior_dt(body: UserBehaviorIn = Depends(body_of(UserBehaviorIn))) -> dict[str, Any]:
        codes = behavior_codes(body.behavior_detail)
        if codes:
            logger.info("User behavior event (/dt), codes: %s", ", ".join(codes))
        else:
            logger.info("User behavior event (/dt), could not parse behavior detail")
        await behavior_log.record(access_token=body.access_token, behavior_detail=body.behavior_detail, source="dt")
        return _accepted()

    return router
