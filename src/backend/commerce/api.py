"""
API routes for the storefront's purchase flow. Every app is free: download
authorization always succeeds and nothing is ever purchased.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter

from src.backend.catalog.scanner import AppScanner
from src.backend.tasks.store import DownloadLog
from src.shared.envelope import InvalidRequest, NotFound, ok
from src.shared.pagination import paginate, parse_page_int

logger = logging.getLogger(__name__)

MAX_ORDERS = 5


def _orders_from_downloads(downloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
    orders = []
    for index, download in enumerate(downloads[:MAX_ORDERS]):
        orders.append(
            {
                "order_id": f"ORDER_{index + 1:03d}",
                "app_id": download.get("app_id") or f"APP_ID_{index + 1}",
                "app_name": download.get("app_name") or f"App {index + 1}",
                "order_status": "completed",
                "order_time": download.get("timestamp") or "",
                "amount": 0.0,
                "currency": "CNY",
            }
        )
    return orders


def create_commerce_router(*, scanner: AppScanner, download_log: DownloadLog) -> APIRouter:
    router = APIRouter(tags=["commerce"])

    @router.get("/hu-apigw/wiki/api/v1/commodity/precreate")
    async def precreate(tid: Optional[str] = None) -> dict[str, Any]:
        logger.info("Download authorization requested - tid %s", tid)
        if not tid:
            raise InvalidRequest("tid parameter is required")

        app = scanner.get_app(tid)
        if app is None:
            raise NotFound("App not found")

        return ok(
            {
                "order_id": f"ORDER_{uuid.uuid4().hex[:12].upper()}",
                "tid": tid,
                "goods_name": app.name,
                "price": 0.0,
                "original_price": 0.0,
                "pay_status": "paid",
                "need_pay": False,
            }
        )

    @router.get("/hu-apigw/wiki/api/v1/commodity/purchase-list")
    async def purchase_list(tids: Optional[str] = None) -> dict[str, Any]:
        tid_list = [t.strip() for t in (tids or "").split(",") if t.strip()]
        logger.info("Purchase list requested for %d items", len(tid_list))
        return ok([{"purchase": False, "tid": tid} for tid in tid_list])

    @router.post("/hu-apigw/huservice/api/v1/store/order-list")
    async def order_list(
        current_page: Optional[str] = None,
        page_size: Optional[str] = None,
        source: str = "HU",
    ) -> dict[str, Any]:
        page = parse_page_int(current_page, 1)
        size = parse_page_int(page_size, 10)
        logger.info("Order list requested - page %d, size %d, source %s", page, size, source)

        orders = _orders_from_downloads(await download_log.load())
        return ok(paginate(orders, current_page=page, page_size=size))

    return router
