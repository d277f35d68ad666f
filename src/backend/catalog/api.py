"""
API routes for the app catalog: list, details, category dictionary and
resource update times.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Query

from src.backend.settings.models import ServerConfig
from src.shared.envelope import InvalidRequest, NotFound, ok
from src.shared.pagination import paginate, parse_page_int

from .formatters import format_app_for_details, format_app_for_list
from .models import Category
from .scanner import AppScanner

logger = logging.getLogger(__name__)

APPSTORE_PREFIX = "/hu-apigw/appstore/api/v1"
PRIVACY_AGREEMENT = "PRIVACY_AGREEMENT"


def create_catalog_router(*, scanner: AppScanner, categories: list[Category], config: ServerConfig) -> APIRouter:
    router = APIRouter(prefix=APPSTORE_PREFIX, tags=["catalog"])

    @router.get("/app/list")
    async def app_list(
        current_page: Optional[str] = None,
        page_size: Optional[str] = None,
        search_content: str = "",
        app_type: str = Query("", alias="type"),
    ) -> dict[str, Any]:
        page = parse_page_int(current_page, 1)
        size = min(parse_page_int(page_size, config.pagination.default_page_size), config.pagination.max_page_size)
        logger.info("App list requested - page %d, size %d, search %r, type %r", page, size, search_content, app_type)

        apps = scanner.list_apps(search_content=search_content, app_type=app_type)
        asset_base = config.asset_base_url()
        data = paginate([format_app_for_list(a, asset_base=asset_base) for a in apps], current_page=page, page_size=size)
        logger.info("Returning %d apps out of %d total", len(data["list"]), len(apps))
        return ok(data)

    @router.get("/app/details")
    async def app_details(app_id: Optional[str] = None, package_name: Optional[str] = None) -> dict[str, Any]:
        logger.info("App details requested - app_id %s, package %s", app_id, package_name)
        if not app_id:
            raise InvalidRequest("app_id parameter is required")

        app = scanner.get_app(app_id)
        if app is None:
            logger.info("App not found: %s", app_id)
            raise NotFound("App not found")

        return ok(
            format_app_for_details(app, asset_base=config.asset_base_url(), public_base=config.public_base_url())
        )

    @router.get("/app/query")
    async def app_query(dictName: Optional[str] = None) -> dict[str, Any]:
        if dictName != "app_type":
            raise InvalidRequest("Invalid dictName parameter")
        return ok([c.to_public_dict() for c in categories])

    @router.get("/resource/update-time")
    async def resource_update_time(resource_type: Optional[str] = None) -> dict[str, Any]:
        if resource_type != PRIVACY_AGREEMENT:
            raise InvalidRequest("Invalid resource_type parameter")
        return ok(config.catalog.privacy_agreement_updated_at)

    return router
