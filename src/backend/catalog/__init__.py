"""
App catalog scanned from the data root's ``store`` directory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import AppRecord, Category
from .scanner import AppScanner, load_app, load_categories
from .formatters import apk_url, format_app_for_details, format_app_for_list

if TYPE_CHECKING:
    from fastapi import APIRouter  # pragma: no cover
    from src.backend.settings.models import ServerConfig


def create_catalog_router(
    *, scanner: AppScanner, categories: list[Category], config: "ServerConfig"
) -> "APIRouter":
    """
    Lazily import FastAPI router to keep non-web imports lightweight.
    """
    from .api import create_catalog_router as _create_catalog_router

    return _create_catalog_router(scanner=scanner, categories=categories, config=config)

__all__ = [
    "AppRecord",
    "Category",
    "AppScanner",
    "load_app",
    "load_categories",
    "apk_url",
    "format_app_for_list",
    "format_app_for_details",
    "create_catalog_router",
]
