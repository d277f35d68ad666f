"""
Exception handlers turning every failure into the uniform envelope.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.envelope import CODE_BAD_REQUEST, CODE_INTERNAL, CODE_NOT_FOUND, ApiError, fail

logger = logging.getLogger(__name__)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s (%d)", request.method, request.url.path, exc.msg, exc.code)
    else:
        logger.info("%s %s rejected: %s (%d)", request.method, request.url.path, exc.msg, exc.code)
    return JSONResponse(status_code=exc.http_status, content=exc.to_envelope())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("%s %s invalid body: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content=fail(CODE_BAD_REQUEST, "Invalid request body"))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code in (404, 405):
        logger.warning(
            "404 - Route not found: %s %s (host %s, user-agent %s, referer %s)",
            request.method,
            request.url.path,
            request.headers.get("host"),
            request.headers.get("user-agent"),
            request.headers.get("referer"),
        )
        return JSONResponse(status_code=404, content=fail(CODE_NOT_FOUND, "Endpoint not found"))

    code = CODE_BAD_REQUEST if exc.status_code < 500 else CODE_INTERNAL
    return JSONResponse(status_code=exc.status_code, content=fail(code, str(exc.detail)))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Server error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=fail(CODE_INTERNAL, "Internal server error"))


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
