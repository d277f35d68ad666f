"""
Uniform response envelope and API error taxonomy.

Every gateway reply has the shape ``{code, data, msg, success}``; ``code`` is
0 on success. Errors carry a numeric business code next to the HTTP status.
"""

from __future__ import annotations

from typing import Any, Optional

CODE_OK = 0
CODE_BAD_REQUEST = 40005
CODE_NOT_FOUND = 40404
CODE_INTERNAL = 50000
CODE_BAD_GATEWAY = 50200
CODE_GATEWAY_TIMEOUT = 50400


def ok(data: Any = None, *, msg: str = "") -> dict[str, Any]:
    return {"code": CODE_OK, "data": data, "msg": msg, "success": True}


def fail(code: int, msg: str) -> dict[str, Any]:
    return {"code": code, "data": None, "msg": msg, "success": False}


class ApiError(Exception):
    """
    Base error converted into the failure envelope at the HTTP boundary.

    Attributes:
        code: Business error code placed in the envelope.
        msg: Human-readable message placed in the envelope.
        http_status: HTTP status code of the reply.
    """

    code: int = CODE_INTERNAL
    http_status: int = 500

    def __init__(self, msg: str, *, code: Optional[int] = None, http_status: Optional[int] = None) -> None:
        super().__init__(msg)
        self.msg = msg
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status

    def to_envelope(self) -> dict[str, Any]:
        return fail(self.code, self.msg)


class InvalidRequest(ApiError):
    code = CODE_BAD_REQUEST
    http_status = 400


class NotFound(ApiError):
    code = CODE_NOT_FOUND
    http_status = 404


class UpstreamError(ApiError):
    code = CODE_BAD_GATEWAY
    http_status = 502


class UpstreamTimeout(UpstreamError):
    code = CODE_GATEWAY_TIMEOUT
    http_status = 504


class InternalError(ApiError):
    code = CODE_INTERNAL
    http_status = 500
