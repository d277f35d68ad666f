from __future__ import annotations

import json
import logging
from typing import Any

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

GATEWAY_PREFIX = "/hu-apigw/"
VCS_HEADERS = ("x-vcs-hu-token", "x-vcs-timestamp", "x-vcs-nonce")


class RequestLogMiddleware:
    """
    Logs each HTTP request line. With ``log_requests`` it also logs the
    head unit's X-VCS auth headers and the query string.

    Plain ASGI so ``receive`` reaches the endpoints untouched; the upstream
    relay listens on it for client disconnects.
    """

    def __init__(self, app: ASGIApp, *, log_requests: bool = False, dev_mode: bool = False) -> None:
        self.app = app
        self.log_requests = log_requests
        self.dev_mode = dev_mode

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        path = scope.get("path", "")
        logger.info("%s %s (host %s, user-agent %s)", scope.get("method"), path, headers.get("host"), headers.get("user-agent"))

        if self.log_requests:
            logger.info("Headers: %s", json.dumps(_vcs_headers(headers)))
            query = scope.get("query_string", b"").decode("latin-1")
            if query:
                logger.info("Query: %s", query)

        if path.startswith(GATEWAY_PREFIX):
            mode = "dev mode" if self.dev_mode else "mock mode"
            logger.debug("Gateway request - authentication bypassed (%s)", mode)

        await self.app(scope, receive, send)


def _vcs_headers(headers: dict[str, str]) -> dict[str, Any]:
    return {name: headers.get(name) for name in VCS_HEADERS}
