"""
API route relayed to the real origin: push tag lookup.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from .cancel import OneShotGuard
from .upstream import UpstreamProxy, UpstreamReply

logger = logging.getLogger(__name__)

HU_TAGS_ROUTE = "/hu-apigw/evhu/api/push/getHuTags"


async def wait_for_disconnect(request: Request) -> None:
    """Returns once the ASGI server reports that the client went away."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


def _to_response(reply: UpstreamReply) -> Response:
    if reply.is_json:
        response: Response = JSONResponse(reply.body, status_code=reply.status_code)
    else:
        content_type = next((v for k, v in reply.headers if k.lower() == "content-type"), "text/html; charset=utf-8")
        response = Response(content=reply.body, status_code=reply.status_code, media_type=content_type)

    # Raw header list keeps repeated origin headers such as set-cookie.
    response.raw_headers.extend(
        (key.lower().encode("latin-1"), value.encode("latin-1"))
        for key, value in reply.headers
        if key.lower() != "content-type"
    )
    return response


def create_upstream_router(*, proxy: UpstreamProxy) -> APIRouter:
    router = APIRouter(tags=["upstream"])

    @router.post(HU_TAGS_ROUTE)
    async def get_hu_tags(request: Request) -> Response:
        body = await request.body()
        logger.info("HuTags requested, relaying to %s", proxy.config.origin_url)

        reply = await proxy.forward(
            path=proxy.config.hu_tags_path,
            headers=request.headers,
            body=body,
            method=request.method,
            wait_disconnect=lambda: wait_for_disconnect(request),
            guard=OneShotGuard(),
        )
        if reply is None:
            # Client is gone; nothing will read this.
            return Response(status_code=499)
        return _to_response(reply)

    return router
