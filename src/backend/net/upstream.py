"""
Relay of selected gateway calls to the real origin server.

One inbound request maps to one upstream exchange. The exchange is aborted as
soon as the inbound client goes away, and a one-shot guard makes sure that
teardown and a legitimate completion never both happen.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

import httpx

from src.shared.envelope import InternalError, UpstreamError, UpstreamTimeout

from .cancel import OneShotGuard
from .proxy import UpstreamConfig

logger = logging.getLogger(__name__)

# Request headers recomputed for the upstream hop.
DROPPED_REQUEST_HEADERS = frozenset({"host", "content-length"})
# Response headers that must not be copied back to the client. Content-Length
# is recomputed by the framework when the body is re-encoded.
DROPPED_RESPONSE_HEADERS = frozenset({"connection", "transfer-encoding", "content-encoding", "content-length"})

DisconnectWaiter = Callable[[], Awaitable[object]]


@dataclass
class UpstreamReply:
    """Origin response, already decoded."""
    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: Any = None
    is_json: bool = False


def build_upstream_headers(headers: Mapping[str, str], *, host: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in DROPPED_REQUEST_HEADERS:
            continue
        out[key.lower()] = value
    out["host"] = host
    out["content-type"] = "application/json"
    return out


def filter_response_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(k, v) for k, v in headers if k.lower() not in DROPPED_RESPONSE_HEADERS]


def prepare_body(raw: bytes) -> bytes:
    """Re-serialize a JSON body; anything else is forwarded untouched."""
    if not raw:
        return b"{}"
    try:
        parsed = json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        return raw
    return json.dumps(parsed, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_body(raw: bytes, encoding: Optional[str] = None) -> tuple[Any, bool]:
    """
    Decode an origin body.

    Returns:
        (body, is_json): the parsed JSON value, or the raw text when the body
        is not valid JSON.
    """
    text = raw.decode(encoding or "utf-8", errors="replace")
    try:
        return json.loads(text), True
    except ValueError:
        return text, False


class UpstreamProxy:
    """
    Forwards one request to the configured origin and returns its reply.

    Args:
        config: Origin configuration.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(self, config: UpstreamConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._config = config
        self._transport = transport
        if config.insecure_skip_verify:
            logger.warning("TLS certificate verification is disabled for upstream %s", config.origin_url)

    @property
    def config(self) -> UpstreamConfig:
        return self._config

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=not self._config.insecure_skip_verify,
            timeout=httpx.Timeout(self._config.timeout_s),
            transport=self._transport,
        )

    async def forward(
        self,
        *,
        path: str,
        headers: Mapping[str, str],
        body: bytes,
        method: str = "POST",
        wait_disconnect: Optional[DisconnectWaiter] = None,
        guard: Optional[OneShotGuard] = None,
    ) -> Optional[UpstreamReply]:
        """
        Relay one request to the origin.

        Args:
            path: Path on the origin.
            headers: Inbound request headers.
            body: Inbound raw request body.
            method: HTTP method to use upstream.
            wait_disconnect: Awaitable factory that returns once the inbound
                client has disconnected.
            guard: One-shot guard shared with other disconnect signals
                (a fresh one is created when omitted).

        Returns:
            The origin reply, or None when the client went away first.

        Raises:
            UpstreamError: Connection or read failure (502).
            UpstreamTimeout: No complete reply within the timeout (504).
            InternalError: The reply could not be processed (500).
        """
        guard = guard or OneShotGuard()
        url = self._config.url_for(path)
        logger.info("Forwarding %s to %s", method, url)

        exchange = asyncio.create_task(self._exchange(method, url, headers, body), name="upstream-exchange")
        guard.on_abort(exchange.cancel)

        waiters: set[asyncio.Task[Any]] = {exchange}
        watcher: Optional[asyncio.Task[None]] = None
        if wait_disconnect is not None:
            watcher = asyncio.create_task(self._watch_disconnect(wait_disconnect, guard), name="upstream-watch")
            waiters.add(watcher)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.timeout_s
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self._config.timeout_s,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if watcher in done and exchange not in done and not guard.consumed:
                # The watcher died without seeing a disconnect; keep waiting on the origin alone.
                logger.warning("Disconnect watcher failed, continuing without it: %r", watcher.exception())
                done, _ = await asyncio.wait({exchange}, timeout=max(0.0, deadline - loop.time()))
        except asyncio.CancelledError:
            if guard.abort("request aborted"):
                logger.info("Request aborted, upstream exchange torn down")
            await _settle(exchange)
            raise
        finally:
            if watcher is not None:
                watcher.cancel()
                if watcher.done() and not watcher.cancelled():
                    watcher.exception()

        if exchange not in done:
            if guard.aborted:
                await _settle(exchange)
                return None
            if guard.complete():
                logger.error("Upstream request timeout after %.1fs", self._config.timeout_s)
                exchange.cancel()
                await _settle(exchange)
                raise UpstreamTimeout("Upstream server timeout")
            await _settle(exchange)
            return None

        if not guard.complete():
            logger.info("Client disconnected before upstream response completed, dropping reply")
            return None

        # Re-raises the mapped ApiError of a failed exchange.
        reply = exchange.result()
        logger.info("Upstream response received: %s (%s)", reply.status_code, "json" if reply.is_json else "text")
        return reply

    async def _watch_disconnect(self, wait_disconnect: DisconnectWaiter, guard: OneShotGuard) -> None:
        await wait_disconnect()
        if guard.abort("client disconnected"):
            logger.info("Client disconnected, upstream exchange aborted")

    async def _exchange(self, method: str, url: str, headers: Mapping[str, str], body: bytes) -> UpstreamReply:
        payload = prepare_body(body)
        out_headers = build_upstream_headers(headers, host=self._config.host)

        async with self._client() as client:
            request = client.build_request(method, url, headers=out_headers, content=payload)
            try:
                response = await client.send(request, stream=True)
            except httpx.TimeoutException as exc:
                raise UpstreamTimeout("Upstream server timeout") from exc
            except httpx.HTTPError as exc:
                logger.error("Error connecting to upstream server: %s", exc)
                raise UpstreamError(f"Upstream server error: {exc}") from exc

            try:
                raw = await response.aread()
            except httpx.TimeoutException as exc:
                raise UpstreamTimeout("Upstream server timeout") from exc
            except httpx.HTTPError as exc:
                logger.error("Error in upstream response: %s", exc)
                raise UpstreamError(f"Upstream response error: {exc}") from exc
            finally:
                await response.aclose()

        try:
            decoded, is_json = decode_body(raw, response.encoding)
            reply_headers = filter_response_headers(response.headers.multi_items())
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error processing upstream response")
            raise InternalError("Error processing upstream response") from exc

        return UpstreamReply(
            status_code=response.status_code,
            headers=reply_headers,
            body=decoded,
            is_json=is_json,
        )


async def _settle(task: asyncio.Task[Any]) -> None:
    """Wait for a cancelled or finished task without propagating its outcome."""
    if not task.done():
        await asyncio.wait({task})
    if not task.cancelled():
        task.exception()
