"""
Tests for src/backend/net/upstream.py and src/backend/net/cancel.py

Covers:
- JSON and text origin replies
- Request/response header filtering and body re-serialization
- 502 / 504 error mapping
- Client disconnect and handler cancellation abort the origin exchange
- OneShotGuard is consumed exactly once
"""

import asyncio
import json
import unittest

import httpx

from src.backend.net.cancel import OneShotGuard
from src.backend.net.proxy import UpstreamConfig
from src.backend.net.upstream import UpstreamProxy, prepare_body
from src.shared.envelope import CODE_BAD_GATEWAY, CODE_GATEWAY_TIMEOUT, UpstreamError, UpstreamTimeout

ORIGIN = "https://origin.example.test"


def _proxy(handler, *, timeout_s: float = 5.0) -> UpstreamProxy:
    config = UpstreamConfig(origin_url=ORIGIN, timeout_s=timeout_s)
    return UpstreamProxy(config, transport=httpx.MockTransport(handler))


class TestForward(unittest.TestCase):
    def test_json_reply_and_forwarded_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["host"] = request.headers["host"]
            seen["token"] = request.headers.get("x-vcs-hu-token")
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"code": 0, "data": ["tag"]}, headers={"x-origin": "1"})

        async def run():
            return await _proxy(handler).forward(
                path="/hu-apigw/evhu/api/push/getHuTags",
                headers={"Host": "localhost", "Content-Length": "99", "X-VCS-Hu-Token": "tok"},
                body=b'{ "vin": "X1" }',
            )

        reply = asyncio.run(run())
        self.assertEqual(seen["url"], ORIGIN + "/hu-apigw/evhu/api/push/getHuTags")
        self.assertEqual(seen["host"], "origin.example.test")
        self.assertEqual(seen["token"], "tok")
        self.assertEqual(seen["content_type"], "application/json")
        self.assertEqual(json.loads(seen["body"]), {"vin": "X1"})

        self.assertEqual(reply.status_code, 200)
        self.assertTrue(reply.is_json)
        self.assertEqual(reply.body, {"code": 0, "data": ["tag"]})
        names = {k.lower() for k, _ in reply.headers}
        self.assertIn("x-origin", names)
        self.assertNotIn("content-length", names)

    def test_non_json_reply_is_returned_as_text(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="<html>down</html>", headers={"content-type": "text/html"})

        reply = asyncio.run(_proxy(handler).forward(path="/x", headers={}, body=b""))
        self.assertEqual(reply.status_code, 503)
        self.assertFalse(reply.is_json)
        self.assertEqual(reply.body, "<html>down</html>")

    def test_connect_error_maps_to_502(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(UpstreamError) as ctx:
            asyncio.run(_proxy(handler).forward(path="/x", headers={}, body=b""))
        self.assertNotIsInstance(ctx.exception, UpstreamTimeout)
        self.assertEqual(ctx.exception.code, CODE_BAD_GATEWAY)
        self.assertEqual(ctx.exception.http_status, 502)
        self.assertTrue(ctx.exception.msg.startswith("Upstream server error"))

    def test_slow_origin_maps_to_504(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        guard = OneShotGuard()
        with self.assertRaises(UpstreamTimeout) as ctx:
            asyncio.run(_proxy(handler, timeout_s=0.05).forward(path="/x", headers={}, body=b"", guard=guard))
        self.assertEqual(ctx.exception.code, CODE_GATEWAY_TIMEOUT)
        self.assertEqual(ctx.exception.http_status, 504)
        self.assertTrue(guard.consumed)
        self.assertFalse(guard.aborted)

    def test_client_disconnect_aborts_exchange(self):
        state = {"cancelled": False}

        async def run():
            disconnected = asyncio.Event()

            async def handler(request: httpx.Request) -> httpx.Response:
                try:
                    disconnected.set()
                    await asyncio.sleep(5)
                except asyncio.CancelledError:
                    state["cancelled"] = True
                    raise
                return httpx.Response(200, json={})

            async def wait_disconnect():
                await disconnected.wait()

            guard = OneShotGuard()
            reply = await _proxy(handler).forward(path="/x", headers={}, body=b"", wait_disconnect=wait_disconnect, guard=guard)
            return reply, guard

        reply, guard = asyncio.run(run())
        self.assertIsNone(reply)
        self.assertTrue(guard.aborted)
        self.assertEqual(guard.reason, "client disconnected")
        self.assertTrue(state["cancelled"])

    def test_failed_disconnect_watcher_keeps_waiting_for_origin(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.1)
            return httpx.Response(200, json={"code": 0})

        async def wait_disconnect():
            raise RuntimeError("receive channel broken")

        guard = OneShotGuard()
        with self.assertLogs("src.backend.net.upstream", level="WARNING") as logs:
            reply = asyncio.run(
                _proxy(handler).forward(path="/x", headers={}, body=b"", wait_disconnect=wait_disconnect, guard=guard)
            )
        self.assertEqual(reply.status_code, 200)
        self.assertEqual(reply.body, {"code": 0})
        self.assertTrue(guard.consumed)
        self.assertFalse(guard.aborted)
        self.assertTrue(any("Disconnect watcher failed" in line for line in logs.output))

    def test_failed_disconnect_watcher_still_times_out(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        async def wait_disconnect():
            raise RuntimeError("receive channel broken")

        with self.assertRaises(UpstreamTimeout):
            asyncio.run(
                _proxy(handler, timeout_s=0.1).forward(path="/x", headers={}, body=b"", wait_disconnect=wait_disconnect)
            )

    def test_cancelled_handler_aborts_exchange(self):
        async def run():
            started = asyncio.Event()

            async def handler(request: httpx.Request) -> httpx.Response:
                started.set()
                await asyncio.sleep(5)
                return httpx.Response(200, json={})

            guard = OneShotGuard()
            task = asyncio.create_task(_proxy(handler).forward(path="/x", headers={}, body=b"", guard=guard))
            await started.wait()
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task
            return guard

        guard = asyncio.run(run())
        self.assertTrue(guard.aborted)
        self.assertEqual(guard.reason, "request aborted")


class TestPrepareBody(unittest.TestCase):
    def test_empty_body_becomes_empty_object(self):
        self.assertEqual(prepare_body(b""), b"{}")

    def test_json_is_reserialized(self):
        self.assertEqual(prepare_body(b'{ "a" : 1 }'), b'{"a":1}')

    def test_non_json_forwarded_untouched(self):
        self.assertEqual(prepare_body(b"vin=X1"), b"vin=X1")


class TestOneShotGuard(unittest.TestCase):
    def test_abort_runs_teardown_once(self):
        calls = []
        guard = OneShotGuard()
        guard.on_abort(lambda: calls.append("a"))

        self.assertTrue(guard.abort("client disconnected"))
        self.assertFalse(guard.abort("request aborted"))
        self.assertFalse(guard.complete())
        self.assertEqual(calls, ["a"])
        self.assertEqual(guard.reason, "client disconnected")

    def test_abort_after_complete_is_noop(self):
        calls = []
        guard = OneShotGuard()
        guard.on_abort(lambda: calls.append("a"))

        self.assertTrue(guard.complete())
        self.assertFalse(guard.abort("request aborted"))
        self.assertEqual(calls, [])
        self.assertFalse(guard.aborted)

    def test_failing_teardown_does_not_escape(self):
        guard = OneShotGuard()
        guard.on_abort(lambda: 1 / 0)
        with self.assertLogs("src.backend.net.cancel", level="ERROR"):
            self.assertTrue(guard.abort("request aborted"))


if __name__ == "__main__":
    unittest.main()
