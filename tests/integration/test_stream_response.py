"""Integration tests for server-sent event endpoints served through FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import Any
from unittest.mock import AsyncMock

from fastapi_route_bridge.build import HttpOutput, RouteBuild, RouteInput, middleware
from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.exceptions import RouteAbort


async def three(ctx: RequestContext, input: RouteInput) -> AsyncIterator[int]:
    for n in (1, 2, 3):
        yield n


class TestStreaming:
    async def test_frames_in_production_order(
        self, app_factory: Any, call: Any
    ) -> None:
        resp = await call(app_factory(RouteBuild.sse("/s", three)), "GET", "/s")
        assert resp.status_code == 200
        assert resp.text == "data: 1\n\ndata: 2\n\ndata: 3\n\n"
        assert resp.headers["content-type"] == "text/event-stream"
        assert resp.headers["cache-control"] == "no-cache"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["connection"] == "keep-alive"

    async def test_sync_generator_source(self, app_factory: Any, call: Any) -> None:
        def letters(ctx: RequestContext, input: RouteInput) -> Iterator[str]:
            yield from ("a", "b")

        resp = await call(app_factory(RouteBuild.sse("/s", letters)), "GET", "/s")
        assert resp.text == 'data: "a"\n\ndata: "b"\n\n'

    async def test_coroutine_returning_iterable(
        self, app_factory: Any, call: Any
    ) -> None:
        async def handler(
            ctx: RequestContext, input: RouteInput
        ) -> list[dict[str, int]]:
            return [{"n": 1}]

        resp = await call(app_factory(RouteBuild.sse("/s", handler)), "GET", "/s")
        assert resp.text == 'data: {"n":1}\n\n'

    async def test_empty_stream_only_preamble(
        self, app_factory: Any, call: Any
    ) -> None:
        async def handler(ctx: RequestContext, input: RouteInput) -> list[int]:
            return []

        resp = await call(app_factory(RouteBuild.sse("/s", handler)), "GET", "/s")
        assert resp.status_code == 200
        assert resp.text == ""

    async def test_middleware_headers_in_preamble(
        self, app_factory: Any, call: Any
    ) -> None:
        @middleware
        async def tag(ctx: RequestContext, input: RouteInput) -> Any:
            return HttpOutput(headers={"X-Stream-Id": "42"})

        build = RouteBuild.sse("/s", three, middlewares=(tag,))
        resp = await call(app_factory(build), "GET", "/s")
        assert resp.headers["x-stream-id"] == "42"


class TestStreamFailures:
    async def test_producer_error_becomes_trailing_event(
        self, app_factory: Any, call: Any
    ) -> None:
        async def handler(
            ctx: RequestContext, input: RouteInput
        ) -> AsyncIterator[int]:
            yield 1
            raise RuntimeError("producer broke")

        resp = await call(app_factory(RouteBuild.sse("/s", handler)), "GET", "/s")
        assert resp.status_code == 200
        assert resp.text == 'data: 1\n\ndata: "Something went wrong!"\n\n'

    async def test_route_abort_detail_in_trailing_event(
        self, app_factory: Any, call: Any
    ) -> None:
        async def handler(
            ctx: RequestContext, input: RouteInput
        ) -> AsyncIterator[int]:
            yield 1
            raise RouteAbort({"code": "quota"}, status_code=429)

        resp = await call(app_factory(RouteBuild.sse("/s", handler)), "GET", "/s")
        assert resp.status_code == 200
        assert resp.text == 'data: 1\n\ndata: {"code":"quota"}\n\n'

    async def test_handler_failing_before_first_item(
        self, app_factory: Any, call: Any
    ) -> None:
        async def handler(ctx: RequestContext, input: RouteInput) -> Any:
            raise RouteAbort("not yet")

        resp = await call(app_factory(RouteBuild.sse("/s", handler)), "GET", "/s")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/event-stream"
        assert resp.text == 'data: "not yet"\n\n'

    async def test_middleware_failure_is_ordinary_response(
        self, app_factory: Any, call: Any
    ) -> None:
        handler = AsyncMock()

        @middleware
        async def deny(ctx: RequestContext, input: RouteInput) -> Any:
            raise RouteAbort("denied", status_code=401)

        build = RouteBuild.sse("/s", handler, middlewares=(deny,))
        resp = await call(app_factory(build), "GET", "/s")
        assert resp.status_code == 401
        assert resp.headers["content-type"] == "application/json"
        assert resp.json() == "denied"
        handler.assert_not_called()

    async def test_unencodable_preamble_header_is_ordinary_response(
        self, app_factory: Any, call: Any
    ) -> None:
        handler = AsyncMock()

        @middleware
        async def tag(ctx: RequestContext, input: RouteInput) -> Any:
            return {"X-Tag": "\u2603"}

        build = RouteBuild.sse("/s", handler, middlewares=(tag,))
        resp = await call(app_factory(build), "GET", "/s")
        assert resp.status_code == 500
        assert resp.headers["content-type"] == "application/json"
        assert resp.json() == "Something went wrong!"
        handler.assert_not_called()
