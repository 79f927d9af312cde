"""Tests for RouteBuild, EndpointKind, HttpOutput and middleware wrappers."""

from __future__ import annotations

from typing import Any

import pytest

from fastapi_route_bridge.build import (
    EndpointKind,
    FunctionMiddleware,
    HttpOutput,
    Middleware,
    RouteBuild,
    RouteInput,
    middleware,
)
from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.exceptions import (
    RouteConfigurationError,
    UnknownEndpointKind,
)


async def _handler(ctx: RequestContext, input: RouteInput) -> Any:
    return None


class TestEndpointKind:
    def test_coerce_from_value(self) -> None:
        assert EndpointKind.coerce("http") is EndpointKind.HTTP
        assert EndpointKind.coerce("sse") is EndpointKind.SSE

    def test_coerce_unknown_raises(self) -> None:
        with pytest.raises(UnknownEndpointKind) as exc_info:
            EndpointKind.coerce("websocket")
        assert exc_info.value.kind == "websocket"


class TestRouteBuild:
    def test_http_factory_defaults(self) -> None:
        build = RouteBuild.http("/health", _handler)
        assert build.paths == ("/health",)
        assert build.methods == frozenset({"get"})
        assert build.endpoint is EndpointKind.HTTP
        assert build.middlewares == ()

    def test_sse_factory(self) -> None:
        build = RouteBuild.sse(["/a", "/b"], _handler, methods={"POST"})
        assert build.paths == ("/a", "/b")
        assert build.methods == frozenset({"post"})
        assert build.endpoint is EndpointKind.SSE

    def test_kind_string_is_coerced(self) -> None:
        build = RouteBuild(
            paths=("/x",),
            methods=frozenset({"get"}),
            endpoint="sse",  # type: ignore[arg-type]
            handler=_handler,
        )
        assert build.endpoint is EndpointKind.SSE

    def test_unknown_kind_rejected_at_construction(self) -> None:
        with pytest.raises(UnknownEndpointKind):
            RouteBuild(
                paths=("/x",),
                methods=frozenset({"get"}),
                endpoint="rpc",  # type: ignore[arg-type]
                handler=_handler,
            )

    def test_no_path_rejected(self) -> None:
        with pytest.raises(RouteConfigurationError):
            RouteBuild.http([], _handler)

    def test_no_method_rejected(self) -> None:
        with pytest.raises(RouteConfigurationError):
            RouteBuild.http("/x", _handler, methods=set())

    def test_ref_defaults_to_handler_name(self) -> None:
        assert RouteBuild.http("/x", _handler).ref == "_handler"

    def test_ref_uses_explicit_name(self) -> None:
        assert RouteBuild.http("/x", _handler, name="health").ref == "health"

    def test_is_immutable(self) -> None:
        build = RouteBuild.http("/x", _handler)
        with pytest.raises(AttributeError):
            build.sort_key = 3  # type: ignore[misc]


class TestHttpOutput:
    def test_coerce_passes_output_through(self) -> None:
        output = HttpOutput(headers={"a": "1"}, body=2)
        assert HttpOutput.coerce(output) is output

    def test_coerce_wraps_plain_value_as_body(self) -> None:
        output = HttpOutput.coerce({"a": 1})
        assert output.body == {"a": 1}
        assert output.headers == {}


class TestMiddleware:
    async def test_decorator_wraps_function(self, make_request: Any) -> None:
        @middleware
        async def add_header(ctx: RequestContext, input: RouteInput) -> Any:
            return {"x-added": "1"}

        assert isinstance(add_header, FunctionMiddleware)
        assert add_header.ref.endswith("add_header")
        ctx = RequestContext(request=make_request())
        output = await add_header.execute(ctx, RouteInput())
        assert output == HttpOutput(headers={"x-added": "1"})

    async def test_decorator_with_name(self, make_request: Any) -> None:
        @middleware(name="auth")
        async def check(ctx: RequestContext, input: RouteInput) -> None:
            return None

        assert check.ref == "auth"
        ctx = RequestContext(request=make_request())
        assert await check.execute(ctx, RouteInput()) is None

    async def test_invalid_return_raises(self, make_request: Any) -> None:
        bad = FunctionMiddleware(_bad_middleware)
        with pytest.raises(TypeError):
            await bad.execute(RequestContext(request=make_request()), RouteInput())

    def test_subclass_ref_is_class_name(self) -> None:
        class Audit(Middleware):
            async def execute(
                self, ctx: RequestContext, input: RouteInput
            ) -> HttpOutput | None:
                return None

        assert Audit().ref == "Audit"


async def _bad_middleware(ctx: RequestContext, input: RouteInput) -> Any:
    return 42
