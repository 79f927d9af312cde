"""serve() and build_handler() — register route builds on a FastAPI router."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from typing import ClassVar

from fastapi import APIRouter
from starlette.requests import Request
from starlette.types import Receive, Scope, Send

from fastapi_route_bridge._types import ErrorHandler, TraceCallback
from fastapi_route_bridge.build import EndpointKind, RouteBuild
from fastapi_route_bridge.config import BridgeSettings, get_settings
from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.errors import default_error_handler
from fastapi_route_bridge.exceptions import UnknownEndpointKind
from fastapi_route_bridge.lifecycle import HttpLifecycle, Lifecycle, StreamLifecycle
from fastapi_route_bridge.paths import register_path_convertors, translate_path
from fastapi_route_bridge.transport import Transport


class RouteEndpoint:
    """ASGI application serving one route build."""

    lifecycle_class: ClassVar[type[Lifecycle]]

    def __init__(
        self,
        build: RouteBuild,
        on_error: ErrorHandler = default_error_handler,
        *,
        settings: BridgeSettings | None = None,
        on_trace: TraceCallback | None = None,
    ) -> None:
        self.build = build
        self.on_error = on_error
        self.settings = settings or get_settings()
        self.on_trace = on_trace

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        ctx = RequestContext.for_request(request, ref=self.build.ref)
        lifecycle = self.lifecycle_class(
            self.build,
            ctx,
            Transport(ctx, receive, send),
            on_error=self.on_error,
            settings=self.settings,
            on_trace=self.on_trace,
        )
        await lifecycle.run()


class HttpEndpoint(RouteEndpoint):
    lifecycle_class = HttpLifecycle


class SseEndpoint(RouteEndpoint):
    lifecycle_class = StreamLifecycle


_ENDPOINT_CLASSES: dict[EndpointKind, type[RouteEndpoint]] = {
    EndpointKind.HTTP: HttpEndpoint,
    EndpointKind.SSE: SseEndpoint,
}


def build_handler(
    build: RouteBuild,
    on_error: ErrorHandler = default_error_handler,
    *,
    settings: BridgeSettings | None = None,
    on_trace: TraceCallback | None = None,
) -> RouteEndpoint:
    """Return the ASGI endpoint for a route build.

    The endpoint kind is resolved here, once, so an unknown kind fails at
    registration rather than on the first request.
    """
    endpoint_class = _ENDPOINT_CLASSES.get(build.endpoint)
    if endpoint_class is None:
        raise UnknownEndpointKind(build.endpoint)
    return endpoint_class(build, on_error, settings=settings, on_trace=on_trace)


def _collect(
    builds: Mapping[str, RouteBuild] | Iterable[RouteBuild],
) -> list[RouteBuild]:
    if isinstance(builds, Mapping):
        return [
            build if build.name else dataclasses.replace(build, name=key)
            for key, build in builds.items()
        ]
    return list(builds)


def serve(
    builds: Mapping[str, RouteBuild] | Iterable[RouteBuild],
    on_error: ErrorHandler = default_error_handler,
    *,
    settings: BridgeSettings | None = None,
    on_trace: TraceCallback | None = None,
) -> APIRouter:
    """Create a router serving every route build.

    Mapping keys name builds that carry no name of their own. Builds are
    registered ordered by ``sort_key`` and then name.

    Example::

        app = FastAPI()
        app.include_router(serve({"get_profile": profile_route}), prefix="/v1")
    """
    settings = settings or get_settings()
    router = APIRouter()
    for build in sorted(_collect(builds), key=lambda b: (b.sort_key, b.ref)):
        endpoint = build_handler(
            build, on_error, settings=settings, on_trace=on_trace
        )
        methods = sorted(m.upper() for m in build.methods)
        for template in build.paths:
            register_path_convertors(template, build.path_params)
            router.add_route(
                translate_path(template, build.path_params),
                endpoint,
                methods=methods,
                name=build.ref,
                include_in_schema=False,
            )
    return router
