"""Shared type aliases and protocols."""

from __future__ import annotations

from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, Union

from starlette.exceptions import HTTPException

if TYPE_CHECKING:
    from fastapi_route_bridge.build import Middleware, RouteBuild, RouteInput
    from fastapi_route_bridge.context import RequestContext
    from fastapi_route_bridge.trace import LifecycleTrace

# Header values are either a single string or repeated header lines
HeaderValue = Union[str, list[str]]

HttpHandler = Callable[["RequestContext", "RouteInput"], Awaitable[Any]]
StreamSource = Union[AsyncIterable[Any], Iterable[Any]]
StreamHandler = Callable[
    ["RequestContext", "RouteInput"], Union[StreamSource, Awaitable[StreamSource]]
]
MiddlewareCallback = Callable[["RequestContext", "RouteInput"], Awaitable[Any]]

ErrorHandler = Callable[
    ["RequestContext | None", "RouteBuild | Middleware", BaseException],
    HTTPException,
]
TraceCallback = Callable[["RequestContext", "LifecycleTrace"], None]
