"""FastAPI Route Bridge - serve transport-agnostic route builds over ASGI."""

from fastapi_route_bridge.build import (
    EndpointKind,
    FunctionMiddleware,
    HttpOutput,
    Middleware,
    RouteBuild,
    RouteInput,
    middleware,
)
from fastapi_route_bridge.config import BridgeSettings, get_settings, reset_settings
from fastapi_route_bridge.context import RequestContext, get_request
from fastapi_route_bridge.errors import (
    NormalizedError,
    default_error_handler,
    normalize_error,
)
from fastapi_route_bridge.exceptions import (
    RouteAbort,
    RouteConfigurationError,
    RouteException,
    UnknownEndpointKind,
)
from fastapi_route_bridge.headers import HeaderSet
from fastapi_route_bridge.lifecycle import LifecycleState
from fastapi_route_bridge.logging import configure_logging
from fastapi_route_bridge.paths import translate_path
from fastapi_route_bridge.router import build_handler, serve
from fastapi_route_bridge.trace import LifecycleTrace, TraceEntry

__all__ = [
    "BridgeSettings",
    "EndpointKind",
    "FunctionMiddleware",
    "HeaderSet",
    "HttpOutput",
    "LifecycleState",
    "LifecycleTrace",
    "Middleware",
    "NormalizedError",
    "RequestContext",
    "RouteAbort",
    "RouteBuild",
    "RouteConfigurationError",
    "RouteException",
    "RouteInput",
    "TraceEntry",
    "UnknownEndpointKind",
    "build_handler",
    "configure_logging",
    "default_error_handler",
    "get_request",
    "get_settings",
    "middleware",
    "normalize_error",
    "reset_settings",
    "serve",
    "translate_path",
]
