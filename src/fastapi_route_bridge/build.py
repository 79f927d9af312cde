"""RouteBuild, Middleware and the request input handed to each stage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from fastapi_route_bridge._types import HttpHandler, MiddlewareCallback, StreamHandler
from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.exceptions import RouteConfigurationError, UnknownEndpointKind


class EndpointKind(Enum):
    """Shape of an endpoint's output."""

    HTTP = "http"
    SSE = "sse"

    @classmethod
    def coerce(cls, value: object) -> EndpointKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownEndpointKind(value) from None


@dataclass
class HttpOutput:
    """Headers and body returned by a handler or middleware."""

    headers: dict[str, Any] = field(default_factory=dict)
    body: Any = None

    @classmethod
    def coerce(cls, value: Any) -> HttpOutput:
        if isinstance(value, HttpOutput):
            return value
        return cls(body=value)


@dataclass
class RouteInput:
    """Request data captured before the first stage runs."""

    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    path: Any = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)


class Middleware(ABC):
    """Stage that runs before the handler and may contribute headers."""

    @property
    def ref(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def execute(
        self, ctx: RequestContext, input: RouteInput
    ) -> HttpOutput | None: ...


class FunctionMiddleware(Middleware):
    """Middleware backed by a plain coroutine function."""

    def __init__(self, func: MiddlewareCallback, *, name: str | None = None) -> None:
        self._func = func
        self._name = name or getattr(func, "__qualname__", repr(func))

    @property
    def ref(self) -> str:
        return self._name

    async def execute(
        self, ctx: RequestContext, input: RouteInput
    ) -> HttpOutput | None:
        result = await self._func(ctx, input)
        if result is None or isinstance(result, HttpOutput):
            return result
        if isinstance(result, Mapping):
            return HttpOutput(headers=dict(result))
        raise TypeError(
            f"Middleware {self._name!r} returned {type(result).__name__}, "
            "expected HttpOutput, a header mapping or None"
        )


def middleware(
    func: MiddlewareCallback | None = None, *, name: str | None = None
) -> Any:
    """Wrap a coroutine function as a Middleware. Usable bare or with ``name=``."""
    if func is None:
        return lambda f: FunctionMiddleware(f, name=name)
    return FunctionMiddleware(func, name=name)


@dataclass(frozen=True)
class RouteBuild:
    """Immutable descriptor of one endpoint."""

    paths: tuple[str, ...]
    methods: frozenset[str]
    endpoint: EndpointKind
    handler: HttpHandler | StreamHandler
    middlewares: tuple[Middleware, ...] = ()
    path_params: type[BaseModel] | None = None
    sort_key: int = 0
    name: str | None = None

    def __post_init__(self) -> None:
        paths = (self.paths,) if isinstance(self.paths, str) else tuple(self.paths)
        methods = _normalize_methods(self.methods)
        if not paths:
            raise RouteConfigurationError(f"Route {self.ref!r} declares no path")
        if not methods:
            raise RouteConfigurationError(f"Route {self.ref!r} declares no method")
        object.__setattr__(self, "paths", paths)
        object.__setattr__(self, "methods", methods)
        object.__setattr__(self, "endpoint", EndpointKind.coerce(self.endpoint))
        object.__setattr__(self, "middlewares", tuple(self.middlewares))

    @property
    def ref(self) -> str:
        if self.name:
            return self.name
        return getattr(self.handler, "__qualname__", repr(self.handler))

    @classmethod
    def http(
        cls, path: str | Iterable[str], handler: HttpHandler, **kwargs: Any
    ) -> RouteBuild:
        kwargs.setdefault("methods", {"get"})
        paths = (path,) if isinstance(path, str) else tuple(path)
        return cls(paths=paths, endpoint=EndpointKind.HTTP, handler=handler, **kwargs)

    @classmethod
    def sse(
        cls, path: str | Iterable[str], handler: StreamHandler, **kwargs: Any
    ) -> RouteBuild:
        kwargs.setdefault("methods", {"get"})
        paths = (path,) if isinstance(path, str) else tuple(path)
        return cls(paths=paths, endpoint=EndpointKind.SSE, handler=handler, **kwargs)


def _normalize_methods(methods: str | Iterable[str]) -> frozenset[str]:
    if isinstance(methods, str):
        methods = (methods,)
    return frozenset(m.lower() for m in methods)
