"""RequestContext — per-request state container."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import anyio
from starlette.requests import Request

from fastapi_route_bridge.logging import get_logger


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class RequestContext:
    """Per-request state owned by the lifecycle engine.

    The cancellation flag flips once, from ``False`` to ``True``, when the
    client disconnects. Every transport write checks it first.
    """

    request: Request
    id: str = field(default_factory=_new_id)
    ref: str = ""
    state: dict[str, Any] = field(default_factory=dict)
    _cancelled: bool = field(default=False, init=False, repr=False)
    _disposed: bool = field(default=False, init=False, repr=False)
    _scopes: set[anyio.CancelScope] = field(
        default_factory=set, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._log = get_logger("fastapi_route_bridge.request").bind(
            context_id=self.id, route=self.ref
        )

    @classmethod
    def for_request(cls, request: Request, ref: str = "") -> RequestContext:
        """Create a context, reusing an id an upstream stage stored on the request."""
        context_id = getattr(request.state, "context_id", None) or _new_id()
        request.state.context_id = context_id
        return cls(request=request, id=context_id, ref=ref)

    def get(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.state[key] = value

    def log(self, event: str, *, level: str = "info", **fields: Any) -> None:
        getattr(self._log, level)(event, **fields)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def disposed(self) -> bool:
        return self._disposed

    def cancel(self) -> bool:
        """Mark the client as gone. Returns ``False`` if it already was."""
        if self._cancelled:
            return False
        self._cancelled = True
        for scope in list(self._scopes):
            scope.cancel()
        return True

    @contextmanager
    def interruptible(self) -> Iterator[anyio.CancelScope]:
        """Cancel scope that is cancelled as soon as the client disconnects."""
        with anyio.CancelScope() as scope:
            if self._cancelled:
                scope.cancel()
            self._scopes.add(scope)
            try:
                yield scope
            finally:
                self._scopes.discard(scope)

    def dispose(self) -> None:
        """Drop the cancel scopes held by the context. Performs no transport I/O."""
        if self._disposed:
            return
        self._disposed = True
        self._scopes.clear()


def get_request(ctx: RequestContext) -> Request:
    """Return the Starlette request a context is bound to."""
    return ctx.request
