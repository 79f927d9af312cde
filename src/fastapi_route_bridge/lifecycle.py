"""Lifecycle engine — drives one request from input capture to disposal."""

from __future__ import annotations

import inspect
import json
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any, Literal

import anyio
from starlette.requests import ClientDisconnect, Request

from fastapi_route_bridge._types import ErrorHandler, TraceCallback
from fastapi_route_bridge.build import HttpOutput, Middleware, RouteBuild, RouteInput
from fastapi_route_bridge.config import BridgeSettings
from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.errors import default_error_handler, normalize_error
from fastapi_route_bridge.exceptions import RouteAbort
from fastapi_route_bridge.headers import HeaderSet
from fastapi_route_bridge.outcome import Failure, Outcome, Success
from fastapi_route_bridge.response import is_json_media_type, send_response
from fastapi_route_bridge.stream import StreamCoordinator, open_source
from fastapi_route_bridge.trace import LifecycleTrace, TraceEntry
from fastapi_route_bridge.transport import Transport


class LifecycleState(Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    HANDLING = "handling"
    COMPLETED = "completed"
    FAILED = "failed"
    STREAMING = "streaming"
    STREAM_CLOSED = "stream_closed"
    STREAM_FAILED = "stream_failed"
    CANCELLED = "cancelled"
    DISPOSED = "disposed"


async def capture_input(request: Request, build: RouteBuild) -> RouteInput:
    """Read body, headers, path params and query into the initial stage input."""
    raw = await request.body()
    body: Any = None
    if raw:
        if is_json_media_type(request.headers.get("content-type", "")):
            try:
                body = json.loads(raw)
            except ValueError as exc:
                raise RouteAbort("Malformed JSON body", status_code=400) from exc
        else:
            body = raw

    query: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key not in query:
            query[key] = value
        elif isinstance(query[key], list):
            query[key].append(value)
        else:
            query[key] = [query[key], value]

    path: Any = dict(request.path_params)
    if build.path_params is not None:
        path = build.path_params.model_validate(path)

    return RouteInput(
        body=body, headers=dict(request.headers), path=path, query=query
    )


class Lifecycle(ABC):
    """State machine for one request.

    Middleware runs in declared order, then the handler. Cancellation is
    checked at the start of every stage and again before every write; a
    stage already in flight finishes but its result is not written.
    Subclasses supply the handling path for their endpoint kind.
    """

    def __init__(
        self,
        build: RouteBuild,
        ctx: RequestContext,
        transport: Transport,
        *,
        on_error: ErrorHandler = default_error_handler,
        settings: BridgeSettings,
        on_trace: TraceCallback | None = None,
    ) -> None:
        self.build = build
        self.ctx = ctx
        self.transport = transport
        self.headers = HeaderSet()
        self.state = LifecycleState.INITIALIZED
        self.stage_index = 0
        self._on_error = on_error
        self._settings = settings
        self._on_trace = on_trace
        self._trace = LifecycleTrace() if settings.debug else None
        self._started_at = time.perf_counter()

    def _transition(self, state: LifecycleState) -> None:
        if self.state is LifecycleState.DISPOSED:
            raise RuntimeError(f"Lifecycle of {self.build.ref!r} is already disposed")
        self.ctx.log(
            "lifecycle.transition",
            level="debug",
            source=self.state.value,
            target=state.value,
        )
        self.state = state

    async def run(self) -> None:
        self.ctx.log(
            "request.start",
            method=self.ctx.request.method,
            path=self.ctx.request.url.path,
        )
        try:
            try:
                route_input = await capture_input(self.ctx.request, self.build)
            except ClientDisconnect:
                self.ctx.cancel()
                self._cancel()
                return
            except Exception as exc:
                await self._fail(Failure(error=exc, stage=self.build))
                return

            async with anyio.create_task_group() as tg:
                tg.start_soon(self.transport.watch_disconnect)
                try:
                    await self._drive(route_input)
                finally:
                    tg.cancel_scope.cancel()
        finally:
            self._dispose()

    async def _drive(self, route_input: RouteInput) -> None:
        self._transition(LifecycleState.RUNNING)
        for index, stage in enumerate(self.build.middlewares):
            if self.ctx.cancelled:
                self._cancel()
                return
            self.stage_index = index
            outcome = await self._invoke(
                stage, "middleware", stage.execute, route_input
            )
            if isinstance(outcome, Failure):
                await self._fail(outcome)
                return
            self.headers.merge(outcome.headers)

        if self.ctx.cancelled:
            self._cancel()
            return
        self.stage_index = len(self.build.middlewares)
        self._transition(LifecycleState.HANDLING)
        await self._handle(route_input)

    @abstractmethod
    async def _handle(self, route_input: RouteInput) -> None:
        """Run the handler and write its result."""

    async def _invoke(
        self,
        stage: RouteBuild | Middleware,
        kind: Literal["middleware", "handler", "stream"],
        call: Callable[[RequestContext, RouteInput], Awaitable[Any]],
        route_input: RouteInput,
        *,
        stream: bool = False,
    ) -> Outcome:
        self.ctx.log("stage.start", level="debug", stage=stage.ref, kind=kind)
        started = time.perf_counter()
        try:
            result = await call(self.ctx, route_input)
        except Exception as exc:
            self._record(stage.ref, kind, started, "FAILED", reason=repr(exc))
            self.ctx.log(
                "stage.failed", level="warning", stage=stage.ref, error=repr(exc)
            )
            return Failure(error=exc, stage=stage)
        self._record(stage.ref, kind, started, "OK")
        if stream:
            return Success(stream=result)
        output = HttpOutput() if result is None else HttpOutput.coerce(result)
        return Success(headers=output.headers, body=output.body)

    async def _fail(self, failure: Failure) -> None:
        """Write the normalized error as an ordinary response."""
        self._transition(LifecycleState.FAILED)
        if self._trace is not None:
            self._trace.error = failure.error
        normalized = normalize_error(
            self.ctx,
            failure.stage,
            failure.error,
            self._on_error,
            fallback_message=self._settings.internal_error_message,
        )
        self.ctx.log(
            "request.failed",
            level="warning",
            stage=failure.stage.ref,
            status=normalized.status,
        )
        if self.ctx.cancelled:
            self._cancel()
            return
        await self.transport.respond(normalized.to_response())

    def _cancel(self) -> None:
        if self.state is not LifecycleState.CANCELLED:
            self._transition(LifecycleState.CANCELLED)

    def _record(
        self,
        stage_name: str,
        kind: Literal["middleware", "handler", "stream"],
        started: float,
        outcome: Literal["OK", "FAILED"],
        reason: str | None = None,
    ) -> None:
        if self._trace is None:
            return
        self._trace.entries.append(
            TraceEntry(
                stage_name=stage_name,
                kind=kind,
                duration_ms=(time.perf_counter() - started) * 1000,
                outcome=outcome,
                reason=reason,
            )
        )

    def _dispose(self) -> None:
        final = self.state
        self._transition(LifecycleState.DISPOSED)
        if self._trace is not None:
            self._trace.total_duration_ms = (
                time.perf_counter() - self._started_at
            ) * 1000
            if final is LifecycleState.CANCELLED:
                self._trace.outcome = "CANCELLED"
            elif final in (LifecycleState.FAILED, LifecycleState.STREAM_FAILED):
                self._trace.outcome = "FAILED"
            self.ctx.set("trace", self._trace)
            if self._on_trace is not None:
                try:
                    self._on_trace(self.ctx, self._trace)
                except Exception:
                    self.ctx.log("trace.callback_failed", level="exception")
        self.ctx.dispose()
        self.ctx.log("request.complete", outcome=final.value)


class HttpLifecycle(Lifecycle):
    """Single-response endpoints: one handler outcome, one terminal write."""

    async def _handle(self, route_input: RouteInput) -> None:
        outcome = await self._invoke(
            self.build, "handler", self.build.handler, route_input
        )
        if isinstance(outcome, Failure):
            await self._fail(outcome)
            return
        self.headers.merge(outcome.headers)
        if self.ctx.cancelled:
            self._cancel()
            return
        try:
            sent = await send_response(
                self.transport,
                self.headers,
                outcome.body,
                allow_origin=self._settings.allow_origin,
            )
        except Exception as exc:
            # rendering happens before the head is committed
            await self._fail(Failure(error=exc, stage=self.build))
            return
        if not sent:
            self._cancel()
            return
        self._transition(LifecycleState.COMPLETED)
        self.ctx.log("response.sent", status=200)


class StreamLifecycle(Lifecycle):
    """Stream endpoints: preamble first, then one event per produced item."""

    async def _handle(self, route_input: RouteInput) -> None:
        coordinator = StreamCoordinator(self.ctx, self.transport)
        try:
            await coordinator.open(
                self.headers, allow_origin=self._settings.allow_origin
            )
        except Exception as exc:
            await self._fail(Failure(error=exc, stage=self.build))
            return
        self._transition(LifecycleState.STREAMING)

        outcome = await self._invoke(
            self.build, "handler", self._open_stream, route_input, stream=True
        )
        if isinstance(outcome, Failure):
            await self._fail_stream(coordinator, outcome)
            return

        started = time.perf_counter()
        try:
            await coordinator.pump(outcome.stream)
        except Exception as exc:
            self._record(
                self.build.ref, "stream", started, "FAILED", reason=repr(exc)
            )
            await self._fail_stream(
                coordinator, Failure(error=exc, stage=self.build)
            )
            return
        self._record(self.build.ref, "stream", started, "OK")

        if self.ctx.cancelled:
            self._cancel()
            return
        await coordinator.close()
        self._transition(LifecycleState.STREAM_CLOSED)
        self.ctx.log("stream.closed", frames=coordinator.frames)

    async def _open_stream(
        self, ctx: RequestContext, route_input: RouteInput
    ) -> AsyncIterator[Any]:
        source = self.build.handler(ctx, route_input)
        if inspect.isawaitable(source):
            source = await source
        return open_source(source)

    async def _fail_stream(
        self, coordinator: StreamCoordinator, failure: Failure
    ) -> None:
        """Headers are committed, so the error goes out as a trailing event."""
        self._transition(LifecycleState.STREAM_FAILED)
        if self._trace is not None:
            self._trace.error = failure.error
        normalized = normalize_error(
            self.ctx,
            failure.stage,
            failure.error,
            self._on_error,
            fallback_message=self._settings.internal_error_message,
        )
        self.ctx.log(
            "stream.failed",
            level="warning",
            stage=failure.stage.ref,
            status=normalized.status,
        )
        if self.ctx.cancelled:
            self._cancel()
            return
        await coordinator.fail(normalized.body)
