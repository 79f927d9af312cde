"""Stream coordination for server-sent event endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Any

from starlette.concurrency import iterate_in_threadpool

from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.headers import HeaderSet
from fastapi_route_bridge.response import render_json
from fastapi_route_bridge.transport import Transport


def format_event(item: Any) -> bytes:
    return b"data: " + render_json(item) + b"\n\n"


def open_source(source: Any) -> AsyncIterator[Any]:
    """Return an async iterator over a handler's output sequence."""
    if isinstance(source, AsyncIterable):
        return source.__aiter__()
    if isinstance(source, Iterable) and not isinstance(source, (str, bytes, dict)):
        return iterate_in_threadpool(iter(source))
    raise TypeError(
        f"Stream handler returned {type(source).__name__}, expected an iterable"
    )


async def _aclose(iterator: AsyncIterator[Any]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


class StreamCoordinator:
    """Writes one framed event per produced item."""

    def __init__(self, ctx: RequestContext, transport: Transport) -> None:
        self._ctx = ctx
        self._transport = transport
        self.frames = 0

    async def open(self, headers: HeaderSet, *, allow_origin: str = "*") -> bool:
        """Send the event-stream preamble before any item is produced."""
        headers.set("Cache-Control", "no-cache")
        headers.set("Content-Type", "text/event-stream")
        headers.set("Access-Control-Allow-Origin", allow_origin)
        headers.set("Connection", "keep-alive")
        # ASGI servers put the head on the wire as soon as they get it
        return await self._transport.start(200, headers)

    async def pump(self, iterator: AsyncIterator[Any]) -> None:
        """Forward items until the sequence ends or the client goes away.

        Producer errors propagate to the caller after the iterator is closed.
        """
        try:
            while not self._ctx.cancelled:
                try:
                    with self._ctx.interruptible():
                        item = await iterator.__anext__()
                except StopAsyncIteration:
                    return
                if self._ctx.cancelled:
                    return
                if await self._transport.write(format_event(item)):
                    self.frames += 1
        finally:
            await _aclose(iterator)

    async def close(self) -> bool:
        return await self._transport.finish()

    async def fail(self, body: Any) -> bool:
        """Write one trailing event carrying ``body`` and close the stream."""
        if not await self._transport.write(format_event(body)):
            return False
        return await self._transport.finish()
