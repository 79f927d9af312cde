"""Transport — guarded ASGI writes and client disconnect detection."""

from __future__ import annotations

from starlette.responses import Response
from starlette.types import Message, Receive, Send

from fastapi_route_bridge.context import RequestContext
from fastapi_route_bridge.headers import HeaderSet


def _raw_headers(headers: HeaderSet) -> list[tuple[bytes, bytes]]:
    raw: list[tuple[bytes, bytes]] = []
    for name, value in headers.items():
        values = value if isinstance(value, list) else [value]
        for item in values:
            raw.append((name.lower().encode("latin-1"), item.encode("latin-1")))
    return raw


class Transport:
    """Wraps ASGI ``receive``/``send`` for one request.

    Every write checks the cancellation flag and the terminal-state guard
    first. Writes after either are dropped and reported as ``False``.
    """

    def __init__(self, ctx: RequestContext, receive: Receive, send: Send) -> None:
        self._ctx = ctx
        self._receive = receive
        self._send = send
        self.started = False
        self.finished = False

    @property
    def writable(self) -> bool:
        return not (self._ctx.cancelled or self.finished)

    async def watch_disconnect(self) -> None:
        """Wait for ``http.disconnect`` and flag the context as cancelled."""
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                if self._ctx.cancel() and not self.finished:
                    self._ctx.log("request.cancelled", reason="client_disconnect")
                return

    async def _emit(self, message: Message) -> bool:
        try:
            await self._send(message)
        except OSError:
            self._ctx.cancel()
            self._ctx.log("request.cancelled", reason="send_failed")
            return False
        return True

    async def start(self, status: int, headers: HeaderSet) -> bool:
        """Commit the status line and headers."""
        if not self.writable or self.started:
            return False
        raw = _raw_headers(headers)
        headers.freeze()
        self.started = True
        return await self._emit(
            {"type": "http.response.start", "status": status, "headers": raw}
        )

    async def write(self, chunk: bytes) -> bool:
        if not self.writable or not self.started:
            return False
        return await self._emit(
            {"type": "http.response.body", "body": chunk, "more_body": True}
        )

    async def finish(self, chunk: bytes = b"") -> bool:
        if not self.writable or not self.started:
            return False
        self.finished = True
        return await self._emit(
            {"type": "http.response.body", "body": chunk, "more_body": False}
        )

    async def respond(self, response: Response) -> bool:
        """Write a complete Starlette response as the terminal write."""
        if not self.writable or self.started:
            return False
        self.started = True
        self.finished = True
        sent = await self._emit(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": response.raw_headers,
            }
        )
        if not sent:
            return False
        return await self._emit(
            {"type": "http.response.body", "body": response.body, "more_body": False}
        )
