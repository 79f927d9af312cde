"""Shared pytest fixtures for fastapi-route-bridge tests."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import anyio
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from starlette.types import Message

from fastapi_route_bridge.build import RouteBuild
from fastapi_route_bridge.config import BridgeSettings, reset_settings
from fastapi_route_bridge.router import serve


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings(debug=True)


def make_scope(
    method: str = "GET",
    path: str = "/",
    headers: dict[str, str] | None = None,
    query_string: str = "",
    path_params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query_string.encode(),
        "headers": [
            (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
        ],
        "root_path": "",
        "path_params": path_params or {},
    }


@pytest.fixture
def make_request() -> Any:
    """Factory for creating Starlette Request objects."""

    def _make(**kwargs: Any) -> Request:
        return Request(make_scope(**kwargs))

    return _make


class FakeClient:
    """Hand-driven ASGI peer: records sent messages, disconnects on demand."""

    def __init__(self, body: bytes = b"", *, disconnect_after: int | None = None):
        self.body = body
        self.messages: list[Message] = []
        self._disconnect_after = disconnect_after
        self._body_sent = False
        self._disconnected = anyio.Event()

    async def receive(self) -> Message:
        if not self._body_sent:
            self._body_sent = True
            return {"type": "http.request", "body": self.body, "more_body": False}
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def send(self, message: Message) -> None:
        self.messages.append(message)
        if (
            self._disconnect_after is not None
            and len(self.frames) >= self._disconnect_after
        ):
            self.disconnect()

    def disconnect(self) -> None:
        self._disconnected.set()

    @property
    def start(self) -> Message | None:
        for message in self.messages:
            if message["type"] == "http.response.start":
                return message
        return None

    @property
    def frames(self) -> list[bytes]:
        return [
            m["body"]
            for m in self.messages
            if m["type"] == "http.response.body" and m["body"]
        ]

    @property
    def closed(self) -> bool:
        return any(
            m["type"] == "http.response.body" and not m.get("more_body", False)
            for m in self.messages
        )

    def header(self, name: str) -> str | None:
        start = self.start
        if start is None:
            return None
        for key, value in start["headers"]:
            if key.decode() == name.lower():
                return value.decode()
        return None


async def wait_cancelled(ctx: Any) -> None:
    while not ctx.cancelled:
        await anyio.sleep(0)


def make_app(*builds: RouteBuild, **kwargs: Any) -> FastAPI:
    app = FastAPI()
    app.include_router(serve(builds, **kwargs))
    return app


async def request(app: FastAPI, method: str, path: str, **kwargs: Any) -> Any:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, path, **kwargs)


@pytest.fixture
def fake_client() -> type[FakeClient]:
    return FakeClient


@pytest.fixture
def scope_factory() -> Any:
    return make_scope


@pytest.fixture
def until_cancelled() -> Any:
    return wait_cancelled


@pytest.fixture
def app_factory() -> Any:
    return make_app


@pytest.fixture
def call() -> Any:
    """Send one request through httpx's ASGI transport."""
    return request
