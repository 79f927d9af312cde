"""Response materialization for single-response endpoints."""

from __future__ import annotations

import json
from typing import Any

from fastapi.encoders import jsonable_encoder
from starlette.responses import Response

from fastapi_route_bridge.headers import HeaderSet
from fastapi_route_bridge.transport import Transport

JSON_MEDIA_TYPE = "application/json"


def render_json(value: Any) -> bytes:
    """Compact JSON, rendered the way Starlette's JSONResponse does."""
    return json.dumps(
        jsonable_encoder(value),
        ensure_ascii=False,
        allow_nan=False,
        indent=None,
        separators=(",", ":"),
    ).encode("utf-8")


def is_json_media_type(content_type: str) -> bool:
    return content_type.split(";", 1)[0].strip().lower() == JSON_MEDIA_TYPE


def _raw_body(body: Any) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return render_json(body)


def apply_headers(response: Response, headers: HeaderSet) -> None:
    for name, value in headers.items():
        if isinstance(value, list):
            del response.headers[name]
            for item in value:
                response.headers.append(name, item)
        else:
            response.headers[name] = value


def render_response(
    headers: HeaderSet, body: Any, *, allow_origin: str = "*"
) -> Response:
    """Build the terminal success response.

    Headers set during the lifecycle are listed in
    ``Access-Control-Expose-Headers`` in the order they were first set.
    """
    exposed = headers.names()
    headers.set("Access-Control-Allow-Origin", allow_origin)
    if exposed:
        headers.set("Access-Control-Expose-Headers", ", ".join(exposed))

    if body is None:
        response = Response(status_code=200)
    else:
        content_type = headers.get("content-type")
        if isinstance(content_type, list):
            content_type = content_type[0] if content_type else None
        if content_type and not is_json_media_type(content_type):
            response = Response(content=_raw_body(body), status_code=200)
        else:
            response = Response(
                content=render_json(body),
                status_code=200,
                media_type=JSON_MEDIA_TYPE,
            )
    apply_headers(response, headers)
    return response


async def send_response(
    transport: Transport, headers: HeaderSet, body: Any, *, allow_origin: str = "*"
) -> bool:
    """Materialize and write the terminal response. ``False`` if dropped."""
    if not transport.writable:
        return False
    response = render_response(headers, body, allow_origin=allow_origin)
    headers.freeze()
    return await transport.respond(response)
