"""Error normalization — turns stage failures into transport error output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from fastapi_route_bridge._types import ErrorHandler
from fastapi_route_bridge.exceptions import RouteAbort
from fastapi_route_bridge.logging import get_logger
from fastapi_route_bridge.response import JSON_MEDIA_TYPE, render_json

if TYPE_CHECKING:
    from fastapi_route_bridge.build import Middleware, RouteBuild
    from fastapi_route_bridge.context import RequestContext

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong!"


@dataclass(frozen=True)
class NormalizedError:
    """Structured error output: status, headers and a JSON-able body."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def to_response(self) -> Response:
        response = Response(
            content=render_json(self.body),
            status_code=self.status,
            media_type=JSON_MEDIA_TYPE,
        )
        for name, value in self.headers.items():
            response.headers[name] = value
        return response


def default_error_handler(
    ctx: RequestContext | None,
    stage: RouteBuild | Middleware,
    error: BaseException,
) -> StarletteHTTPException:
    """Map stage failures to HTTP errors.

    ``HTTPException`` passes through, ``RouteAbort`` keeps its status and
    detail, pydantic validation errors become 422. Anything else is logged
    and hidden behind a generic 500.
    """
    if isinstance(error, StarletteHTTPException):
        return error
    if isinstance(error, RouteAbort):
        return HTTPException(
            status_code=error.status_code,
            detail=error.detail,
            headers=error.headers or None,
        )
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=422,
            detail=jsonable_encoder(
                error.errors(include_url=False, include_context=False)
            ),
        )
    if ctx is not None:
        ctx.log("request.error", level="error", stage=stage.ref, error=repr(error))
    else:
        logger.error("request.error", stage=stage.ref, error=repr(error))
    return HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)


def normalize_error(
    ctx: RequestContext | None,
    stage: RouteBuild | Middleware,
    error: BaseException,
    on_error: ErrorHandler = default_error_handler,
    *,
    fallback_message: str = "Internal Server Error",
) -> NormalizedError:
    """Run the error handler and shape its result. Never raises."""
    try:
        exc = on_error(ctx, stage, error)
        if not isinstance(exc, StarletteHTTPException):
            raise TypeError(
                f"Error handler returned {type(exc).__name__}, expected HTTPException"
            )
        normalized = NormalizedError(
            status=exc.status_code,
            headers={str(k): str(v) for k, v in (exc.headers or {}).items()},
            body=exc.detail,
        )
        render_json(normalized.body)
    except Exception:
        logger.exception("error_handler.failed", stage=stage.ref)
        return NormalizedError(status=500, body=fallback_message)
    return normalized
