"""
Middleware chains and error handling with fastapi-route-bridge.

Demonstrates:
- Function and class middleware contributing response headers
- Aborting a request from middleware
- A custom error handler that maps domain errors to HTTP errors
"""

from fastapi import FastAPI, HTTPException

from fastapi_route_bridge import (
    Middleware,
    RouteAbort,
    RouteBuild,
    default_error_handler,
    middleware,
    serve,
)


class NotFound(Exception):
    pass


@middleware(name="require_token")
async def require_token(ctx, input):
    if input.headers.get("authorization") != "Bearer valid-token":
        raise RouteAbort(
            "Missing or invalid token",
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )
    ctx.set("user", "user123")
    return {"x-user": "user123"}


class RequestTag(Middleware):
    async def execute(self, ctx, input):
        return {"x-request-id": ctx.id}


async def get_order(ctx, input):
    if input.path["order_id"] != "42":
        raise NotFound(input.path["order_id"])
    return {"order": "42", "owner": ctx.get("user")}


def on_error(ctx, stage, error):
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=f"Order {error} not found")
    return default_error_handler(ctx, stage, error)


app = FastAPI(title="Middleware Example")
app.include_router(
    serve(
        [
            RouteBuild.http(
                "/orders/{order_id}",
                get_order,
                middlewares=(RequestTag(), require_token),
                name="get_order",
            )
        ],
        on_error=on_error,
    )
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl -i http://localhost:8000/orders/42
    # curl -i -H "Authorization: Bearer valid-token" http://localhost:8000/orders/42
    # curl -i -H "Authorization: Bearer valid-token" http://localhost:8000/orders/7
