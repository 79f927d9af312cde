"""
Basic usage example of fastapi-route-bridge.

Demonstrates:
- Declaring single-response and stream route builds
- Typed path parameters (int and enum)
- Serving a bundle of builds on a FastAPI app
"""

from enum import Enum

from fastapi import FastAPI
from pydantic import BaseModel

from fastapi_route_bridge import HttpOutput, RouteBuild, configure_logging, serve


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"


class PaintParams(BaseModel):
    item_id: int
    color: Color


async def health(ctx, input):
    """No body means an empty 200."""
    return None


async def paint(ctx, input):
    return HttpOutput(
        headers={"x-painted": input.path.color.value},
        body={"item": input.path.item_id, "color": input.path.color},
    )


async def countdown(ctx, input):
    for n in range(int(input.query.get("from", 3)), 0, -1):
        yield {"remaining": n}


configure_logging()

app = FastAPI(title="Route Bridge Example")
app.include_router(
    serve(
        {
            "health": RouteBuild.http("/health", health),
            "paint": RouteBuild.http(
                "/items/{item_id}/{color}",
                paint,
                methods={"get", "post"},
                path_params=PaintParams,
            ),
            "countdown": RouteBuild.sse("/countdown", countdown),
        }
    )
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl -i http://localhost:8000/health
    # curl -i http://localhost:8000/items/7/red
    # curl -i http://localhost:8000/items/7/green   (404, not a member)
    # curl -N http://localhost:8000/countdown?from=5
