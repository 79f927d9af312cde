"""Stage outcomes — tagged success/failure results of lifecycle stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from fastapi_route_bridge.build import Middleware, RouteBuild


@dataclass(frozen=True, slots=True)
class Success:
    """Stage finished; carries headers and body (or an opened stream)."""

    headers: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    stream: Any = None


@dataclass(frozen=True, slots=True)
class Failure:
    """Stage raised; carries the causing error and the stage that raised it."""

    error: BaseException
    stage: RouteBuild | Middleware


Outcome = Union[Success, Failure]
