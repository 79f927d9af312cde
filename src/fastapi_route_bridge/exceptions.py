"""RouteException hierarchy for controlled failures and configuration defects."""

from __future__ import annotations

from collections.abc import Mapping


class RouteException(Exception):
    """Base for all route bridge exceptions."""


class RouteAbort(RouteException):
    """Controlled abort raised by a middleware or handler."""

    def __init__(
        self,
        detail: object,
        *,
        status_code: int = 400,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.headers = dict(headers or {})


class RouteConfigurationError(RouteException):
    """A route build cannot be registered."""


class UnknownEndpointKind(RouteConfigurationError):
    """Endpoint kind is neither single-response nor stream."""

    def __init__(self, kind: object) -> None:
        super().__init__(f"Unknown endpoint kind: {kind!r}")
        self.kind = kind

