"""HeaderSet — response headers accumulated across lifecycle stages."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from fastapi_route_bridge._types import HeaderValue


def _coerce(value: Any) -> HeaderValue:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return str(value)


class HeaderSet:
    """Case-insensitive header mapping that remembers which names were set.

    A later write for the same name replaces the earlier value. Once frozen
    (the response head is on the wire) further writes are silently dropped.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, HeaderValue]] = {}
        self._frozen = False

    def set(self, name: str, value: Any) -> bool:
        if self._frozen:
            return False
        self._entries[name.lower()] = (name, _coerce(value))
        return True

    def merge(self, headers: Mapping[str, Any] | None) -> None:
        for name, value in (headers or {}).items():
            self.set(name, value)

    def get(self, name: str, default: HeaderValue | None = None) -> HeaderValue | None:
        entry = self._entries.get(name.lower())
        return entry[1] if entry is not None else default

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        """Header names in the order they were first set."""
        return [name for name, _ in self._entries.values()]

    def items(self) -> Iterator[tuple[str, HeaderValue]]:
        yield from self._entries.values()

    def to_dict(self) -> dict[str, HeaderValue]:
        return dict(self._entries.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"HeaderSet({self.to_dict()!r})"
