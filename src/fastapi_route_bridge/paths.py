"""Path template translation — brace templates to Starlette route paths."""

from __future__ import annotations

import hashlib
import re
from enum import Enum
from typing import Any, Literal, get_args, get_origin

from pydantic import BaseModel
from starlette.convertors import CONVERTOR_TYPES, Convertor, register_url_convertor

_PLACEHOLDER = re.compile(r"{([^}]+)}")


class EnumConvertor(Convertor[str]):
    """Matches exactly one of a fixed set of literal segment values."""

    def __init__(self, members: tuple[str, ...]) -> None:
        self.members = members
        self.regex = "(?:" + "|".join(re.escape(m) for m in members) + ")"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        value = str(value)
        if value not in self.members:
            raise ValueError(f"{value!r} is not one of {self.members!r}")
        return value


def _enum_members(annotation: Any) -> tuple[str, ...] | None:
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return tuple(str(member.value) for member in annotation)
    if get_origin(annotation) is Literal:
        return tuple(str(arg) for arg in get_args(annotation))
    return None


def _enum_key(members: tuple[str, ...]) -> str:
    digest = hashlib.sha1("\x00".join(members).encode()).hexdigest()[:16]
    return f"enum_{digest}"


def _param_suffix(name: str, params: type[BaseModel] | None) -> str:
    if params is None:
        return ""
    field = params.model_fields.get(name)
    if field is None:
        return ""
    members = _enum_members(field.annotation)
    if members:
        return ":" + _enum_key(members)
    if field.annotation is int:
        return ":int"
    return ""


def translate_path(template: str, params: type[BaseModel] | None = None) -> str:
    """Convert a ``{name}`` template into a Starlette route path.

    Enumeration-typed parameters (``Enum`` subclasses or ``Literal``) are
    constrained to their members through a generated convertor, ``int``
    parameters to digits. Everything else is an unconstrained segment.

    >>> translate_path("/users/{user_id}/devices/{device_id}")
    '/users/{user_id}/devices/{device_id}'
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        return "{" + name + _param_suffix(name, params) + "}"

    return _PLACEHOLDER.sub(_replace, template)


def path_convertors(
    template: str, params: type[BaseModel] | None = None
) -> dict[str, EnumConvertor]:
    """Return the enum convertors ``translate_path`` references for a template."""
    if params is None:
        return {}
    convertors: dict[str, EnumConvertor] = {}
    for name in _PLACEHOLDER.findall(template):
        field = params.model_fields.get(name)
        if field is None:
            continue
        members = _enum_members(field.annotation)
        if members:
            convertors[_enum_key(members)] = EnumConvertor(members)
    return convertors


def register_path_convertors(
    template: str, params: type[BaseModel] | None = None
) -> None:
    """Register the enum convertors a template needs with Starlette."""
    for key, convertor in path_convertors(template, params).items():
        if key not in CONVERTOR_TYPES:
            register_url_convertor(key, convertor)
