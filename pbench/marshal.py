"""Render arbitrary Python values as JSON-ready structures for log records."""

from __future__ import annotations

import dataclasses
import datetime as _dt
from collections.abc import Mapping
from typing import Any

DEFAULT_NESTED_LEVEL_LIMIT = 3
DEFAULT_FIELD_OR_ELEMENT_LIMIT = 15

_SEQUENCE_TYPES = (list, tuple, set, frozenset, bytes, bytearray)
_TIME_TYPES = (_dt.datetime, _dt.date, _dt.time)
_SKIP = object()


def to_snake_case(name: str) -> str:
    """Insert an underscore before every ASCII capital after the first and lower it."""
    out = []
    for position, char in enumerate(name):
        if "A" <= char <= "Z":
            if position > 0:
                out.append("_")
            out.append(char.lower())
        else:
            out.append(char)
    return "".join(out)


def _has_custom_str(value: Any) -> bool:
    return type(value).__str__ is not object.__str__


def _kind(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, BaseException):
        return "error"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, _TIME_TYPES):
        return "time"
    if isinstance(value, _dt.timedelta):
        return "duration"
    if isinstance(value, Mapping):
        return "map"
    if isinstance(value, _SEQUENCE_TYPES):
        return "array"
    if isinstance(value, type):
        return "stringer"
    if dataclasses.is_dataclass(value):
        return "struct"
    if _has_custom_str(value):
        return "stringer"
    if hasattr(value, "__dict__"):
        return "struct"
    return "stringer"


def _struct_fields(value: Any) -> list[tuple[str, Any]]:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
    return list(vars(value).items())


def _key_text(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)


def _placeholder(value: Any) -> str:
    return f"<{type(value).__name__} Value>"


def _duration_millis(value: _dt.timedelta) -> int:
    return value // _dt.timedelta(milliseconds=1)


class Marshaller:
    """Walks a value and produces nested dicts and lists, bounded in depth and width."""

    def __init__(
        self,
        obj: Any,
        nested_level_limit: int | None = None,
        field_or_element_limit: int | None = None,
        nested_level: int = 1,
    ) -> None:
        self.value = obj
        self.nested_level = nested_level
        self.nested_level_limit = (
            DEFAULT_NESTED_LEVEL_LIMIT if nested_level_limit is None else nested_level_limit
        )
        self.field_or_element_limit = (
            DEFAULT_FIELD_OR_ELEMENT_LIMIT
            if field_or_element_limit is None
            else field_or_element_limit
        )

    def nest(self) -> "Marshaller":
        """Move one nesting level deeper and return self."""
        self.nested_level += 1
        return self

    def _child(self, value: Any) -> "Marshaller":
        return Marshaller(
            value, self.nested_level_limit, self.field_or_element_limit, self.nested_level
        )

    def _too_deep(self) -> bool:
        return self.nested_level + 1 > self.nested_level_limit

    def as_object(self) -> dict[str, Any]:
        """Render the value as a JSON object."""
        kind = _kind(self.value)
        if kind == "map":
            return self._map_object()
        if kind == "struct":
            result: dict[str, Any] = {}
            for position, (name, item) in enumerate(_struct_fields(self.value)):
                if position >= self.field_or_element_limit:
                    result["..."] = "<field truncated>"
                    break
                self._put(result, to_snake_case(name), item)
            return result
        if kind == "array":
            return {"array": self.as_array()}
        if kind in ("string", "int", "float", "bool", "time", "duration", "error") or _has_custom_str(
            self.value
        ):
            text = str(self.value)
        else:
            text = repr(self.value)
        return {"kind": kind, "type": type(self.value).__qualname__, "value": text}

    def _map_object(self) -> dict[str, Any]:
        entries = {_key_text(key): item for key, item in self.value.items()}
        result: dict[str, Any] = {}
        for position, name in enumerate(sorted(entries)):
            if position >= self.field_or_element_limit:
                result["..."] = "<map truncated>"
                break
            self._put(result, to_snake_case(name), entries[name])
        return result

    def _put(self, result: dict[str, Any], name: str, value: Any) -> None:
        rendered = self._render_field(value)
        if rendered is not _SKIP:
            result[name] = rendered

    def _render_scalar(self, kind: str, value: Any) -> Any:
        if kind == "error":
            return str(value)
        if kind in ("bool", "int", "float", "string"):
            return value
        if kind == "time":
            return value.isoformat()
        if kind == "duration":
            return _duration_millis(value)
        return str(value)

    def _render_field(self, value: Any) -> Any:
        kind = _kind(value)
        if kind == "nil":
            return _SKIP
        if kind == "array":
            if self._too_deep():
                return _placeholder(value)
            return self._child(value).nest().as_array()
        if kind in ("map", "struct"):
            if self._too_deep():
                return _placeholder(value)
            return self._child(value).nest().as_object()
        return self._render_scalar(kind, value)

    def _render_element(self, value: Any) -> Any:
        kind = _kind(value)
        if kind == "nil":
            return _SKIP
        if kind == "array":
            return self._child(value).as_object()
        if kind in ("map", "struct"):
            if self._too_deep():
                return _placeholder(value)
            return self._child(value).nest().as_object()
        return self._render_scalar(kind, value)

    def as_array(self) -> list[Any]:
        """Render the value as a JSON array; non-sequences give an empty list."""
        if _kind(self.value) != "array":
            return []
        out: list[Any] = []
        for position, item in enumerate(self.value):
            if position >= self.field_or_element_limit:
                out.append("...")
                break
            rendered = self._render_element(item)
            if rendered is not _SKIP:
                out.append(rendered)
        return out