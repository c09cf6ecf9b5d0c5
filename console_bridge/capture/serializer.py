"""Bounded, cycle-safe serialization of console argument values.

This module provides the ValueSerializer that converts any runtime value
into a SerializedValue tree. Serialization is total: it never raises, it
always terminates, and the result holds no reference back to the input.
Every container is bounded by SerializerLimits so that huge, deep or cyclic
inputs still produce a small, fully owned result.
"""

import array
import collections
import dataclasses
import enum
import functools
import inspect
import logging
import math
import re
import traceback
import weakref
from collections.abc import Mapping
from datetime import date, datetime
from itertools import islice
from typing import Any, Dict, Iterable, List, Optional, Tuple
from xml.etree.ElementTree import Element

from pydantic import BaseModel, Field

from ..models.runtime import UNDEFINED
from ..models.serialized import (
    ArrayBufferValue,
    ArrayValue,
    BigIntValue,
    BooleanValue,
    CircularValue,
    DateValue,
    DomValue,
    ErrorValue,
    FunctionValue,
    MapEntry,
    MapValue,
    MaxDepthValue,
    NullValue,
    NumberValue,
    ObjectValue,
    OpaqueValue,
    RegExpValue,
    SerializedValue,
    SetValue,
    StringValue,
    SymbolValue,
    TypedArrayValue,
    UndefinedValue,
    UnknownValue,
)

logger = logging.getLogger(__name__)

# Largest integer a page runtime can hold exactly as a plain number
MAX_SAFE_INTEGER = 2 ** 53 - 1

_REGEX_FLAGS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)

# id(obj) -> (path of first occurrence, obj); holding obj keeps ids stable
Visited = Dict[int, Tuple[str, Any]]


class SerializerLimits(BaseModel):
    """Resource ceilings applied while serializing one argument."""

    max_depth: int = Field(default=10, ge=1, description="Maximum container nesting")
    max_string_length: int = Field(default=10240, ge=0, description="Maximum string length")
    max_object_keys: int = Field(default=1000, ge=0, description="Maximum object fields")
    max_array_length: int = Field(default=1000, ge=0, description="Maximum array items")
    max_map_entries: int = Field(default=100, ge=0, description="Maximum map entries")
    max_set_values: int = Field(default=100, ge=0, description="Maximum set values")


class ValueSerializer:
    """Converts runtime values into bounded SerializedValue trees."""

    def __init__(self, limits: Optional[SerializerLimits] = None):
        """Initialize serializer.

        Args:
            limits: Resource ceilings, defaults to the reference limits
        """
        self.limits = limits or SerializerLimits()

    def serialize(
        self,
        value: Any,
        depth: int = 0,
        visited: Optional[Visited] = None,
        path: str = "root"
    ) -> SerializedValue:
        """Serialize one value.

        The ``visited`` table is threaded through every recursive call and
        scoped to this top-level invocation, so self references anywhere in
        the value's graph are caught while separate calls stay independent.

        Args:
            value: Any runtime value
            depth: Starting nesting depth
            visited: Cycle tracking table, fresh when omitted
            path: Display path of ``value``

        Returns:
            Serialized representation, never raises
        """
        if visited is None:
            visited = {}
        try:
            return self._serialize(value, depth, visited, path)
        except Exception as e:
            logger.debug(f"Falling back to unknown for value at {path}: {e}")
            return UnknownValue(stringified=self._stringify(value))

    def serialize_arguments(self, args: Iterable[Any]) -> List[SerializedValue]:
        """Serialize console arguments, each with its own cycle table."""
        return [self.serialize(arg) for arg in args]

    def _serialize(self, value: Any, depth: int, visited: Visited, path: str) -> SerializedValue:
        if value is None:
            return NullValue()
        if value is UNDEFINED:
            return UndefinedValue()
        if isinstance(value, enum.Enum):
            return SymbolValue(description=f"{type(value).__name__}.{value.name}")
        if isinstance(value, bool):
            return BooleanValue(value=value)
        if isinstance(value, int):
            return self._serialize_int(value)
        if isinstance(value, float):
            return self._serialize_float(value)
        if isinstance(value, str):
            return self._serialize_string(value)
        if self._is_function(value):
            return FunctionValue(name=self._function_name(value))

        # Everything past this point is a container or an object
        if depth >= self.limits.max_depth:
            return MaxDepthValue(kind=self._container_kind(value))

        if isinstance(value, (datetime, date)):
            return DateValue(value=value.isoformat())
        if isinstance(value, re.Pattern):
            return RegExpValue(value=self._regexp_literal(value))
        if isinstance(value, BaseException):
            return self._serialize_error(value)
        if inspect.isawaitable(value):
            return OpaqueValue(type="promise")
        if isinstance(value, (weakref.WeakKeyDictionary, weakref.WeakValueDictionary)):
            return OpaqueValue(type="weakmap")
        if isinstance(value, weakref.WeakSet):
            return OpaqueValue(type="weakset")

        if isinstance(value, Mapping) and not self._has_string_keys(value):
            return self._serialize_map(value, depth, visited, path)
        if isinstance(value, (set, frozenset)):
            return self._serialize_set(value, depth, visited, path)

        if isinstance(value, (bytes, bytearray)):
            return ArrayBufferValue(byte_length=len(value), kind=type(value).__name__)
        if isinstance(value, memoryview):
            return TypedArrayValue(
                kind=f"memoryview[{value.format}]",
                length=value.nbytes // max(value.itemsize, 1),
            )
        if isinstance(value, array.array):
            return TypedArrayValue(kind=f"array[{value.typecode}]", length=len(value))

        dom = self._dom_metadata(value)
        if dom is not None:
            return dom

        if isinstance(value, (list, tuple, collections.deque)):
            return self._serialize_array(value, depth, visited, path)

        if (
            isinstance(value, Mapping)
            or dataclasses.is_dataclass(value)
            or hasattr(value, "__dict__")
        ):
            return self._serialize_object(value, depth, visited, path)

        return UnknownValue(stringified=self._stringify(value))

    def _serialize_child(self, value: Any, depth: int, visited: Visited, path: str) -> SerializedValue:
        """Serialize a nested value, containing any failure to that value."""
        try:
            return self._serialize(value, depth, visited, path)
        except Exception as e:
            logger.debug(f"Serialization failed at {path}: {e}")
            return ErrorValue(
                name=type(e).__name__,
                message=f"Serialization failed: {self._stringify(e)}",
            )

    def _serialize_int(self, value: int) -> SerializedValue:
        if abs(value) <= MAX_SAFE_INTEGER:
            return NumberValue(value=value)
        try:
            digits = str(value)
        except ValueError:
            # Exceeds the interpreter's int-to-str digit limit
            digits = f"<{value.bit_length()}-bit integer>"
        return BigIntValue(value=digits)

    def _serialize_float(self, value: float) -> SerializedValue:
        if math.isnan(value):
            return NumberValue(special="NaN")
        if math.isinf(value):
            return NumberValue(special="Infinity" if value > 0 else "-Infinity")
        return NumberValue(value=value)

    def _serialize_string(self, value: str) -> StringValue:
        limit = self.limits.max_string_length
        if len(value) > limit:
            return StringValue(
                value=value[:limit],
                truncated=True,
                original_length=len(value),
            )
        return StringValue(value=value)

    def _serialize_error(self, error: BaseException) -> ErrorValue:
        # Playwright errors carry the page-side name, message and stack
        name = getattr(error, "name", None)
        message = getattr(error, "message", None)
        stack = getattr(error, "stack", None)

        if not isinstance(name, str) or not name:
            name = type(error).__name__
        if not isinstance(message, str):
            message = self._stringify(error)
        if not isinstance(stack, str):
            stack = None
            if error.__traceback__ is not None:
                stack = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )

        return ErrorValue(name=name, message=message, stack=stack)

    def _serialize_map(self, value: Mapping, depth: int, visited: Visited, path: str) -> SerializedValue:
        circular = self._enter(value, visited, path)
        if circular is not None:
            return circular

        limit = self.limits.max_map_entries
        entries = []
        for i, (key, item) in enumerate(islice(value.items(), limit)):
            entries.append(MapEntry(
                key=self._serialize_child(key, depth + 1, visited, f"{path}.key[{i}]"),
                value=self._serialize_child(item, depth + 1, visited, f"{path}.value[{i}]"),
            ))

        size = len(value)
        return MapValue(entries=entries, size=size, truncated=size > limit)

    def _serialize_set(self, value: Any, depth: int, visited: Visited, path: str) -> SerializedValue:
        circular = self._enter(value, visited, path)
        if circular is not None:
            return circular

        limit = self.limits.max_set_values
        values = [
            self._serialize_child(item, depth + 1, visited, f"{path}[{i}]")
            for i, item in enumerate(islice(value, limit))
        ]

        size = len(value)
        return SetValue(values=values, size=size, truncated=size > limit)

    def _serialize_array(self, value: Any, depth: int, visited: Visited, path: str) -> SerializedValue:
        circular = self._enter(value, visited, path)
        if circular is not None:
            return circular

        limit = self.limits.max_array_length
        items = [
            self._serialize_child(item, depth + 1, visited, f"{path}[{i}]")
            for i, item in enumerate(islice(value, limit))
        ]

        total = len(value)
        truncated = total > limit
        return ArrayValue(
            items=items,
            truncated=truncated,
            total_length=total if truncated else None,
        )

    def _serialize_object(self, value: Any, depth: int, visited: Visited, path: str) -> SerializedValue:
        circular = self._enter(value, visited, path)
        if circular is not None:
            return circular

        limit = self.limits.max_object_keys
        is_mapping = isinstance(value, Mapping)
        names, total = self._field_names(value, limit, is_mapping)

        fields: Dict[str, SerializedValue] = {}
        for name in names[:limit]:
            key = str(name)
            try:
                raw = value[name] if is_mapping else getattr(value, name)
            except Exception as e:
                # One failing property must not abort the whole object
                fields[key] = ErrorValue(
                    name=type(e).__name__,
                    message=f"Error accessing property: {self._stringify(e)}",
                )
                continue
            fields[key] = self._serialize_child(raw, depth + 1, visited, f"{path}.{key}")

        truncated = total > limit
        return ObjectValue(
            class_name=self._class_name(value),
            fields=fields,
            truncated=truncated,
            total_keys=total if truncated else None,
        )

    def _enter(self, value: Any, visited: Visited, path: str) -> Optional[CircularValue]:
        """Record first occurrence of a container, or report a repeat."""
        key = id(value)
        if key in visited:
            return CircularValue(path=path, target=visited[key][0])
        visited[key] = (path, value)
        return None

    def _field_names(self, value: Any, limit: int, is_mapping: bool) -> Tuple[List[Any], int]:
        if is_mapping:
            return list(islice(value.keys(), limit + 1)), len(value)

        if isinstance(value, BaseModel):
            names = list(type(value).model_fields)
        elif dataclasses.is_dataclass(value):
            names = [f.name for f in dataclasses.fields(value)]
        else:
            names = [name for name in vars(value) if not name.startswith("__")]

        for name in self._public_properties(type(value)):
            if name not in names:
                names.append(name)

        return names, len(names)

    @staticmethod
    def _public_properties(cls: type) -> List[str]:
        names = []
        for klass in cls.__mro__:
            if klass is object or klass.__module__.startswith("pydantic"):
                continue
            for name, attr in vars(klass).items():
                if isinstance(attr, property) and not name.startswith("_") and name not in names:
                    names.append(name)
        return names

    def _has_string_keys(self, value: Mapping) -> bool:
        sample = islice(value.keys(), self.limits.max_object_keys + 1)
        return all(isinstance(key, str) for key in sample)

    @staticmethod
    def _dom_metadata(value: Any) -> Optional[DomValue]:
        if isinstance(value, Element):
            tag = value.tag if isinstance(value.tag, str) else str(value.tag)
            return DomValue(
                tag_name=tag.upper(),
                id=value.attrib.get("id") or None,
                class_name=value.attrib.get("class") or None,
            )

        try:
            tag = getattr(value, "tagName", None) or getattr(value, "tag_name", None)
        except Exception:
            return None
        if not isinstance(tag, str) or not tag:
            return None

        element_id = getattr(value, "id", None)
        class_name = getattr(value, "className", None) or getattr(value, "class_name", None)
        return DomValue(
            tag_name=tag.upper(),
            id=element_id if isinstance(element_id, str) and element_id else None,
            class_name=class_name if isinstance(class_name, str) and class_name else None,
        )

    @staticmethod
    def _is_function(value: Any) -> bool:
        return (
            inspect.isroutine(value)
            or inspect.isclass(value)
            or isinstance(value, functools.partial)
        )

    @staticmethod
    def _function_name(value: Any) -> str:
        if isinstance(value, functools.partial):
            value = value.func
        name = getattr(value, "__name__", None)
        if not isinstance(name, str) or not name or name == "<lambda>":
            return "anonymous"
        qualname = getattr(value, "__qualname__", None)
        # Nested definitions keep only their own name
        if isinstance(qualname, str) and qualname and "<locals>" not in qualname:
            return qualname
        return name

    @staticmethod
    def _container_kind(value: Any) -> str:
        if isinstance(value, (list, tuple, collections.deque)):
            return "array"
        if isinstance(value, (set, frozenset)):
            return "set"
        return "object"

    @staticmethod
    def _regexp_literal(pattern: re.Pattern) -> str:
        source = pattern.pattern
        if isinstance(source, bytes):
            source = source.decode("utf-8", errors="replace")
        flags = "".join(letter for flag, letter in _REGEX_FLAGS if pattern.flags & flag)
        return f"/{source}/{flags}"

    @staticmethod
    def _class_name(value: Any) -> Optional[str]:
        cls = type(value)
        if cls is dict:
            return None
        return cls.__name__

    def _stringify(self, value: Any) -> str:
        try:
            text = str(value)
        except Exception:
            text = f"<{type(value).__name__}>"
        limit = self.limits.max_string_length
        return text if len(text) <= limit else text[:limit]


_default_serializer: Optional[ValueSerializer] = None


def serialize(
    value: Any,
    depth: int = 0,
    visited: Optional[Visited] = None,
    path: str = "root"
) -> SerializedValue:
    """Serialize a value with the reference limits.

    Args:
        value: Any runtime value
        depth: Starting nesting depth
        visited: Cycle tracking table, fresh when omitted
        path: Display path of ``value``

    Returns:
        Serialized representation
    """
    global _default_serializer
    if _default_serializer is None:
        _default_serializer = ValueSerializer()
    return _default_serializer.serialize(value, depth, visited, path)
