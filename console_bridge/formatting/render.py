"""Rendering of serialized values as human-readable text.

Top-level string arguments render raw, like a browser console shows them;
strings inside containers are quoted. Containers render on one line when
they fit in INLINE_WIDTH columns and are pretty-printed with two-space
indentation otherwise.
"""

import json
import re
from typing import Callable, Dict, List, Sequence

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

INLINE_WIDTH = 72
INDENT = "  "

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")

_OPAQUE_TEXT = {
    "promise": "Promise { <pending> }",
    "weakmap": "WeakMap { <items unknown> }",
    "weakset": "WeakSet { <items unknown> }",
}


def render_value(value: SerializedValue, top_level: bool = True) -> str:
    """Render one serialized value.

    Args:
        value: Value to render
        top_level: Whether the value is a console argument (strings unquoted)

    Returns:
        Rendered text, possibly spanning several lines
    """
    if top_level and isinstance(value, StringValue):
        return _string_text(value)
    return _render(value, 0)


def render_message(args: Sequence[SerializedValue]) -> str:
    """Render console arguments joined by single spaces."""
    return " ".join(render_value(arg) for arg in args)


def render_cell(value: SerializedValue) -> str:
    """Render a value on a single line for a table cell."""
    text = render_value(value)
    if "\n" in text:
        text = " ".join(line.strip() for line in text.splitlines())
    return text


def number_text(value: NumberValue) -> str:
    if value.special:
        return value.special
    number = value.value
    if number is None:
        return "NaN"
    if isinstance(number, float) and number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def error_text(value: ErrorValue) -> str:
    header = f"{value.name}: {value.message}" if value.message else value.name
    if not value.stack:
        return header
    stack = value.stack.rstrip()
    # Page-side stacks already start with the header line
    if stack.startswith(header):
        return stack
    return f"{header}\n{stack}"


def _string_text(value: StringValue) -> str:
    if value.truncated and value.original_length is not None:
        remaining = value.original_length - len(value.value)
        return f"{value.value}... ({remaining} more characters)"
    return value.value


def _quoted(value: StringValue) -> str:
    text = json.dumps(value.value, ensure_ascii=False)
    if value.truncated and value.original_length is not None:
        remaining = value.original_length - len(value.value)
        return f"{text}... ({remaining} more characters)"
    return text


def _key(name: str) -> str:
    return name if _IDENTIFIER.match(name) else json.dumps(name, ensure_ascii=False)


def _wrap(open_: str, items: List[str], close: str, level: int) -> str:
    if not items:
        return open_ + close

    inline = f"{open_} {', '.join(items)} {close}"
    if "\n" not in inline and len(inline) + len(INDENT) * level <= INLINE_WIDTH:
        return inline

    inner = INDENT * (level + 1)
    body = ",\n".join(inner + item for item in items)
    return f"{open_}\n{body}\n{INDENT * level}{close}"


def _render_array(value: ArrayValue, level: int) -> str:
    items = [_render(item, level + 1) for item in value.items]
    if value.truncated:
        total = value.total_length or len(value.items)
        items.append(f"... {total - len(value.items)} more items")
    return _wrap("[", items, "]", level)


def _render_object(value: ObjectValue, level: int) -> str:
    items = [
        f"{_key(name)}: {_render(field, level + 1)}"
        for name, field in value.fields.items()
    ]
    if value.truncated:
        total = value.total_keys or len(value.fields)
        items.append(f"... {total - len(value.fields)} more keys")
    body = _wrap("{", items, "}", level)
    return f"{value.class_name} {body}" if value.class_name else body


def _render_map(value: MapValue, level: int) -> str:
    items = [
        f"{_render(entry.key, level + 1)} => {_render(entry.value, level + 1)}"
        for entry in value.entries
    ]
    if value.truncated:
        items.append(f"... {value.size - len(value.entries)} more entries")
    return f"Map({value.size}) " + _wrap("{", items, "}", level)


def _render_set(value: SetValue, level: int) -> str:
    items = [_render(item, level + 1) for item in value.values]
    if value.truncated:
        items.append(f"... {value.size - len(value.values)} more values")
    return f"Set({value.size}) " + _wrap("{", items, "}", level)


def _render_error(value: ErrorValue, level: int) -> str:
    if level > 0:
        return f"[{error_text(ErrorValue(name=value.name, message=value.message))}]"
    return error_text(value)


def _render_dom(value: DomValue) -> str:
    text = value.tag_name.lower()
    if value.id:
        text += f"#{value.id}"
    if value.class_name:
        text += "".join(f".{cls}" for cls in value.class_name.split())
    return f"<{text}>"


_LEAF_RENDERERS: Dict[type, Callable[[SerializedValue], str]] = {
    NullValue: lambda v: "null",
    UndefinedValue: lambda v: "undefined",
    StringValue: _quoted,
    NumberValue: number_text,
    BooleanValue: lambda v: "true" if v.value else "false",
    SymbolValue: lambda v: f"Symbol({v.description})",
    BigIntValue: lambda v: f"{v.value}n",
    FunctionValue: lambda v: f"[Function: {v.name}]",
    DateValue: lambda v: v.value,
    RegExpValue: lambda v: v.value,
    OpaqueValue: lambda v: _OPAQUE_TEXT[v.type],
    DomValue: _render_dom,
    ArrayBufferValue: lambda v: f"{v.kind} {{ byteLength: {v.byte_length} }}",
    TypedArrayValue: lambda v: f"{v.kind}({v.length})",
    CircularValue: lambda v: f"[Circular: {v.target or v.path}]",
    MaxDepthValue: lambda v: f"[{v.kind.capitalize()}]",
    UnknownValue: lambda v: v.stringified,
}


def _render(value: SerializedValue, level: int) -> str:
    if isinstance(value, ArrayValue):
        return _render_array(value, level)
    if isinstance(value, ObjectValue):
        return _render_object(value, level)
    if isinstance(value, MapValue):
        return _render_map(value, level)
    if isinstance(value, SetValue):
        return _render_set(value, level)
    if isinstance(value, ErrorValue):
        return _render_error(value, level)

    renderer = _LEAF_RENDERERS.get(type(value))
    if renderer is None:
        return str(value)
    return renderer(value)
