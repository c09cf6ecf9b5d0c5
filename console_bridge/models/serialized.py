"""Pydantic models for serialized console argument values.

A serialized value is a tagged, fully owned, acyclic description of one
runtime value. Every variant carries a ``type`` discriminator so that a
consumer can render it without access to the original runtime. Field names
are camelCase on the wire and snake_case in Python.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class SerializedBase(BaseModel):
    """Common configuration for all serialized value variants."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class NullValue(SerializedBase):
    type: Literal["null"] = "null"


class UndefinedValue(SerializedBase):
    type: Literal["undefined"] = "undefined"


class StringValue(SerializedBase):
    type: Literal["string"] = "string"
    value: str = Field(description="String content, possibly truncated")
    truncated: bool = Field(default=False, description="Whether the string was cut")
    original_length: Optional[int] = Field(
        default=None,
        description="Length before truncation"
    )


class NumberValue(SerializedBase):
    type: Literal["number"] = "number"
    value: Optional[Union[int, float]] = Field(
        default=None,
        description="Finite numeric value"
    )
    special: Optional[Literal["NaN", "Infinity", "-Infinity"]] = Field(
        default=None,
        description="Non-finite value marker (value is null when set)"
    )


class BooleanValue(SerializedBase):
    type: Literal["boolean"] = "boolean"
    value: bool


class SymbolValue(SerializedBase):
    type: Literal["symbol"] = "symbol"
    description: str


class BigIntValue(SerializedBase):
    type: Literal["bigint"] = "bigint"
    value: str = Field(description="Decimal digits of the integer")


class FunctionValue(SerializedBase):
    type: Literal["function"] = "function"
    name: str = Field(default="anonymous")


class DateValue(SerializedBase):
    type: Literal["date"] = "date"
    value: str = Field(description="ISO-8601 representation")


class RegExpValue(SerializedBase):
    type: Literal["regexp"] = "regexp"
    value: str = Field(description="Literal form, e.g. /ab+c/i")


class ErrorValue(SerializedBase):
    type: Literal["error"] = "error"
    name: str = Field(default="Error")
    message: str = Field(default="")
    stack: Optional[str] = Field(default=None)


class OpaqueValue(SerializedBase):
    """Values that are never descended into (promises, weak collections)."""

    type: Literal["promise", "weakmap", "weakset"]


class ArrayValue(SerializedBase):
    type: Literal["array"] = "array"
    items: List["SerializedValue"] = Field(default_factory=list)
    truncated: bool = False
    total_length: Optional[int] = None


class ObjectValue(SerializedBase):
    type: Literal["object"] = "object"
    class_name: Optional[str] = None
    fields: Dict[str, "SerializedValue"] = Field(default_factory=dict)
    truncated: bool = False
    total_keys: Optional[int] = None


class MapEntry(SerializedBase):
    key: "SerializedValue"
    value: "SerializedValue"


class MapValue(SerializedBase):
    type: Literal["map"] = "map"
    entries: List[MapEntry] = Field(default_factory=list)
    size: int = 0
    truncated: bool = False


class SetValue(SerializedBase):
    type: Literal["set"] = "set"
    values: List["SerializedValue"] = Field(default_factory=list)
    size: int = 0
    truncated: bool = False


class DomValue(SerializedBase):
    type: Literal["dom"] = "dom"
    tag_name: str
    id: Optional[str] = None
    class_name: Optional[str] = None


class ArrayBufferValue(SerializedBase):
    type: Literal["arraybuffer"] = "arraybuffer"
    byte_length: int
    kind: str = Field(default="ArrayBuffer")


class TypedArrayValue(SerializedBase):
    type: Literal["typedarray"] = "typedarray"
    kind: str
    length: int


class CircularValue(SerializedBase):
    type: Literal["circular"] = "circular"
    path: str = Field(description="Position at which the repeat was met")
    target: Optional[str] = Field(
        default=None,
        description="Position of the first occurrence"
    )


class MaxDepthValue(SerializedBase):
    type: Literal["max-depth"] = "max-depth"
    kind: str = Field(default="object", description="What was cut off")


class UnknownValue(SerializedBase):
    type: Literal["unknown"] = "unknown"
    stringified: str


SerializedValue = Annotated[
    Union[
        NullValue,
        UndefinedValue,
        StringValue,
        NumberValue,
        BooleanValue,
        SymbolValue,
        BigIntValue,
        FunctionValue,
        DateValue,
        RegExpValue,
        ErrorValue,
        OpaqueValue,
        ArrayValue,
        ObjectValue,
        MapValue,
        SetValue,
        DomValue,
        ArrayBufferValue,
        TypedArrayValue,
        CircularValue,
        MaxDepthValue,
        UnknownValue,
    ],
    Field(discriminator="type"),
]

for _model in (ArrayValue, ObjectValue, MapEntry, MapValue, SetValue):
    _model.model_rebuild()

CONTAINER_TYPES = frozenset({"array", "object", "map", "set"})

_ADAPTER = TypeAdapter(SerializedValue)


def parse_serialized(data: Any) -> SerializedValue:
    """Validate wire data (camelCase dict) into a SerializedValue.

    Raises:
        pydantic.ValidationError: If the data does not match any variant
    """
    return _ADAPTER.validate_python(data)


def dump_serialized(value: SerializedValue) -> Dict[str, Any]:
    """Dump a SerializedValue to its JSON-safe wire form."""
    return value.model_dump(mode="json", by_alias=True, exclude_none=True)
