"""Console bridge data models package."""

from .events import (
    ConsoleMethod,
    LogEvent,
    RawConsoleCall,
    SourceLocation,
    METHOD_ALIASES,
)

from .runtime import UNDEFINED

from .serialized import (
    SerializedValue,
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
    MapEntry,
    MapValue,
    SetValue,
    DomValue,
    ArrayBufferValue,
    TypedArrayValue,
    CircularValue,
    MaxDepthValue,
    UnknownValue,
    parse_serialized,
    dump_serialized,
)

__all__ = [
    # Event models
    'ConsoleMethod',
    'LogEvent',
    'RawConsoleCall',
    'SourceLocation',
    'METHOD_ALIASES',
    'UNDEFINED',

    # Serialized values
    'SerializedValue',
    'NullValue',
    'UndefinedValue',
    'StringValue',
    'NumberValue',
    'BooleanValue',
    'SymbolValue',
    'BigIntValue',
    'FunctionValue',
    'DateValue',
    'RegExpValue',
    'ErrorValue',
    'OpaqueValue',
    'ArrayValue',
    'ObjectValue',
    'MapEntry',
    'MapValue',
    'SetValue',
    'DomValue',
    'ArrayBufferValue',
    'TypedArrayValue',
    'CircularValue',
    'MaxDepthValue',
    'UnknownValue',
    'parse_serialized',
    'dump_serialized',
]
