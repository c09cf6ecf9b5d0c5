"""Extension wire protocol and WebSocket receiver."""

from .messages import (
    PROTOCOL_VERSION,
    Envelope,
    MessageType,
    ProtocolError,
    SourceInfo,
    UnknownMessageTypeError,
    UnsupportedVersionError,
    build_connection_status,
    build_console_event,
    build_error,
    build_ping,
    build_pong,
    build_welcome,
    encode,
    parse_message,
)
from .server import ExtensionServer

__all__ = [
    # Messages
    'PROTOCOL_VERSION',
    'Envelope',
    'MessageType',
    'SourceInfo',
    'build_connection_status',
    'build_console_event',
    'build_error',
    'build_ping',
    'build_pong',
    'build_welcome',
    'encode',
    'parse_message',

    # Errors
    'ProtocolError',
    'UnknownMessageTypeError',
    'UnsupportedVersionError',

    # Server
    'ExtensionServer',
]
