"""Wire message envelope exchanged with the browser extension.

Every message is a JSON object with ``version``, ``type``, ``timestamp``
(ISO-8601), an optional ``source`` (tab id, url, title) and a type-specific
``payload``. Receivers reject versions they do not understand instead of
guessing at the schema.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

PROTOCOL_VERSION = "1.0.0"
SUPPORTED_VERSIONS = frozenset({PROTOCOL_VERSION})


class ProtocolError(Exception):
    """Raised when a wire message is malformed."""

    code = "INVALID_MESSAGE"


class UnsupportedVersionError(ProtocolError):
    """Raised when a wire message uses a protocol version we do not speak."""

    code = "UNSUPPORTED_VERSION"

    def __init__(self, version: Any):
        super().__init__(f"Unsupported protocol version: {version!r}")
        self.version = version


class UnknownMessageTypeError(ProtocolError):
    """Raised when a wire message has a type outside the protocol."""

    code = "UNKNOWN_TYPE"

    def __init__(self, message_type: Any):
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type


class MessageType(str, Enum):
    """Message types of protocol 1.0.0."""
    CONSOLE_EVENT = "console_event"
    CONNECTION_STATUS = "connection_status"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"
    WELCOME = "welcome"


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class SourceInfo(WireModel):
    """Identity of the inspected tab."""

    tab_id: Optional[Union[int, str]] = Field(default=None, description="Browser tab id")
    url: Optional[str] = Field(default=None, description="Page URL")
    title: Optional[str] = Field(default=None, description="Page title")


class ConsoleEventPayload(WireModel):
    method: str = Field(min_length=1, description="Console API method name")
    args: List[Any] = Field(description="Serialized arguments")
    location: Optional[Dict[str, Any]] = Field(default=None, description="Call location")


class ConnectionStatusPayload(WireModel):
    status: str = Field(min_length=1, description="connected or disconnected")
    reason: Optional[str] = None
    client_info: Optional[Dict[str, Any]] = None


class ErrorPayload(WireModel):
    code: str = Field(min_length=1)
    message: str = Field(min_length=1)
    details: Dict[str, Any] = Field(default_factory=dict)


class PingPayload(WireModel):
    id: Optional[Union[int, str]] = None


class WelcomePayload(WireModel):
    message: str = ""
    server_version: Optional[str] = None


_PAYLOAD_MODELS: Dict[MessageType, Type[WireModel]] = {
    MessageType.CONSOLE_EVENT: ConsoleEventPayload,
    MessageType.CONNECTION_STATUS: ConnectionStatusPayload,
    MessageType.ERROR: ErrorPayload,
    MessageType.PING: PingPayload,
    MessageType.PONG: PingPayload,
    MessageType.WELCOME: WelcomePayload,
}


class Envelope(WireModel):
    """A validated wire message."""

    version: str
    type: MessageType
    timestamp: str
    source: Optional[SourceInfo] = None
    payload: WireModel

    @property
    def source_id(self) -> str:
        """Identifier of the emitting page: its URL, else its tab id."""
        if self.source is not None:
            if self.source.url:
                return self.source.url
            if self.source.tab_id is not None:
                return f"tab:{self.source.tab_id}"
        return "extension"


def iso_now() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    moment = datetime.now(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _envelope(
    message_type: MessageType,
    payload: Dict[str, Any],
    source: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    message: Dict[str, Any] = {
        'version': PROTOCOL_VERSION,
        'type': message_type.value,
        'timestamp': iso_now(),
        'payload': payload,
    }
    if source is not None:
        message['source'] = dict(source)
    return message


def build_console_event(
    method: str,
    args: List[Any],
    source: Mapping[str, Any],
    location: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Build a console_event message.

    Args:
        method: Console API method name
        args: Serialized arguments (wire dicts)
        source: Tab identity with tabId, url, title
        location: Optional call location

    Returns:
        JSON-ready message dict
    """
    payload: Dict[str, Any] = {'method': method, 'args': list(args)}
    if location:
        payload['location'] = dict(location)
    return _envelope(MessageType.CONSOLE_EVENT, payload, source)


def build_connection_status(
    status: str,
    reason: Optional[str] = None,
    client_info: Optional[Mapping[str, Any]] = None,
    source: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Build a connection_status message."""
    payload = {
        'status': status,
        'reason': reason,
        'clientInfo': dict(client_info) if client_info else None,
    }
    return _envelope(MessageType.CONNECTION_STATUS, payload, source)


def build_error(code: str, message: str, details: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Build an error message."""
    payload = {'code': code, 'message': message, 'details': dict(details or {})}
    return _envelope(MessageType.ERROR, payload)


def build_ping(message_id: Union[int, str]) -> Dict[str, Any]:
    """Build a ping message."""
    return _envelope(MessageType.PING, {'id': message_id})


def build_pong(message_id: Optional[Union[int, str]] = None) -> Dict[str, Any]:
    """Build a pong message, echoing the ping's id."""
    return _envelope(MessageType.PONG, {'id': message_id})


def build_welcome(message: str = "Console Bridge CLI ready") -> Dict[str, Any]:
    """Build the welcome message sent to a newly connected extension."""
    return _envelope(MessageType.WELCOME, {'message': message, 'serverVersion': PROTOCOL_VERSION})


def encode(message: Mapping[str, Any]) -> str:
    """Serialize a message dict to JSON text."""
    return json.dumps(message, ensure_ascii=False)


def parse_message(raw: Union[str, bytes, Mapping[str, Any]]) -> Envelope:
    """Parse and validate a wire message.

    Args:
        raw: JSON text or an already decoded dict

    Returns:
        Validated envelope with a typed payload

    Raises:
        UnsupportedVersionError: If the version is not supported
        UnknownMessageTypeError: If the type is not part of the protocol
        ProtocolError: If the message is not valid JSON or misses required fields
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Invalid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise ProtocolError("Message must be a JSON object")

    version = data.get('version')
    if not version:
        raise ProtocolError("Message is missing 'version'")
    if not isinstance(version, str) or version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)

    try:
        message_type = MessageType(data.get('type'))
    except (ValueError, TypeError):
        raise UnknownMessageTypeError(data.get('type')) from None

    if not data.get('timestamp'):
        raise ProtocolError("Message is missing 'timestamp'")

    payload = data.get('payload')
    if not isinstance(payload, Mapping):
        raise ProtocolError("Message is missing 'payload'")

    if message_type is MessageType.CONSOLE_EVENT and not data.get('source'):
        raise ProtocolError("console_event message is missing 'source'")

    try:
        return Envelope(
            version=version,
            type=message_type,
            timestamp=str(data['timestamp']),
            source=data.get('source'),
            payload=_PAYLOAD_MODELS[message_type].model_validate(payload),
        )
    except ValidationError as e:
        raise ProtocolError(f"Invalid {message_type.value} message: {e.error_count()} errors") from e
