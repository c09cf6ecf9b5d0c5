"""Unit tests for the extension wire protocol."""

import json

import pytest

from console_bridge.protocol.messages import (
    PROTOCOL_VERSION,
    ConsoleEventPayload,
    MessageType,
    ProtocolError,
    UnknownMessageTypeError,
    UnsupportedVersionError,
    build_connection_status,
    build_console_event,
    build_error,
    build_ping,
    build_pong,
    build_welcome,
    encode,
    iso_now,
    parse_message,
)


class TestBuilders:
    """Tests for message builders."""

    def test_console_event(self):
        message = build_console_event(
            "log",
            [{"type": "string", "value": "hi"}],
            {"tabId": 1, "url": "http://localhost:3000/", "title": "App"},
            location={"url": "app.js", "line": 1, "column": 2},
        )

        assert message["version"] == PROTOCOL_VERSION
        assert message["type"] == "console_event"
        assert message["timestamp"].endswith("Z")
        assert message["source"]["tabId"] == 1
        assert message["payload"]["location"]["line"] == 1

    def test_control_messages(self):
        assert build_ping(5)["payload"] == {"id": 5}
        assert build_pong(5)["type"] == "pong"
        assert build_error("X", "bad")["payload"] == {"code": "X", "message": "bad", "details": {}}
        assert build_welcome()["payload"]["serverVersion"] == PROTOCOL_VERSION
        status = build_connection_status("connected", client_info={"browser": "chrome"})
        assert status["payload"]["clientInfo"] == {"browser": "chrome"}

    def test_built_messages_parse(self):
        """Everything the builders produce is accepted by the parser."""
        for message in [
            build_console_event("warn", [], {"url": "http://localhost:3000/"}),
            build_connection_status("connected", source={"tabId": 3}),
            build_error("X", "bad"),
            build_ping(1),
            build_pong(1),
            build_welcome(),
        ]:
            assert parse_message(encode(message)).type.value == message["type"]

    def test_iso_now_format(self):
        stamp = iso_now()
        assert len(stamp) == len("2024-01-15T10:30:00.000Z")
        assert stamp.endswith("Z")


class TestParseMessage:
    """Tests for parse_message validation."""

    def test_valid_console_event(self, sample_console_event):
        envelope = parse_message(json.dumps(sample_console_event))

        assert envelope.type is MessageType.CONSOLE_EVENT
        assert isinstance(envelope.payload, ConsoleEventPayload)
        assert envelope.payload.method == "log"
        assert len(envelope.payload.args) == 2
        assert envelope.source.tab_id == 7
        assert envelope.source_id == "http://localhost:3000/"

    def test_source_id_falls_back_to_tab(self, sample_console_event):
        sample_console_event["source"] = {"tabId": 7}
        assert parse_message(sample_console_event).source_id == "tab:7"

    def test_invalid_json(self):
        with pytest.raises(ProtocolError, match="Invalid JSON"):
            parse_message("{not json")

    def test_not_an_object(self):
        with pytest.raises(ProtocolError):
            parse_message("[1, 2]")

    def test_unsupported_version(self, sample_console_event):
        sample_console_event["version"] = "2.0.0"
        with pytest.raises(UnsupportedVersionError) as exc_info:
            parse_message(sample_console_event)
        assert exc_info.value.code == "UNSUPPORTED_VERSION"
        assert exc_info.value.version == "2.0.0"

    def test_unknown_type(self, sample_console_event):
        sample_console_event["type"] = "telemetry"
        with pytest.raises(UnknownMessageTypeError):
            parse_message(sample_console_event)

    @pytest.mark.parametrize("version", [["1.0.0"], {"major": 1}, 1.0, True])
    def test_non_string_version(self, sample_console_event, version):
        """Versions that are not strings are unsupported, whatever their shape."""
        sample_console_event["version"] = version
        with pytest.raises(UnsupportedVersionError) as exc_info:
            parse_message(json.dumps(sample_console_event))
        assert exc_info.value.version == version

    def test_unhashable_type(self, sample_console_event):
        sample_console_event["type"] = ["console_event"]
        with pytest.raises(UnknownMessageTypeError):
            parse_message(sample_console_event)

    @pytest.mark.parametrize("field", ["version", "timestamp", "payload", "source"])
    def test_missing_required_fields(self, sample_console_event, field):
        del sample_console_event[field]
        with pytest.raises(ProtocolError):
            parse_message(sample_console_event)

    def test_payload_validation(self, sample_console_event):
        """A console event needs a method and an args list."""
        sample_console_event["payload"] = {"method": "", "args": []}
        with pytest.raises(ProtocolError) as exc_info:
            parse_message(sample_console_event)
        assert exc_info.value.code == "INVALID_MESSAGE"

        sample_console_event["payload"] = {"method": "log"}
        with pytest.raises(ProtocolError):
            parse_message(sample_console_event)
