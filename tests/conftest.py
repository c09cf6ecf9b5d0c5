"""Shared test fixtures and configuration for console-bridge tests."""

import sys
from pathlib import Path

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from console_bridge.capture.serializer import ValueSerializer
from console_bridge.formatting.formatter import LogFormatter
from console_bridge.models import ConsoleMethod, LogEvent, SourceLocation


@pytest.fixture
def make_event():
    """Factory building LogEvents from live argument values."""
    serializer = ValueSerializer()

    def _make(method, *args, source="localhost:3000", timestamp=1705314600000.0, location=None):
        return LogEvent(
            method=ConsoleMethod(method),
            args=serializer.serialize_arguments(args),
            source=source,
            timestamp=timestamp,
            location=SourceLocation.from_raw(location),
        )

    return _make


@pytest.fixture
def plain_formatter():
    """Formatter without colors or timestamps."""
    return LogFormatter({"showTimestamp": False, "colors": False})


@pytest.fixture
def sample_console_event():
    """Wire console_event message as sent by the extension."""
    return {
        "version": "1.0.0",
        "type": "console_event",
        "timestamp": "2024-01-15T10:30:00.000Z",
        "source": {"tabId": 7, "url": "http://localhost:3000/", "title": "App"},
        "payload": {
            "method": "log",
            "args": [
                {"type": "string", "value": "Hello"},
                {"type": "number", "value": 42},
            ],
            "location": {"url": "http://localhost:3000/app.js", "line": 12, "column": 5},
        },
    }
