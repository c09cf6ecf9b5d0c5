"""Unit tests for per-source formatters and formatter decorators."""

import json
from unittest.mock import MagicMock

from console_bridge.formatting.decorators import (
    DEFAULT_BADGE,
    ERROR_BANNER,
    JsonLinesFormatter,
    LevelBadgeDecorator,
)
from console_bridge.formatting.formatter import LogFormatter
from console_bridge.formatting.registry import FormatterRegistry


def plain():
    return LogFormatter({"showTimestamp": False, "colors": False})


class TestFormatterRegistry:
    """Tests for FormatterRegistry."""

    def test_sources_do_not_share_state(self, make_event):
        """Group depth and counters are kept per source."""
        registry = FormatterRegistry(plain)

        registry.format(make_event("startGroup", "A", source="a"))
        registry.format(make_event("count", "x", source="a"))

        line = registry.format(make_event("log", "flat", source="b"))
        count = registry.format(make_event("count", "x", source="b"))

        assert line == "[b] log: flat"
        assert count.endswith("x: 1")
        assert registry.sources == ["a", "b"]
        assert len(registry) == 2

    def test_reset_forgets_source(self, make_event):
        registry = FormatterRegistry(plain)
        registry.format(make_event("count", "x", source="a"))

        registry.reset("a")

        assert "a" not in registry
        assert registry.format(make_event("count", "x", source="a")).endswith("x: 1")

    def test_get_is_lazy_and_stable(self):
        factory = MagicMock(side_effect=plain)
        registry = FormatterRegistry(factory)

        first = registry.get("a")
        assert registry.get("a") is first
        assert factory.call_count == 1

        registry.clear()
        assert len(registry) == 0
        assert repr(registry) == "FormatterRegistry(sources=0)"


class TestLevelBadgeDecorator:
    """Tests for LevelBadgeDecorator."""

    def test_badges(self, make_event):
        decorator = LevelBadgeDecorator(plain(), colors=False)
        assert decorator.format(make_event("log", "x")) == "📝 [localhost:3000] log: x"
        assert decorator.format(make_event("dir", "x")).startswith(DEFAULT_BADGE + " ")

    def test_error_banner(self, make_event):
        decorator = LevelBadgeDecorator(plain(), colors=False)
        banner, line = decorator.format(make_event("error", "boom")).split("\n")
        assert banner == ERROR_BANNER
        assert line == "❌ [localhost:3000] error: boom"

    def test_suppressed_lines_pass_through(self, make_event):
        decorator = LevelBadgeDecorator(plain(), colors=False)
        assert decorator.format(make_event("timeEnd", "t")) is None

    def test_inner_state_is_used(self, make_event):
        """The wrapped formatter keeps its own state."""
        inner = plain()
        decorator = LevelBadgeDecorator(inner)
        decorator.format(make_event("startGroup", "A"))
        assert inner.state.group_depth == 1


class TestJsonLinesFormatter:
    """Tests for JsonLinesFormatter."""

    def test_record(self, make_event):
        event = make_event(
            "warning", "careful", {"n": 1},
            timestamp=1705314600000.0,
            location={"url": "app.js", "lineNumber": 2, "columnNumber": 9},
        )
        record = json.loads(JsonLinesFormatter().format(event))

        assert record["timestamp"] == "2024-01-15T10:30:00.000Z"
        assert record["level"] == "warning"
        assert record["source"] == "localhost:3000"
        assert record["message"] == "careful { n: 1 }"
        assert record["location"] == {"file": "app.js", "line": 2, "column": 9}
        assert record["args"][1] == {
            "type": "object",
            "fields": {"n": {"type": "number", "value": 1}},
            "truncated": False,
        }

    def test_stateless(self, make_event):
        """Timers are not paired in structured output."""
        formatter = JsonLinesFormatter()
        assert formatter.format(make_event("timeEnd", "t")) is not None
