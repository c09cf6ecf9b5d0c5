"""Formatter decorators and alternative formatters.

Custom output styles wrap an existing Formatter and augment its lines
rather than subclassing LogFormatter.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..models.events import ConsoleMethod, LogEvent
from ..models.serialized import dump_serialized
from .colors import Palette
from .formatter import Formatter
from .render import render_message

LEVEL_BADGES: Dict[ConsoleMethod, str] = {
    ConsoleMethod.LOG: "📝",
    ConsoleMethod.INFO: "ℹ️",
    ConsoleMethod.WARNING: "⚠️",
    ConsoleMethod.ERROR: "❌",
    ConsoleMethod.DEBUG: "🐛",
}
DEFAULT_BADGE = "📋"
ERROR_BANNER = "━" * 28


class LevelBadgeDecorator:
    """Prefixes lines with a badge per level and puts a banner above errors."""

    def __init__(self, inner: Formatter, colors: bool = True):
        """Initialize decorator.

        Args:
            inner: Formatter producing the decorated lines
            colors: Whether the error banner is colored
        """
        self.inner = inner
        self.palette = Palette(colors)

    def format(self, event: LogEvent) -> Optional[str]:
        line = self.inner.format(event)
        if line is None:
            return None

        line = f"{LEVEL_BADGES.get(event.method, DEFAULT_BADGE)} {line}"
        if event.method is ConsoleMethod.ERROR:
            banner = self.palette.paint(ERROR_BANNER, "red", bold=True)
            line = f"{banner}\n{line}"
        return line


class JsonLinesFormatter:
    """Formats every event as one JSON object for structured logging.

    Keeps no state: groups, counters and timers are passed through as plain
    records with their method as ``level``.
    """

    def format(self, event: LogEvent) -> str:
        moment = datetime.fromtimestamp(event.timestamp / 1000.0, tz=timezone.utc)
        record: Dict[str, Any] = {
            'timestamp': moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            'level': event.method.value,
            'source': event.source,
            'message': render_message(event.args),
        }

        if event.location is not None:
            record['location'] = {
                'file': event.location.url,
                'line': event.location.line,
                'column': event.location.column,
            }

        record['args'] = [dump_serialized(arg) for arg in event.args]
        return json.dumps(record, ensure_ascii=False)
