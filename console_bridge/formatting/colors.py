"""ANSI color schemes for log levels, sources and rendered values."""

import zlib
from typing import Dict, Optional

import typer

from ..models.events import ConsoleMethod

LEVEL_COLORS: Dict[ConsoleMethod, str] = {
    ConsoleMethod.LOG: typer.colors.WHITE,
    ConsoleMethod.INFO: typer.colors.BLUE,
    ConsoleMethod.WARNING: typer.colors.YELLOW,
    ConsoleMethod.ERROR: typer.colors.RED,
    ConsoleMethod.DEBUG: typer.colors.BRIGHT_BLACK,
    ConsoleMethod.TRACE: typer.colors.MAGENTA,
}

# Cycled by source hash so one page keeps one color for the whole session
SOURCE_COLORS = [
    typer.colors.CYAN,
    typer.colors.MAGENTA,
    typer.colors.GREEN,
    typer.colors.YELLOW,
    typer.colors.BLUE,
    typer.colors.RED,
    typer.colors.WHITE,
]

# Serialized value tag -> color
VALUE_COLORS: Dict[str, str] = {
    "null": typer.colors.BRIGHT_BLACK,
    "undefined": typer.colors.BRIGHT_BLACK,
    "number": typer.colors.YELLOW,
    "boolean": typer.colors.YELLOW,
    "bigint": typer.colors.YELLOW,
    "function": typer.colors.CYAN,
    "symbol": typer.colors.CYAN,
    "date": typer.colors.MAGENTA,
    "regexp": typer.colors.RED,
    "error": typer.colors.RED,
    "circular": typer.colors.CYAN,
    "max-depth": typer.colors.CYAN,
}


def level_color(method: ConsoleMethod) -> str:
    """Get the color for a console method, white when it has none."""
    return LEVEL_COLORS.get(method, typer.colors.WHITE)


def source_color(source: str) -> str:
    """Get a stable color for a source id."""
    index = zlib.crc32(source.encode("utf-8")) % len(SOURCE_COLORS)
    return SOURCE_COLORS[index]


class Palette:
    """Applies colors when enabled, passes text through otherwise."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def paint(self, text: str, fg: Optional[str] = None, bold: bool = False) -> str:
        if not self.enabled or not text or (fg is None and not bold):
            return text
        return typer.style(text, fg=fg, bold=bold)

    def level(self, method: ConsoleMethod, text: str) -> str:
        return self.paint(text, level_color(method))

    def source(self, source: str, text: str) -> str:
        return self.paint(text, source_color(source))

    def value(self, tag: str, text: str) -> str:
        return self.paint(text, VALUE_COLORS.get(tag))

    def muted(self, text: str) -> str:
        return self.paint(text, typer.colors.BRIGHT_BLACK)
