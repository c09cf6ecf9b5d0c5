"""Formatting layer: stateful console formatter, rendering and decorators."""

from .formatter import Formatter, FormatterOptions, FormatterState, LogFormatter
from .registry import FormatterRegistry
from .decorators import JsonLinesFormatter, LevelBadgeDecorator
from .render import render_message, render_value
from .table import render_table

__all__ = [
    # Formatters
    'Formatter',
    'FormatterOptions',
    'FormatterState',
    'LogFormatter',
    'FormatterRegistry',
    'JsonLinesFormatter',
    'LevelBadgeDecorator',

    # Rendering
    'render_message',
    'render_value',
    'render_table',
]
