"""Stateful console log formatter.

This module provides the LogFormatter that turns LogEvents into terminal
lines. Console semantics that span several calls (group nesting, counters,
timers) live in a FormatterState owned by one formatter, so events must be
handed to a formatter in the exact order they were emitted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models.events import ConsoleMethod, LogEvent, SourceLocation
from ..models.serialized import ArrayValue, SerializedValue, StringValue
from ..utils.url import display_name
from .colors import Palette
from .render import render_value
from .table import is_tabular, render_table

INDENT = "  "
CLEAR_SEPARATOR = "─" * 50
DEFAULT_LABEL = "default"


class Formatter(Protocol):
    """Anything that turns a LogEvent into a line, or None to suppress it."""

    def format(self, event: LogEvent) -> Optional[str]:
        ...


class FormatterOptions(BaseModel):
    """Display options recognized by the formatter.

    Accepts camelCase (``showTimestamp``) and snake_case (``show_timestamp``)
    keys; unrecognized keys are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    show_timestamp: bool = Field(default=True, description="Prefix lines with a timestamp")
    show_source: bool = Field(default=True, description="Prefix lines with the source tag")
    show_location: bool = Field(default=False, description="Append the call location")
    timestamp_format: Literal["time", "iso"] = Field(
        default="time",
        description="'time' for local HH:MM:SS, 'iso' for UTC ISO-8601"
    )
    colors: bool = Field(default=True, description="Use ANSI colors")

    @field_validator('timestamp_format', mode='before')
    @classmethod
    def validate_timestamp_format(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @classmethod
    def from_mapping(
        cls,
        options: Optional[Union["FormatterOptions", Mapping[str, Any]]] = None
    ) -> "FormatterOptions":
        """Build options from a loose mapping (or pass options through)."""
        if options is None:
            return cls()
        if isinstance(options, FormatterOptions):
            return options
        return cls.model_validate(dict(options))


@dataclass
class FormatterState:
    """Mutable console state owned by exactly one formatter."""
    group_depth: int = 0
    counters: Dict[str, int] = field(default_factory=dict)
    timers: Dict[str, float] = field(default_factory=dict)

    def reset(self) -> None:
        self.group_depth = 0
        self.counters.clear()
        self.timers.clear()


class LogFormatter:
    """Formats LogEvents for the terminal, tracking groups, counters and timers."""

    def __init__(
        self,
        options: Optional[Union[FormatterOptions, Mapping[str, Any]]] = None,
        state: Optional[FormatterState] = None
    ):
        """Initialize formatter.

        Args:
            options: FormatterOptions or a loose option mapping
            state: State to mutate, fresh when omitted
        """
        self.options = FormatterOptions.from_mapping(options)
        self.state = state if state is not None else FormatterState()
        self.palette = Palette(self.options.colors)

        self._handlers: Dict[ConsoleMethod, Callable[[LogEvent], Optional[str]]] = {
            ConsoleMethod.LOG: self._format_default,
            ConsoleMethod.INFO: self._format_default,
            ConsoleMethod.WARNING: self._format_default,
            ConsoleMethod.ERROR: self._format_default,
            ConsoleMethod.DEBUG: self._format_default,
            ConsoleMethod.DIR: self._format_default,
            ConsoleMethod.DIRXML: self._format_default,
            ConsoleMethod.PROFILE: self._format_default,
            ConsoleMethod.PROFILE_END: self._format_default,
            ConsoleMethod.TABLE: self._format_table,
            ConsoleMethod.TRACE: self._format_trace,
            ConsoleMethod.CLEAR: self._format_clear,
            ConsoleMethod.START_GROUP: self._format_start_group,
            ConsoleMethod.START_GROUP_COLLAPSED: self._format_start_group,
            ConsoleMethod.END_GROUP: self._format_end_group,
            ConsoleMethod.ASSERT: self._format_assert,
            ConsoleMethod.COUNT: self._format_count,
            ConsoleMethod.TIME_END: self._format_time_end,
        }

    @property
    def handled_methods(self) -> List[ConsoleMethod]:
        return list(self._handlers)

    def format(self, event: LogEvent) -> Optional[str]:
        """Format one event.

        Args:
            event: Normalized console event

        Returns:
            Formatted line(s), or None when the event produces no output
        """
        return self._handlers[event.method](event)

    def reset(self) -> None:
        """Forget all group, counter and timer state."""
        self.state.reset()

    # Method handlers

    def _format_default(self, event: LogEvent) -> str:
        parts = self._prefix(event)
        parts.append(self.palette.level(event.method, f"{event.method.value}:"))
        parts.append(self._indented(self._message(event.args)))

        if self.options.show_location and event.location is not None:
            parts.append(self._format_location(event.location))

        return " ".join(parts)

    def _format_count(self, event: LogEvent) -> str:
        label = self._label(event.args)
        count = self.state.counters.get(label, 0) + 1
        self.state.counters[label] = count

        parts = self._prefix(event)
        parts.append(self.palette.paint("count:", "green"))
        parts.append(self._indented(f"{label}: {self.palette.paint(str(count), 'yellow')}"))
        return " ".join(parts)

    def _format_time_end(self, event: LogEvent) -> Optional[str]:
        label = self._label(event.args)
        start = self.state.timers.pop(label, None)
        if start is None:
            # An unmatched timeEnd starts the timer
            self.state.timers[label] = event.timestamp
            return None

        duration = f"{event.timestamp - start:.3f}ms"
        parts = self._prefix(event)
        parts.append(self.palette.paint("timeEnd:", "green"))
        parts.append(self._indented(f"{label}: {self.palette.paint(duration, 'yellow')}"))
        return " ".join(parts)

    def _format_table(self, event: LogEvent) -> str:
        parts = self._prefix(event)
        parts.append(self.palette.paint("table:", "green"))

        data = event.args[0] if event.args else None
        if is_tabular(data):
            table = render_table(data, self._table_columns(event.args))
            if table:
                indent = INDENT * self.state.group_depth
                body = "\n".join(indent + line for line in table.splitlines())
                return " ".join(parts) + "\n" + body

        parts.append(self._indented(self._message(event.args[:1])))
        return " ".join(parts)

    def _format_start_group(self, event: LogEvent) -> str:
        tag = "groupCollapsed:" if event.method is ConsoleMethod.START_GROUP_COLLAPSED else "group:"
        parts = self._prefix(event)
        parts.append(self.palette.paint(tag, "blue"))
        parts.append(self._indented(self._message(event.args)))

        self.state.group_depth += 1
        return " ".join(parts)

    def _format_end_group(self, event: LogEvent) -> str:
        if self.state.group_depth > 0:
            self.state.group_depth -= 1

        parts = self._prefix(event)
        parts.append(self.palette.paint("groupEnd:", "blue"))
        message = self._message(event.args)
        if message:
            parts.append(self._indented(message))
        return " ".join(parts)

    def _format_assert(self, event: LogEvent) -> str:
        parts = self._prefix(event)
        parts.append(self.palette.paint("assert:", "red"))
        parts.append(self._indented(self.palette.paint("Assertion failed:", "red")))
        message = self._message(event.args)
        if message:
            parts.append(message)
        return " ".join(parts)

    def _format_clear(self, event: LogEvent) -> str:
        parts = self._prefix(event)
        parts.append(self.palette.paint("clear:", "white"))
        parts.append(self.palette.muted(CLEAR_SEPARATOR))
        return " ".join(parts)

    def _format_trace(self, event: LogEvent) -> str:
        parts = self._prefix(event)
        parts.append(self.palette.level(ConsoleMethod.TRACE, "trace:"))
        parts.append(self._indented(self._message(event.args)))
        return " ".join(parts)

    # Line parts

    def _prefix(self, event: LogEvent) -> List[str]:
        parts = []
        if self.options.show_timestamp:
            parts.append(self._format_timestamp(event.timestamp))
        if self.options.show_source:
            parts.append(self.palette.source(event.source, f"[{display_name(event.source)}]"))
        return parts

    def _format_timestamp(self, timestamp: float) -> str:
        if self.options.timestamp_format == "iso":
            moment = datetime.fromtimestamp(timestamp / 1000.0, tz=timezone.utc)
            text = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        else:
            text = datetime.fromtimestamp(timestamp / 1000.0).strftime("%H:%M:%S")
        return self.palette.muted(f"[{text}]")

    def _format_location(self, location: SourceLocation) -> str:
        text = location.url
        if location.line is not None:
            text += f":{location.line}"
        if location.column is not None:
            text += f":{location.column}"
        return self.palette.muted(f"({text})")

    def _message(self, args: List[SerializedValue]) -> str:
        return " ".join(self.palette.value(arg.type, render_value(arg)) for arg in args)

    def _indented(self, text: str) -> str:
        indent = INDENT * self.state.group_depth
        if not indent:
            return text
        return indent + text.replace("\n", "\n" + indent)

    @staticmethod
    def _label(args: List[SerializedValue]) -> str:
        if not args:
            return DEFAULT_LABEL
        label = render_value(args[0])
        return label or DEFAULT_LABEL

    @staticmethod
    def _table_columns(args: List[SerializedValue]) -> Optional[List[str]]:
        if len(args) < 2 or not isinstance(args[1], ArrayValue):
            return None
        return [item.value for item in args[1].items if isinstance(item, StringValue)]

    def __repr__(self) -> str:
        return (
            f"LogFormatter(group_depth={self.state.group_depth}, "
            f"counters={len(self.state.counters)}, "
            f"timers={len(self.state.timers)})"
        )
