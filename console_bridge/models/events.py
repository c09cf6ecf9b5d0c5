"""Console event models shared by the capture paths and the formatter."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .serialized import SerializedValue


class ConsoleMethod(str, Enum):
    """Closed vocabulary of console calls understood by the formatter."""
    LOG = "log"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"
    DIR = "dir"
    DIRXML = "dirxml"
    TABLE = "table"
    TRACE = "trace"
    CLEAR = "clear"
    START_GROUP = "startGroup"
    START_GROUP_COLLAPSED = "startGroupCollapsed"
    END_GROUP = "endGroup"
    ASSERT = "assert"
    PROFILE = "profile"
    PROFILE_END = "profileEnd"
    COUNT = "count"
    TIME_END = "timeEnd"

    @classmethod
    def resolve(cls, name: str) -> Optional["ConsoleMethod"]:
        """Map a captured method name onto the vocabulary.

        Protocol names (``warning``, ``startGroup``) are accepted as is;
        console API names used by the extension (``warn``, ``group``) are
        translated. Returns None for anything else.
        """
        if not isinstance(name, str):
            return None
        name = METHOD_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return None


METHOD_ALIASES: Dict[str, str] = {
    "warn": ConsoleMethod.WARNING.value,
    "group": ConsoleMethod.START_GROUP.value,
    "groupCollapsed": ConsoleMethod.START_GROUP_COLLAPSED.value,
    "groupEnd": ConsoleMethod.END_GROUP.value,
}


class SourceLocation(BaseModel):
    """Best-effort origin of a console call."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Script URL")
    line: Optional[int] = Field(default=None, description="Line number")
    column: Optional[int] = Field(default=None, description="Column number")

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["SourceLocation"]:
        """Build a location from either capture path's shape.

        Accepts ``{url, lineNumber, columnNumber}`` (Playwright/CDP) and
        ``{url, line, column}`` (extension). Returns None when no URL is known.
        """
        if raw is None:
            return None
        if isinstance(raw, SourceLocation):
            return raw
        if not isinstance(raw, Mapping):
            return None
        url = raw.get("url")
        if not url:
            return None
        line = raw.get("line", raw.get("lineNumber"))
        column = raw.get("column", raw.get("columnNumber"))
        return cls(
            url=str(url),
            line=line if isinstance(line, int) else None,
            column=column if isinstance(column, int) else None,
        )


class LogEvent(BaseModel):
    """One observed console call, normalized and immutable."""

    model_config = ConfigDict(frozen=True)

    method: ConsoleMethod = Field(description="Console method from the closed vocabulary")
    args: List[SerializedValue] = Field(
        default_factory=list,
        description="Serialized arguments in call order"
    )
    source: str = Field(description="Identifier of the monitored page")
    timestamp: float = Field(description="Wall-clock epoch milliseconds")
    location: Optional[SourceLocation] = Field(
        default=None,
        description="Origin file/line/column when known"
    )


@dataclass
class RawConsoleCall:
    """A console call as observed by a capture path, before normalization.

    ``args`` holds live runtime values, or already-serialized wire dicts when
    ``preserialized`` is set (extension path).
    """
    method: str
    args: List[Any]
    source_id: str
    timestamp: Optional[Union[float, int, str, datetime]] = None
    location: Optional[Any] = None
    preserialized: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
